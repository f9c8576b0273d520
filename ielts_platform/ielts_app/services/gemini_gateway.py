"""Gemini REST gateway: text with model fallback, TTS with backoff, images.

Every call returns a result object describing what happened; nothing about the
last call is kept on the gateway, so one instance can serve concurrent calls.
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

import requests
from flask import current_app

from ..metrics import record_model_call, record_tokens

DEFAULT_SPEAKER1_VOICE = "Kore"
DEFAULT_SPEAKER2_VOICE = "Aoede"


class FailureKind(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    PERMISSION_DENIED = "permission_denied"
    MALFORMED_REQUEST = "malformed_request"
    TRANSIENT = "transient"
    SAFETY_FILTERED = "safety_filtered"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


class GatewayState(str, Enum):
    TRYING = "trying"
    SUCCESS = "success"
    QUOTA_EXCEEDED = "quota_exceeded"
    EXHAUSTED = "exhausted"


FAILURE_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.QUOTA_EXCEEDED: (
        "QUOTA_EXCEEDED: The Gemini API rate limit for this key has been reached. "
        "Please wait a few minutes and try again."
    ),
    FailureKind.PERMISSION_DENIED: (
        "API access denied. Please verify your Gemini API key is valid and has the correct permissions."
    ),
    FailureKind.MALFORMED_REQUEST: (
        "Invalid request to AI. The generation request was rejected. "
        "Please try again with different settings."
    ),
    FailureKind.SAFETY_FILTERED: (
        "Content was filtered by safety settings. Please try a different topic."
    ),
    FailureKind.EMPTY_RESPONSE: "AI returned empty response. Please try again.",
}


@dataclass(frozen=True)
class ModelAttempt:
    model: str
    status_code: int | None
    failure: FailureKind | None = None
    message: str | None = None


@dataclass
class TextResult:
    state: GatewayState
    text: str | None = None
    model: str | None = None
    tokens_used: int = 0
    failure: FailureKind | None = None
    error: str | None = None
    attempts: List[ModelAttempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is GatewayState.SUCCESS

    @property
    def quota_exceeded(self) -> bool:
        return self.state is GatewayState.QUOTA_EXCEEDED


@dataclass
class AudioResult:
    audio: bytes | None = None
    sample_rate: int | None = None
    failure: FailureKind | None = None
    error: str | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.audio is not None

    @property
    def audio_base64(self) -> str | None:
        if self.audio is None:
            return None
        return base64.b64encode(self.audio).decode("ascii")


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class VoiceSelection:
    speaker1: str = DEFAULT_SPEAKER1_VOICE
    speaker2: str = DEFAULT_SPEAKER2_VOICE
    two_speakers: bool = True

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None, *, monologue: bool = False) -> "VoiceSelection":
        config = config or {}
        speaker1 = (config.get("speaker1") or {}).get("voice_name") or DEFAULT_SPEAKER1_VOICE
        speaker2 = (config.get("speaker2") or {}).get("voice_name") or DEFAULT_SPEAKER2_VOICE
        two_speakers = config.get("use_two_speakers", True) is not False and not monologue
        return cls(speaker1=speaker1, speaker2=speaker2, two_speakers=two_speakers)


def classify_failure(status_code: int | None, body: Mapping[str, Any] | None) -> FailureKind:
    """Map an HTTP failure onto the gateway taxonomy."""

    error_status = ""
    if isinstance(body, Mapping):
        error_status = str((body.get("error") or {}).get("status") or "")
    if status_code == 429 or error_status == "RESOURCE_EXHAUSTED":
        return FailureKind.QUOTA_EXCEEDED
    if status_code in (401, 403) or error_status == "PERMISSION_DENIED":
        return FailureKind.PERMISSION_DENIED
    if status_code == 400:
        return FailureKind.MALFORMED_REQUEST
    if status_code is None or status_code >= 500:
        return FailureKind.TRANSIENT
    return FailureKind.UNKNOWN


def describe_failure(kind: FailureKind, status_code: int | None = None, detail: str = "") -> str:
    if kind in FAILURE_MESSAGES:
        return FAILURE_MESSAGES[kind]
    if status_code is None:
        return (
            "Connection error: Unable to reach AI service. "
            "Please check your internet connection and try again."
        )
    return f"AI service error ({status_code}): {detail[:100]}"


def build_speech_config(voices: VoiceSelection) -> Dict[str, Any]:
    """Single-speaker and dual-speaker TTS requests use different shapes."""

    if voices.two_speakers:
        return {
            "multiSpeakerVoiceConfig": {
                "speakerVoiceConfigs": [
                    {
                        "speaker": "Speaker1",
                        "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voices.speaker1}},
                    },
                    {
                        "speaker": "Speaker2",
                        "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voices.speaker2}},
                    },
                ]
            }
        }
    return {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voices.speaker1}}}


def build_tts_prompt(script: str, two_speakers: bool) -> str:
    if two_speakers:
        return (
            "Read the following conversation slowly and clearly, as if for a language listening test.\n"
            "Use a moderate speaking pace with natural pauses between sentences.\n"
            "Pause briefly after each speaker finishes their turn.\n"
            "The two speakers should have distinct, clear voices:\n\n"
            f"{script}"
        )
    return (
        "Read the following monologue slowly and clearly, as if for a language listening test.\n"
        "Use a moderate speaking pace with natural pauses between sentences.\n\n"
        f"{script}"
    )


def _first_part(data: Mapping[str, Any]) -> Dict[str, Any]:
    candidates = data.get("candidates") or []
    if not candidates:
        return {}
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    return parts[0] if parts else {}


def _finish_reason(data: Mapping[str, Any]) -> str | None:
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    return (candidates[0] or {}).get("finishReason")


def _usage_tokens(data: Mapping[str, Any]) -> int:
    usage = data.get("usageMetadata") or {}
    return int(usage.get("promptTokenCount") or 0) + int(usage.get("candidatesTokenCount") or 0)


@dataclass
class GeminiGateway:
    api_base: str
    text_models: Tuple[str, ...]
    tts_model: str
    image_model: str
    temperature: float = 0.7
    max_output_tokens: int = 8192
    connect_timeout: float = 15
    read_timeout: float = 120
    tts_max_attempts: int = 3
    tts_backoff_base: float = 1.0
    sample_rate: int = 24000
    sleep: Callable[[float], None] = time.sleep

    def _post(self, model: str, api_key: str, payload: Dict[str, Any]) -> Tuple[int | None, Dict[str, Any]]:
        """POST to ``models/{model}:generateContent``; network errors come back as status None."""

        url = f"{self.api_base.rstrip('/')}/models/{model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        try:
            response = requests.post(
                url,
                headers=headers,
                data=json.dumps(payload),
                timeout=(self.connect_timeout, self.read_timeout),
            )
        except requests.RequestException as exc:
            return None, {"error": {"message": str(exc)}}
        try:
            body = response.json()
        except ValueError:
            body = {"error": {"message": response.text[:200]}}
        return response.status_code, body if isinstance(body, dict) else {}

    def generate_text(
        self,
        api_key: str,
        prompt: str,
        *,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        models: Sequence[str] | None = None,
    ) -> TextResult:
        """Try each model in order until one answers.

        Quota exhaustion ends the loop at once since the limit is account-wide;
        permission, malformed-request and transient failures move on to the next
        model.
        """

        logger = current_app.logger
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature if temperature is None else temperature,
                "maxOutputTokens": max_output_tokens or self.max_output_tokens,
                "responseMimeType": "application/json",
            },
        }
        result = TextResult(state=GatewayState.TRYING)
        for model in models or self.text_models:
            status_code, body = self._post(model, api_key, payload)
            if status_code != 200:
                kind = classify_failure(status_code, body)
                detail = str((body.get("error") or {}).get("message") or "")
                attempt = ModelAttempt(model, status_code, kind, detail[:200])
                result.attempts.append(attempt)
                result.failure = kind
                result.error = describe_failure(kind, status_code, detail)
                record_model_call("text", model, kind.value)
                logger.warning(
                    "Gemini %s failed with status %s (%s)",
                    model,
                    status_code,
                    kind.value,
                    extra={"model": model, "failure": kind.value},
                )
                if kind is FailureKind.QUOTA_EXCEEDED:
                    result.state = GatewayState.QUOTA_EXCEEDED
                    return result
                continue

            result.tokens_used += _usage_tokens(body)
            text = _first_part(body).get("text")
            if text:
                result.attempts.append(ModelAttempt(model, status_code))
                result.state = GatewayState.SUCCESS
                result.text = text
                result.model = model
                result.failure = None
                result.error = None
                record_model_call("text", model, "success")
                record_tokens(result.tokens_used)
                logger.info(
                    "Gemini %s succeeded (%s tokens)",
                    model,
                    result.tokens_used,
                    extra={"model": model, "tokens": result.tokens_used},
                )
                return result

            kind = (
                FailureKind.SAFETY_FILTERED
                if _finish_reason(body) == "SAFETY"
                else FailureKind.EMPTY_RESPONSE
            )
            result.attempts.append(ModelAttempt(model, status_code, kind))
            result.failure = kind
            result.error = describe_failure(kind)
            record_model_call("text", model, kind.value)
            logger.warning("Gemini %s returned no text (%s)", model, kind.value, extra={"model": model})

        result.state = GatewayState.EXHAUSTED
        if result.error is None:
            result.error = "Failed to generate content. Please try again."
        return result

    def generate_audio(
        self,
        api_key: str,
        script: str,
        voices: VoiceSelection | None = None,
    ) -> AudioResult:
        """Synthesize ``script``; only transient failures are retried, with exponential backoff."""

        logger = current_app.logger
        voices = voices or VoiceSelection()
        payload = {
            "contents": [{"parts": [{"text": build_tts_prompt(script, voices.two_speakers)}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": build_speech_config(voices),
            },
        }
        result = AudioResult()
        max_attempts = max(1, self.tts_max_attempts)
        for attempt in range(1, max_attempts + 1):
            result.attempts = attempt
            status_code, body = self._post(self.tts_model, api_key, payload)
            if status_code == 200:
                encoded = (_first_part(body).get("inlineData") or {}).get("data")
                if encoded:
                    record_model_call("tts", self.tts_model, "success")
                    result.audio = base64.b64decode(encoded)
                    result.sample_rate = self.sample_rate
                    result.failure = None
                    result.error = None
                    return result
                kind = FailureKind.EMPTY_RESPONSE
                result.error = "Audio generation returned empty response. Please try again."
            else:
                kind = classify_failure(status_code, body)
                detail = str((body.get("error") or {}).get("message") or "")
                result.error = _tts_error_message(kind, status_code, detail)
            result.failure = kind
            record_model_call("tts", self.tts_model, kind.value)

            retryable = kind in (FailureKind.TRANSIENT, FailureKind.EMPTY_RESPONSE)
            if not retryable or attempt >= max_attempts:
                logger.warning(
                    "TTS failed on attempt %s/%s (%s)",
                    attempt,
                    max_attempts,
                    kind.value,
                    extra={"model": self.tts_model, "failure": kind.value, "attempt": attempt},
                )
                return result
            delay = self.tts_backoff_base * (2 ** attempt)
            logger.warning(
                "TTS attempt %s/%s failed (%s). Retrying in %.1fs",
                attempt,
                max_attempts,
                kind.value,
                delay,
                extra={"model": self.tts_model, "failure": kind.value, "attempt": attempt},
            )
            self.sleep(delay)
        return result

    def generate_image(self, api_key: str, prompt: str) -> GeneratedImage | None:
        """Single attempt; any failure yields ``None`` so callers can degrade."""

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        status_code, body = self._post(self.image_model, api_key, payload)
        if status_code != 200:
            kind = classify_failure(status_code, body)
            record_model_call("image", self.image_model, kind.value)
            current_app.logger.warning(
                "Image generation failed with status %s (%s)",
                status_code,
                kind.value,
                extra={"model": self.image_model, "failure": kind.value},
            )
            return None
        for candidate in body.get("candidates") or []:
            for part in ((candidate or {}).get("content") or {}).get("parts") or []:
                inline = part.get("inlineData") or {}
                if inline.get("data"):
                    record_model_call("image", self.image_model, "success")
                    try:
                        data = base64.b64decode(inline["data"])
                    except (ValueError, TypeError):
                        current_app.logger.warning("Image payload was not valid base64")
                        return None
                    return GeneratedImage(data=data, mime_type=inline.get("mimeType") or "image/png")
        record_model_call("image", self.image_model, FailureKind.EMPTY_RESPONSE.value)
        current_app.logger.warning("Image generation returned no inline image data")
        return None


def _tts_error_message(kind: FailureKind, status_code: int | None, detail: str) -> str:
    if kind is FailureKind.QUOTA_EXCEEDED:
        return (
            "The API key has reached its rate limit for audio generation. "
            "Please wait a few minutes and try again."
        )
    if kind is FailureKind.PERMISSION_DENIED:
        return (
            "API access denied for audio generation. "
            "Please verify your Gemini API key has TTS permissions enabled."
        )
    if kind is FailureKind.MALFORMED_REQUEST:
        return "Audio generation request was rejected. Please try again."
    if status_code is None:
        return f"Connection error during audio generation: {detail[:100]}"
    return f"Audio generation failed with status {status_code}. Please try again."


def get_gateway() -> GeminiGateway:
    app = current_app
    gateway = app.extensions.get("gemini_gateway")
    if gateway is None:
        gateway = GeminiGateway(
            api_base=app.config.get("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"),
            text_models=tuple(app.config.get("GEMINI_TEXT_MODELS") or ("gemini-2.5-flash",)),
            tts_model=app.config.get("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"),
            image_model=app.config.get("GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation"),
            temperature=float(app.config.get("GEMINI_TEMPERATURE", 0.7)),
            max_output_tokens=int(app.config.get("GEMINI_MAX_OUTPUT_TOKENS", 8192)),
            connect_timeout=app.config.get("AI_CONNECT_TIMEOUT_SEC", 15),
            read_timeout=app.config.get("AI_READ_TIMEOUT_SEC", 120),
            tts_max_attempts=int(app.config.get("TTS_MAX_ATTEMPTS", 3)),
            tts_backoff_base=float(app.config.get("TTS_BACKOFF_BASE_SEC", 1.0)),
            sample_rate=int(app.config.get("TTS_SAMPLE_RATE", 24000)),
        )
        app.extensions["gemini_gateway"] = gateway
    return gateway
