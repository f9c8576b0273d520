"""Tests for the Gemini gateway: fallback chain, quota short-circuit, TTS retries."""

from __future__ import annotations

import base64
import json

import pytest
import requests

from ielts_app.services import gemini_gateway
from ielts_app.services.gemini_gateway import (
    FailureKind,
    GatewayState,
    GeminiGateway,
    VoiceSelection,
    classify_failure,
)


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


def text_body(text, finish="STOP", tokens=(10, 20)):
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish}],
        "usageMetadata": {"promptTokenCount": tokens[0], "candidatesTokenCount": tokens[1]},
    }


def error_body(status, message="boom"):
    return {"error": {"status": status, "message": message}}


def audio_body(data=b"pcm-bytes"):
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "audio/pcm", "data": base64.b64encode(data).decode()}}]}}]}


@pytest.fixture()
def scripted_post(monkeypatch):
    """Replace requests.post with a script of responses; records every call."""

    calls = []
    script = []

    def _post(url, headers=None, data=None, timeout=None):
        calls.append({"url": url, "headers": headers, "payload": json.loads(data), "timeout": timeout})
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(gemini_gateway.requests, "post", _post)
    return script, calls


@pytest.fixture()
def gateway(app_with_db):
    delays = []
    gw = GeminiGateway(
        api_base="https://example.test/v1beta",
        text_models=("model-a", "model-b", "model-c"),
        tts_model="tts-model",
        image_model="image-model",
        tts_backoff_base=1.0,
        sleep=delays.append,
    )
    gw.delays = delays
    return gw


def _models(calls):
    return [call["url"].rsplit("/", 1)[-1].split(":")[0] for call in calls]


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (429, {}, FailureKind.QUOTA_EXCEEDED),
        (400, error_body("RESOURCE_EXHAUSTED"), FailureKind.QUOTA_EXCEEDED),
        (403, {}, FailureKind.PERMISSION_DENIED),
        (401, {}, FailureKind.PERMISSION_DENIED),
        (400, error_body("INVALID_ARGUMENT"), FailureKind.MALFORMED_REQUEST),
        (503, {}, FailureKind.TRANSIENT),
        (None, {}, FailureKind.TRANSIENT),
        (404, {}, FailureKind.UNKNOWN),
    ],
)
def test_classify_failure(status, body, expected):
    assert classify_failure(status, body) is expected


def test_first_model_success(gateway, scripted_post):
    script, calls = scripted_post
    script.append(FakeResponse(200, text_body('{"ok": true}')))
    result = gateway.generate_text("key-1", "prompt")
    assert result.ok
    assert result.text == '{"ok": true}'
    assert result.model == "model-a"
    assert result.tokens_used == 30
    assert calls[0]["headers"]["x-goog-api-key"] == "key-1"
    assert calls[0]["payload"]["generationConfig"]["responseMimeType"] == "application/json"


def test_quota_aborts_the_chain(gateway, scripted_post):
    script, calls = scripted_post
    script.extend([FakeResponse(429, error_body("RESOURCE_EXHAUSTED")), FakeResponse(200, text_body("{}"))])
    result = gateway.generate_text("key", "prompt")
    assert result.state is GatewayState.QUOTA_EXCEEDED
    assert result.quota_exceeded
    assert "QUOTA_EXCEEDED" in result.error
    assert _models(calls) == ["model-a"]


def test_permission_malformed_and_transient_fall_through(gateway, scripted_post):
    script, calls = scripted_post
    script.extend(
        [
            FakeResponse(403, error_body("PERMISSION_DENIED")),
            FakeResponse(400, error_body("INVALID_ARGUMENT")),
            FakeResponse(503, error_body("UNAVAILABLE")),
        ]
    )
    result = gateway.generate_text("key", "prompt")
    assert result.state is GatewayState.EXHAUSTED
    assert _models(calls) == ["model-a", "model-b", "model-c"]
    assert [attempt.failure for attempt in result.attempts] == [
        FailureKind.PERMISSION_DENIED,
        FailureKind.MALFORMED_REQUEST,
        FailureKind.TRANSIENT,
    ]
    assert result.error.startswith("AI service error (503)")


def test_network_error_then_success(gateway, scripted_post):
    script, calls = scripted_post
    script.extend([requests.ConnectionError("down"), FakeResponse(200, text_body("{}"))])
    result = gateway.generate_text("key", "prompt")
    assert result.ok
    assert result.model == "model-b"
    assert result.attempts[0].status_code is None


def test_safety_filter_moves_on_and_is_reported(gateway, scripted_post):
    script, _ = scripted_post
    script.extend(
        [
            FakeResponse(200, {"candidates": [{"finishReason": "SAFETY"}]}),
            FakeResponse(200, {"candidates": []}),
            FakeResponse(200, {"candidates": [{"finishReason": "SAFETY"}]}),
        ]
    )
    result = gateway.generate_text("key", "prompt")
    assert not result.ok
    assert result.failure is FailureKind.SAFETY_FILTERED
    assert "different topic" in result.error


def test_tts_retries_transient_failures_with_backoff(gateway, scripted_post):
    script, calls = scripted_post
    script.extend(
        [
            FakeResponse(503, error_body("UNAVAILABLE")),
            FakeResponse(503, error_body("UNAVAILABLE")),
            FakeResponse(200, audio_body(b"third")),
        ]
    )
    result = gateway.generate_audio("key", "Speaker1: Hello\nSpeaker2: Hi", VoiceSelection())
    assert result.ok
    assert result.audio == b"third"
    assert result.attempts == 3
    assert result.sample_rate == 24000
    assert gateway.delays == [2.0, 4.0]
    assert len(calls) == 3


def test_tts_does_not_retry_permission_errors(gateway, scripted_post):
    script, calls = scripted_post
    script.append(FakeResponse(403, error_body("PERMISSION_DENIED")))
    result = gateway.generate_audio("key", "Hello there", VoiceSelection(two_speakers=False))
    assert not result.ok
    assert result.failure is FailureKind.PERMISSION_DENIED
    assert "TTS permissions" in result.error
    assert len(calls) == 1
    assert gateway.delays == []


def test_tts_gives_up_after_max_attempts(gateway, scripted_post):
    script, calls = scripted_post
    script.extend([FakeResponse(500, {}) for _ in range(3)])
    result = gateway.generate_audio("key", "Hello")
    assert not result.ok
    assert result.failure is FailureKind.TRANSIENT
    assert len(calls) == 3
    assert len(gateway.delays) == 2


def test_single_and_multi_speaker_request_shapes(gateway, scripted_post):
    script, calls = scripted_post
    script.extend([FakeResponse(200, audio_body()), FakeResponse(200, audio_body())])

    gateway.generate_audio("key", "Speaker1: Hi\nSpeaker2: Hello", VoiceSelection("Puck", "Aoede", True))
    gateway.generate_audio("key", "Welcome to the museum.", VoiceSelection("Charon", "Aoede", False))

    multi = calls[0]["payload"]["generationConfig"]["speechConfig"]
    single = calls[1]["payload"]["generationConfig"]["speechConfig"]
    speakers = multi["multiSpeakerVoiceConfig"]["speakerVoiceConfigs"]
    assert [entry["speaker"] for entry in speakers] == ["Speaker1", "Speaker2"]
    assert speakers[0]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"] == "Puck"
    assert "voiceConfig" not in multi
    assert single == {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": "Charon"}}}


def test_voice_selection_from_config():
    voices = VoiceSelection.from_config(
        {"speaker1": {"voice_name": "Fenrir"}, "use_two_speakers": True}, monologue=False
    )
    assert voices == VoiceSelection("Fenrir", "Aoede", True)
    assert VoiceSelection.from_config(None, monologue=True).two_speakers is False
    assert VoiceSelection.from_config({"use_two_speakers": False}).two_speakers is False


def test_image_single_attempt(gateway, scripted_post):
    script, calls = scripted_post
    script.append(FakeResponse(503, {}))
    assert gateway.generate_image("key", "draw a map") is None
    assert len(calls) == 1

    script.append(
        FakeResponse(
            200,
            {"candidates": [{"content": {"parts": [{"text": "here"}, {"inlineData": {"mimeType": "image/png", "data": base64.b64encode(b"png").decode()}}]}}]},
        )
    )
    image = gateway.generate_image("key", "draw a map")
    assert image.data == b"png"
    assert image.mime_type == "image/png"
