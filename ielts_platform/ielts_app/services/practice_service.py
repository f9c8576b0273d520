"""Practice test generation: prompt, model call, parse, assemble, persist."""

from __future__ import annotations

import random
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Dict, List, Mapping, Tuple

from flask import current_app

from ..extensions import db
from ..metrics import record_generation
from ..models import GeneratedTest, User
from . import bank_service, quota_service
from .api_key_service import resolve_api_key
from .content_assembler import (
    AssemblyContext,
    AssemblyError,
    assemble,
    attach_chart_image,
    build_writing_task,
    display_transcript,
    extract_passage,
    extract_script,
    normalize_speaking_parts,
    tts_script,
)
from .gemini_gateway import FailureKind, GeminiGateway, TextResult, VoiceSelection, get_gateway
from .json_extractor import ExtractionError, parse_json_payload
from .media_storage import UploadFailure, upload_bytes
from .practice_errors import (
    ContentParseError,
    InvalidModuleError,
    ModelUnavailableError,
    PracticeGenerationError,
    QuotaExceededError,
    TTSFailedError,
)
from .prompt_catalog import (
    MODULES,
    build_image_prompt,
    build_prompt,
    group_instruction,
    normalize_question_type,
    pick_topic,
    resolve_prompt_config,
    writing_task_configs,
)
from .prompt_templates import PromptConfig

DEFAULT_TIME_MINUTES: Dict[str, int] = {"reading": 20, "listening": 10, "writing": 60, "speaking": 14}
WRITING_TIME_MINUTES: Dict[str, int] = {"TASK_1": 20, "TASK_2": 40, "FULL_TEST": 60}
PREVIEW_CHARS = 200


class _GenerationRun:
    """Per-request state: resolved key, token total and the request RNG."""

    def __init__(self, user: User, api_key: str, gateway: GeminiGateway, rng: random.Random):
        self.user = user
        self.api_key = api_key
        self.gateway = gateway
        self.rng = rng
        self.tokens = 0

    def account(self, result: TextResult) -> None:
        if result.quota_exceeded:
            quota_service.mark_quota_exhausted(self.user.id)
            raise QuotaExceededError(result.error)
        self.tokens += result.tokens_used
        quota_service.record_usage(self.user.id, result.tokens_used)
        if not result.ok:
            raise ModelUnavailableError(result.error)

    def text(self, prompt: str, **kwargs: Any) -> str:
        result = self.gateway.generate_text(self.api_key, prompt, **kwargs)
        self.account(result)
        return result.text or ""

    def image_url(self, kind: str, payload: Mapping[str, Any]) -> str | None:
        image = self.gateway.generate_image(self.api_key, build_image_prompt(kind, payload))
        if image is None:
            return None
        try:
            return upload_bytes(image.data, image.mime_type, folder=kind)
        except UploadFailure as exc:
            current_app.logger.warning("Image upload failed for %s: %s", kind, exc)
            return None


def _parse(text: str) -> Any:
    try:
        return parse_json_payload(text)
    except ExtractionError as exc:
        current_app.logger.warning("Could not parse model output: %s | %s", exc, (text or "")[:PREVIEW_CHARS])
        raise ContentParseError(details=str(exc)) from exc


def _context(module: str, question_type: str, config: PromptConfig, run: _GenerationRun) -> AssemblyContext:
    return AssemblyContext(
        module=module,
        question_count=config.question_count,
        instruction=group_instruction(module, question_type, config),
        word_limit=config.word_limit,
        rng=run.rng,
        spelling_mode=config.spelling is not None,
        image_provider=run.image_url,
    )


def _generate_reading(run: _GenerationRun, question_type: str, difficulty: str, topic: str, config: PromptConfig, payload: Mapping[str, Any]) -> Dict[str, Any]:
    parsed = _parse(run.text(build_prompt("reading", question_type, difficulty, topic, config)))
    try:
        passage = extract_passage(parsed)
        group = assemble(question_type, parsed, _context("reading", question_type, config, run))
    except AssemblyError as exc:
        raise ContentParseError(details=str(exc)) from exc
    return {"passage": passage, "questionGroups": [group]}


def _generate_listening(run: _GenerationRun, question_type: str, difficulty: str, topic: str, config: PromptConfig, payload: Mapping[str, Any]) -> Dict[str, Any]:
    parsed = _parse(run.text(build_prompt("listening", question_type, difficulty, topic, config)))
    try:
        dialogue, speaker_names = extract_script(parsed)
        group = assemble(question_type, parsed, _context("listening", question_type, config, run))
    except AssemblyError as exc:
        raise ContentParseError(details=str(exc)) from exc

    listening = payload.get("listening_config") or {}
    voices = VoiceSelection.from_config(listening.get("speaker_config"), monologue=config.monologue)
    audio = run.gateway.generate_audio(run.api_key, tts_script(dialogue, voices.two_speakers), voices)
    if not audio.ok:
        if audio.failure is FailureKind.QUOTA_EXCEEDED:
            quota_service.mark_quota_exhausted(run.user.id)
            raise QuotaExceededError(audio.error)
        raise TTSFailedError(audio.error)

    return {
        "transcript": display_transcript(dialogue, speaker_names),
        "speakerNames": speaker_names,
        "audioBase64": audio.audio_base64,
        "audioFormat": "pcm",
        "sampleRate": audio.sample_rate,
        "questionGroups": [group],
    }


def _writing_task(
    gateway: GeminiGateway, api_key: str, prompt: str, task_key: str, task_config: PromptConfig
) -> Tuple[Dict[str, Any] | None, List[TextResult], str | None]:
    """Retry unusable output with a doubled output budget; stops at the first gateway failure.

    Truncated replies often still contain a closed inner object that parses, so a
    reply only counts once it builds a complete task.
    """

    config = current_app.config
    budget = int(config.get("WRITING_MAX_OUTPUT_TOKENS", 2048))
    temperature = float(config.get("WRITING_TEMPERATURE", 0.2))
    results: List[TextResult] = []
    problem: str | None = None
    for attempt in range(1, int(config.get("WRITING_MAX_ATTEMPTS", 3)) + 1):
        result = gateway.generate_text(api_key, prompt, temperature=temperature, max_output_tokens=budget)
        results.append(result)
        if not result.ok:
            return None, results, result.error
        try:
            parsed = parse_json_payload(result.text or "")
            task = build_writing_task(
                parsed,
                task_key,
                visual_type=task_config.visual_type,
                essay_type=task_config.essay_type,
            )
            return task, results, None
        except (ExtractionError, AssemblyError) as exc:
            problem = str(exc)
            current_app.logger.warning("Writing %s unusable on attempt %s: %s", task_key, attempt, exc)
            budget *= 2
    return None, results, problem


def _generate_writing(run: _GenerationRun, question_type: str, difficulty: str, topic: str, config: PromptConfig, payload: Mapping[str, Any]) -> Dict[str, Any]:
    task_configs = writing_task_configs(question_type, config)
    prompts = {key: build_prompt("writing", question_type, difficulty, topic, cfg) for key, cfg in task_configs.items()}

    if len(prompts) > 1:
        # Task 1 and Task 2 are independent; run both calls at once.
        app = current_app._get_current_object()

        def _worker(key: str, prompt: str) -> Tuple[Dict[str, Any] | None, List[TextResult], str | None]:
            with app.app_context():
                return _writing_task(run.gateway, run.api_key, prompt, key, task_configs[key])

        with ThreadPoolExecutor(max_workers=len(prompts)) as executor:
            futures = {key: executor.submit(_worker, key, prompt) for key, prompt in prompts.items()}
            outcomes = {key: future.result() for key, future in futures.items()}
    else:
        outcomes = {
            key: _writing_task(run.gateway, run.api_key, prompt, key, task_configs[key]) for key, prompt in prompts.items()
        }

    # Quota first: it is account-wide and decides the status code for the whole request.
    all_results = [result for _, results, _ in outcomes.values() for result in results]
    for result in sorted(all_results, key=lambda item: not item.quota_exceeded):
        run.account(result)

    tasks: Dict[str, Dict[str, Any]] = {}
    for key, (task, _, problem) in outcomes.items():
        if task is None:
            raise ContentParseError(details=f"Could not parse the {key} response: {problem}")
        tasks[key] = task
    if "task1" in tasks:
        attach_chart_image(tasks["task1"], run.image_url)

    writing_task: Dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "test_type": "full_test" if question_type == "FULL_TEST" else next(iter(tasks)),
        "time_minutes": WRITING_TIME_MINUTES[question_type],
    }
    writing_task.update(tasks)
    return {"writingTask": writing_task}


def _generate_speaking(run: _GenerationRun, question_type: str, difficulty: str, topic: str, config: PromptConfig, payload: Mapping[str, Any]) -> Dict[str, Any]:
    parsed = _parse(run.text(build_prompt("speaking", question_type, difficulty, topic, config)))
    try:
        parts = normalize_speaking_parts(parsed, question_type)
    except AssemblyError as exc:
        raise ContentParseError("Failed to parse generated content. Please try again.", details=str(exc)) from exc
    return {"speakingParts": parts}


_GENERATORS = {
    "reading": _generate_reading,
    "listening": _generate_listening,
    "writing": _generate_writing,
    "speaking": _generate_speaking,
}


def generate_practice(
    user: User,
    payload: Mapping[str, Any],
    *,
    header_key: str | None = None,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    """Generate, persist and return one practice test.

    ``payload`` is the loaded generation request (snake_case keys). Failures raise
    a :class:`PracticeGenerationError`; nothing is persisted in that case. A matching
    published test from the bank is served instead of calling the model when one exists.
    """

    module = str(payload.get("module") or "").lower()
    if module not in MODULES:
        raise InvalidModuleError()
    rng = rng or random.Random()

    requested_type = payload.get("question_type")
    if module == "writing":
        requested_type = (payload.get("writing_config") or {}).get("task_type") or requested_type
    question_type = normalize_question_type(module, requested_type)
    difficulty = payload.get("difficulty") or "medium"
    if current_app.config.get("PRACTICE_SERVE_PUBLISHED", True):
        preset = bank_service.find_preset(module, question_type, difficulty, rng, topic=payload.get("topic_preference"))
        if preset is not None:
            record_generation(module, "preset", 0.0)
            return bank_service.serve(user, preset)

    api_key = resolve_api_key(user, header_key)
    topic = pick_topic(payload.get("topic_preference"), rng)
    config = resolve_prompt_config(
        module,
        question_type,
        question_count=payload.get("question_count"),
        rng=rng,
        reading=payload.get("reading_config"),
        listening=payload.get("listening_config"),
        writing=payload.get("writing_config"),
        default_duration=int(current_app.config.get("LISTENING_DEFAULT_DURATION_SEC", 240)),
    )

    run = _GenerationRun(user, api_key, get_gateway(), rng)
    started = perf_counter()
    try:
        content = _GENERATORS[module](run, question_type, difficulty, topic, config, payload)
    except PracticeGenerationError as exc:
        record_generation(module, exc.error_type or "error", perf_counter() - started)
        current_app.logger.warning(
            "Practice generation failed: %s",
            exc.message,
            extra={"practice_module": module, "question_type": question_type, "user_id": user.id},
        )
        raise

    default_minutes = WRITING_TIME_MINUTES[question_type] if module == "writing" else DEFAULT_TIME_MINUTES[module]
    body: Dict[str, Any] = {
        "testId": str(uuid.uuid4()),
        "module": module,
        "questionType": question_type,
        "difficulty": difficulty,
        "topic": topic,
        "timeMinutes": payload.get("time_minutes") or default_minutes,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "tokensUsed": run.tokens,
    }
    body.update(content)

    record = GeneratedTest(
        id=body["testId"],
        user_id=user.id,
        module=module,
        question_type=question_type,
        difficulty=difficulty,
        topic=topic[:255],
        payload=body,
        tokens_used=run.tokens,
        saved_to_bank=bool(payload.get("save_to_bank")),
    )
    db.session.add(record)
    db.session.commit()

    record_generation(module, "success", perf_counter() - started)
    current_app.logger.info(
        "Generated %s practice test %s",
        module,
        body["testId"],
        extra={
            "practice_module": module,
            "question_type": question_type,
            "user_id": user.id,
            "tokens": run.tokens,
        },
    )
    return body


def list_tests(user: User, *, module: str | None = None, limit: int = 20) -> List[Dict[str, Any]]:
    query = GeneratedTest.query.filter_by(user_id=user.id)
    if module:
        query = query.filter_by(module=module)
    records = query.order_by(GeneratedTest.created_at.desc()).limit(limit).all()
    return [
        {
            "testId": record.id,
            "module": record.module,
            "questionType": record.question_type,
            "difficulty": record.difficulty,
            "topic": record.topic,
            "savedToBank": record.saved_to_bank,
            "createdAt": record.created_at.isoformat() if record.created_at else None,
        }
        for record in records
    ]


def get_test(user: User, test_id: str) -> Dict[str, Any] | None:
    record = GeneratedTest.query.filter_by(id=test_id, user_id=user.id).first()
    return record.payload if record else None
