"""Prompt catalog: resolves request settings and dispatches to per-module builders.

``resolve_prompt_config`` is the only place that draws random values; everything
downstream of it is a pure function of the resolved :class:`PromptConfig`.
"""

from __future__ import annotations

import json
import math
import random
from dataclasses import replace
from typing import Any, Dict, Mapping, Tuple

from .listening_prompts import LISTENING_FALLBACK, LISTENING_TEMPLATES, listening_envelope, listening_header
from .prompt_templates import (
    FILL_VARIANTS,
    IELTS_TOPICS,
    LISTENING_SCENARIOS,
    PromptConfig,
    QuestionTemplate,
    SpellingSettings,
    render_prompt,
    resolve,
    voice_gender,
)
from .reading_prompts import READING_ENVELOPE, READING_FALLBACK, READING_TEMPLATES, reading_header
from .speaking_prompts import SPEAKING_PARTS, build_speaking_prompt
from .writing_prompts import ESSAY_TYPES, VISUAL_TYPES, build_task1_prompt, build_task2_prompt

MODULES = ("reading", "listening", "writing", "speaking")

WRITING_TASKS = ("TASK_1", "TASK_2", "FULL_TEST")

QUESTION_COUNTS: Dict[str, int] = {
    "TRUE_FALSE_NOT_GIVEN": 5,
    "YES_NO_NOT_GIVEN": 5,
    "MATCHING_HEADINGS": 5,
    "MATCHING_INFORMATION": 5,
    "MATCHING_SENTENCE_ENDINGS": 4,
    "MULTIPLE_CHOICE": 4,
    "MULTIPLE_CHOICE_SINGLE": 4,
    "MULTIPLE_CHOICE_MULTIPLE": 3,
    "FILL_IN_BLANK": 6,
    "SHORT_ANSWER": 5,
    "SENTENCE_COMPLETION": 4,
    "TABLE_COMPLETION": 5,
    "FLOWCHART_COMPLETION": 4,
    "MAP_LABELING": 5,
    "SUMMARY_COMPLETION": 5,
    "SUMMARY_WORD_BANK": 5,
    "NOTE_COMPLETION": 5,
    "MATCHING_CORRECT_LETTER": 5,
    "DRAG_AND_DROP_OPTIONS": 5,
    "TASK_1": 1,
    "TASK_2": 1,
    "FULL_TEST": 12,
    "PART_1": 4,
    "PART_2": 1,
    "PART_3": 4,
}

MODULE_COUNT_OVERRIDES: Dict[Tuple[str, str], int] = {
    ("listening", "MULTIPLE_CHOICE_MULTIPLE"): 2,
    ("speaking", "FULL_TEST"): 4,
    ("writing", "FULL_TEST"): 2,
}

PASSAGE_PRESETS: Dict[str, Tuple[int, int]] = {
    "short": (4, 450),
    "standard": (6, 750),
    "long": (8, 950),
}

WORDS_PER_PARAGRAPH = 110
SPEECH_WORDS_PER_MINUTE = 150
LISTENING_WORD_RANGE = (100, 1200)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def supported_question_types(module: str) -> Tuple[str, ...]:
    if module == "reading":
        return tuple(READING_TEMPLATES)
    if module == "listening":
        return tuple(LISTENING_TEMPLATES)
    if module == "writing":
        return WRITING_TASKS
    if module == "speaking":
        return SPEAKING_PARTS
    return ()


def normalize_question_type(module: str, question_type: str | None) -> str:
    """Unknown types fall back to each module's default rather than failing."""

    candidate = (question_type or "").strip().upper()
    if module == "reading":
        return candidate if candidate in READING_TEMPLATES else READING_FALLBACK
    if module == "listening":
        return candidate if candidate in LISTENING_TEMPLATES else LISTENING_FALLBACK
    if module == "writing":
        return candidate if candidate in WRITING_TASKS else "FULL_TEST"
    if module == "speaking":
        return candidate if candidate in SPEAKING_PARTS else "FULL_TEST"
    raise ValueError(f"Unsupported module: {module}")


def default_question_count(module: str, question_type: str) -> int:
    return MODULE_COUNT_OVERRIDES.get((module, question_type), QUESTION_COUNTS.get(question_type, 5))


def pick_topic(preference: str | None, rng: random.Random) -> str:
    if preference and preference.strip():
        return preference.strip()
    return rng.choice(IELTS_TOPICS)


def _reading_sizing(reading: Mapping[str, Any]) -> Tuple[int, int]:
    preset = PASSAGE_PRESETS.get(str(reading.get("passage_preset") or "").lower())
    if reading.get("use_word_count_mode") and reading.get("word_count"):
        words = _clamp(int(reading["word_count"]), 300, 1500)
        return _clamp(math.ceil(words / WORDS_PER_PARAGRAPH), 3, 10), words
    if reading.get("paragraph_count"):
        paragraphs = _clamp(int(reading["paragraph_count"]), 3, 10)
        return paragraphs, paragraphs * WORDS_PER_PARAGRAPH
    if preset is not None:
        return preset
    return PASSAGE_PRESETS["standard"]


def listening_target_words(listening: Mapping[str, Any], default_duration: int = 240) -> int:
    """words ~= seconds x 150/60, clamped to what one TTS request can carry."""

    if listening.get("use_word_count_mode") and listening.get("word_count"):
        return _clamp(int(listening["word_count"]), *LISTENING_WORD_RANGE)
    seconds = int(listening.get("duration_seconds") or default_duration)
    return _clamp(round(seconds * SPEECH_WORDS_PER_MINUTE / 60), *LISTENING_WORD_RANGE)


def _speaker_settings(listening: Mapping[str, Any]) -> Dict[str, Any]:
    speaker_config = listening.get("speaker_config") or {}
    speaker1 = speaker_config.get("speaker1") or {}
    speaker2 = speaker_config.get("speaker2") or {}
    monologue = bool(listening.get("monologue_mode"))
    if speaker1.get("voice_name"):
        gender = voice_gender(speaker1["voice_name"])
    elif speaker1.get("gender") in ("male", "female"):
        gender = speaker1["gender"]
    else:
        gender = voice_gender(None)
    return {
        "two_speakers": speaker_config.get("use_two_speakers", True) is not False and not monologue,
        "speaker1_gender": gender,
        "speaker1_accent": speaker1.get("accent"),
        "speaker2_accent": speaker2.get("accent"),
    }


def resolve_prompt_config(
    module: str,
    question_type: str,
    *,
    question_count: int | None,
    rng: random.Random,
    reading: Mapping[str, Any] | None = None,
    listening: Mapping[str, Any] | None = None,
    writing: Mapping[str, Any] | None = None,
    default_duration: int = 240,
) -> PromptConfig:
    count = question_count or default_question_count(module, question_type)
    if question_type == "MULTIPLE_CHOICE_MULTIPLE":
        count = _clamp(count, 2, 5)
    else:
        count = _clamp(count, 1, 40)

    if module == "reading":
        reading = reading or {}
        paragraphs, words = _reading_sizing(reading)
        if question_type == "MATCHING_HEADINGS":
            count = min(count, 9)
            paragraphs = max(paragraphs, count)
        variant = "standard"
        if question_type == "FILL_IN_BLANK":
            variant = reading.get("fill_variant") if reading.get("fill_variant") in FILL_VARIANTS else rng.choice(FILL_VARIANTS)
        limit = reading.get("word_limit") if reading.get("word_limit") in (1, 2, 3) else rng.choice((1, 2, 3))
        if question_type == "TABLE_COMPLETION":
            limit = 2
        return PromptConfig(
            question_count=count,
            paragraph_count=paragraphs,
            word_count=words,
            fill_variant=variant,
            word_limit=limit,
        )

    if module == "listening":
        listening = listening or {}
        speakers = _speaker_settings(listening)
        spelling = None
        spelling_raw = listening.get("spelling_mode") or {}
        if spelling_raw.get("enabled") and speakers["two_speakers"] and question_type == "FILL_IN_BLANK":
            spelling = SpellingSettings(
                scenario=spelling_raw.get("test_scenario") or "phone_call",
                difficulty=spelling_raw.get("spelling_difficulty") or "low",
                number_format=spelling_raw.get("number_format") or "phone_number",
            )
        return PromptConfig(
            question_count=count,
            word_limit=2 if question_type == "TABLE_COMPLETION" else 3,
            scenario=rng.choice(tuple(LISTENING_SCENARIOS)),
            target_words=listening_target_words(listening, default_duration),
            spelling=spelling,
            **speakers,
        )

    if module == "writing":
        writing = writing or {}
        visual = str(writing.get("task1_visual_type") or "RANDOM").upper()
        essay = str(writing.get("task2_essay_type") or "RANDOM").upper()
        return PromptConfig(
            question_count=count,
            writing_task="task1" if question_type == "TASK_1" else "task2",
            visual_type=visual if visual in VISUAL_TYPES else rng.choice(VISUAL_TYPES),
            essay_type=essay if essay in ESSAY_TYPES else rng.choice(ESSAY_TYPES),
        )

    if module == "speaking":
        return PromptConfig(question_count=count, speaking_part=question_type)

    raise ValueError(f"Unsupported module: {module}")


def template_for(module: str, question_type: str) -> QuestionTemplate:
    if module == "reading":
        return READING_TEMPLATES.get(question_type, READING_TEMPLATES[READING_FALLBACK])
    if module == "listening":
        return LISTENING_TEMPLATES.get(question_type, LISTENING_TEMPLATES[LISTENING_FALLBACK])
    raise ValueError(f"No question templates for module: {module}")


def group_instruction(module: str, question_type: str, config: PromptConfig) -> str:
    return resolve(template_for(module, question_type).instruction, config)


def build_prompt(module: str, question_type: str, difficulty: str, topic: str, config: PromptConfig) -> str:
    """Pure: identical arguments always produce an identical prompt."""

    if module == "reading":
        return render_prompt(
            reading_header(difficulty, topic, config),
            template_for(module, question_type),
            config,
            READING_ENVELOPE,
        )
    if module == "listening":
        return render_prompt(
            listening_header(difficulty, topic, config),
            template_for(module, question_type),
            config,
            listening_envelope(config),
        )
    if module == "writing":
        if config.writing_task == "task1":
            return build_task1_prompt(config.visual_type, difficulty, topic)
        return build_task2_prompt(config.essay_type, difficulty, topic)
    if module == "speaking":
        return build_speaking_prompt(config.speaking_part, difficulty, topic, config.question_count)
    raise ValueError(f"Unsupported module: {module}")


def writing_task_configs(question_type: str, config: PromptConfig) -> Dict[str, PromptConfig]:
    if question_type == "FULL_TEST":
        return {
            "task1": replace(config, writing_task="task1"),
            "task2": replace(config, writing_task="task2"),
        }
    return {config.writing_task: config}


def build_image_prompt(kind: str, payload: Mapping[str, Any]) -> str:
    if kind == "map":
        labels = ", ".join(f"{item.get('id')}" for item in payload.get("map_labels") or [])
        landmarks = ", ".join(str(item.get("text")) for item in payload.get("landmarks") or [])
        return (
            f"Draw a clean black-and-white {str(payload.get('map_type') or 'floor_plan').replace('_', ' ')} "
            f"for a language exam. Layout: {payload.get('map_description', '')} "
            f"Mark places only with the letters {labels}; write the landmark names in full: {landmarks}. "
            "Top-down view, simple shapes, no other text."
        )
    if kind == "flowchart":
        steps = " -> ".join(
            "[   ]" if step.get("is_blank") else str(step.get("label"))
            for step in payload.get("flowchart_steps") or []
        )
        return (
            f"Draw a simple vertical flow-chart titled '{payload.get('flowchart_title', '')}'. "
            f"Boxes in order: {steps}. Leave empty boxes blank. Black lines on white, exam style."
        )
    if kind == "table":
        rows = []
        for row in payload.get("table_data") or []:
            rows.append(" | ".join("[   ]" if cell.get("has_question") else str(cell.get("content")) for cell in row))
        return (
            "Draw a plain three-column exam table with these rows, top row as headers: "
            + " // ".join(rows)
            + ". Leave the bracketed cells empty. Black grid lines on white."
        )
    if kind == "chart":
        visual = str(payload.get("visual_type") or "chart").replace("_", " ").lower()
        data = json.dumps(payload.get("chartData") or {}, separators=(",", ":"))
        return (
            f"Draw an IELTS Writing Task 1 {visual} exactly matching this data: {data}. "
            "Clear axis labels and legend, flat colours, white background, no extra text."
        )
    raise ValueError(f"Unknown image kind: {kind}")
