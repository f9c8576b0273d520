"""Tests for prompt configuration and the pure prompt builders."""

from __future__ import annotations

import json
import random

import pytest

from ielts_app.services import prompt_catalog
from ielts_app.services.prompt_catalog import (
    build_image_prompt,
    build_prompt,
    default_question_count,
    listening_target_words,
    normalize_question_type,
    pick_topic,
    resolve_prompt_config,
    writing_task_configs,
)
from ielts_app.services.prompt_templates import IELTS_TOPICS, PromptConfig, SpellingSettings


def _config(module, question_type, seed=7, **kwargs):
    kwargs.setdefault("question_count", None)
    return resolve_prompt_config(module, question_type, rng=random.Random(seed), **kwargs)


@pytest.mark.parametrize(
    "module, raw, expected",
    [
        ("reading", "true_false_not_given", "TRUE_FALSE_NOT_GIVEN"),
        ("reading", "DRAG_AND_DROP_OPTIONS", "FILL_IN_BLANK"),
        ("listening", "SUMMARY_WORD_BANK", "FILL_IN_BLANK"),
        ("listening", None, "FILL_IN_BLANK"),
        ("writing", "essay", "FULL_TEST"),
        ("speaking", "PART_2", "PART_2"),
    ],
)
def test_normalize_question_type(module, raw, expected):
    assert normalize_question_type(module, raw) == expected


def test_normalize_question_type_rejects_unknown_module():
    with pytest.raises(ValueError):
        normalize_question_type("grammar", "FILL_IN_BLANK")


def test_default_counts_differ_per_module():
    assert default_question_count("reading", "MULTIPLE_CHOICE_MULTIPLE") == 3
    assert default_question_count("listening", "MULTIPLE_CHOICE_MULTIPLE") == 2
    assert default_question_count("reading", "TRUE_FALSE_NOT_GIVEN") == 5
    assert default_question_count("speaking", "FULL_TEST") == 4


def test_pick_topic_prefers_the_request():
    rng = random.Random(1)
    assert pick_topic("  Coral reefs ", rng) == "Coral reefs"
    assert pick_topic(None, rng) in IELTS_TOPICS


def test_multi_answer_count_is_clamped():
    assert _config("reading", "MULTIPLE_CHOICE_MULTIPLE", question_count=9).question_count == 5
    assert _config("listening", "MULTIPLE_CHOICE_MULTIPLE", question_count=1).question_count == 2


def test_reading_sizing_modes():
    words_mode = _config("reading", "TRUE_FALSE_NOT_GIVEN", reading={"use_word_count_mode": True, "word_count": 900})
    assert (words_mode.paragraph_count, words_mode.word_count) == (9, 900)
    paragraph_mode = _config("reading", "TRUE_FALSE_NOT_GIVEN", reading={"paragraph_count": 4})
    assert (paragraph_mode.paragraph_count, paragraph_mode.word_count) == (4, 440)
    default = _config("reading", "TRUE_FALSE_NOT_GIVEN")
    assert (default.paragraph_count, default.word_count) == (6, 750)


def test_headings_never_exceed_paragraphs():
    config = _config("reading", "MATCHING_HEADINGS", question_count=12, reading={"paragraph_count": 4})
    assert config.question_count == 9
    assert config.paragraph_count == 9


def test_reading_fill_options_from_request_are_kept():
    config = _config("reading", "FILL_IN_BLANK", reading={"fill_variant": "note_style", "word_limit": 1})
    assert config.fill_variant == "note_style"
    assert config.word_limit == 1


def test_table_completion_uses_two_word_limit():
    assert _config("reading", "TABLE_COMPLETION", reading={"word_limit": 3}).word_limit == 2
    assert _config("listening", "TABLE_COMPLETION").word_limit == 2


def test_same_seed_gives_identical_config_and_prompt():
    first = _config("reading", "FILL_IN_BLANK", seed=42)
    second = _config("reading", "FILL_IN_BLANK", seed=42)
    assert first == second
    assert build_prompt("reading", "FILL_IN_BLANK", "hard", "Bees", first) == build_prompt(
        "reading", "FILL_IN_BLANK", "hard", "Bees", second
    )


@pytest.mark.parametrize(
    "listening, expected",
    [
        ({}, 600),
        ({"duration_seconds": 120}, 300),
        ({"duration_seconds": 10}, 100),
        ({"use_word_count_mode": True, "word_count": 5000}, 1200),
    ],
)
def test_listening_target_words(listening, expected):
    assert listening_target_words(listening, 240) == expected


def test_listening_speakers_and_spelling():
    config = _config(
        "listening",
        "FILL_IN_BLANK",
        listening={
            "speaker_config": {"speaker1": {"voice_name": "Aoede"}, "use_two_speakers": True},
            "spelling_mode": {"enabled": True, "test_scenario": "hotel_booking", "number_format": "postcode"},
        },
    )
    assert config.two_speakers is True
    assert config.speaker1_gender == "female"
    assert config.speaker2_gender == "male"
    assert config.spelling == SpellingSettings(scenario="hotel_booking", difficulty="low", number_format="postcode")


def test_spelling_needs_two_speakers_and_fill_in_blank():
    monologue = _config(
        "listening",
        "FILL_IN_BLANK",
        listening={"monologue_mode": True, "spelling_mode": {"enabled": True}},
    )
    assert monologue.two_speakers is False
    assert monologue.spelling is None
    mcq = _config("listening", "MULTIPLE_CHOICE", listening={"spelling_mode": {"enabled": True}})
    assert mcq.spelling is None


def test_listening_prompt_carries_gender_and_gap_rules():
    config = PromptConfig(question_count=6, word_limit=3, speaker1_gender="male", target_words=500)
    prompt = build_prompt("listening", "FILL_IN_BLANK", "medium", "Library membership", config)
    assert "Speaker1) is MALE" in prompt
    assert "Speaker2) is FEMALE" in prompt
    assert "30%" in prompt
    assert "Library membership" in prompt
    assert "Band 6-6.5" in prompt


def test_monologue_prompt_has_single_speaker_envelope():
    config = PromptConfig(question_count=4, two_speakers=False)
    prompt = build_prompt("listening", "NOTE_COMPLETION", "easy", "Museum tour", config)
    assert "Speaker2) is" not in prompt
    assert '"Speaker2"' not in prompt


def test_reading_prompt_lists_paragraph_labels_and_json_shape():
    config = PromptConfig(question_count=3, paragraph_count=4, word_count=440)
    prompt = build_prompt("reading", "MULTIPLE_CHOICE_MULTIPLE", "expert", "Bees", config)
    assert "[A], [B], [C], [D]" in prompt
    assert "Band 8-9" in prompt
    example = json.loads(prompt.split("Return ONLY valid JSON in this exact format:\n", 1)[1])
    assert example["passage"]["title"]
    question = example["questions"][0]
    assert question["max_answers"] == 3
    assert len(question["options"]) == 6
    assert question["correct_answer"] == "A,C,E"


def test_writing_configs_for_full_test():
    config = _config("writing", "FULL_TEST", writing={"task1_visual_type": "PIE_CHART", "task2_essay_type": "opinion"})
    tasks = writing_task_configs("FULL_TEST", config)
    assert list(tasks) == ["task1", "task2"]
    assert tasks["task1"].visual_type == "PIE_CHART"
    assert tasks["task2"].essay_type == "OPINION"
    assert "Writing Task 1" in build_prompt("writing", "FULL_TEST", "medium", "Energy", tasks["task1"])
    assert "Writing Task 2" in build_prompt("writing", "FULL_TEST", "medium", "Energy", tasks["task2"])


def test_random_visual_type_is_drawn_from_the_catalog():
    config = _config("writing", "TASK_1", writing={"task1_visual_type": "RANDOM"})
    assert config.visual_type in prompt_catalog.VISUAL_TYPES
    assert config.writing_task == "task1"


def test_speaking_prompt_for_single_part():
    config = _config("speaking", "PART_2")
    prompt = build_prompt("speaking", "PART_2", "medium", "A memorable trip", config)
    assert "A memorable trip" in prompt


def test_image_prompts_reflect_payload():
    map_prompt = build_image_prompt(
        "map",
        {"map_type": "street_map", "map_description": "A town centre", "map_labels": [{"id": "A"}, {"id": "B"}], "landmarks": [{"text": "Bank"}]},
    )
    assert "street map" in map_prompt
    assert "A, B" in map_prompt
    assert "Bank" in map_prompt
    table_prompt = build_image_prompt(
        "table",
        {"table_data": [[{"content": "Day", "has_question": False}, {"content": "", "has_question": True}, {"content": "Price", "has_question": False}]]},
    )
    assert "Day | [   ] | Price" in table_prompt
    with pytest.raises(ValueError):
        build_image_prompt("video", {})
