"""Tests for turning parsed model output into canonical question groups."""

from __future__ import annotations

import random

import pytest

from ielts_app.services.content_assembler import (
    AssemblyContext,
    AssemblyError,
    answer_within_limit,
    assemble,
    build_writing_task,
    display_transcript,
    extract_passage,
    extract_script,
    normalize_speaking_parts,
    shuffle_with_markers,
    tts_script,
)


class NoShuffle(random.Random):
    def shuffle(self, x):
        return None


def _context(count, seed=3, **kwargs):
    return AssemblyContext(module=kwargs.pop("module", "reading"), question_count=count, rng=random.Random(seed), **kwargs)


def _q(number, answer, text="Question", **extra):
    return {"question_number": number, "question_text": f"{text} {number}", "correct_answer": answer, "explanation": "why", **extra}


def _option_text(options, letter, key="letter"):
    return next(item["text"] for item in options if item[key] == letter)


def test_shuffle_with_markers_tracks_positions():
    items = ["a", "b", "c", "d", "e"]
    shuffled, position = shuffle_with_markers(items, random.Random(11))
    assert sorted(shuffled) == items
    for old, new in position.items():
        assert shuffled[new] == items[old]


@pytest.mark.parametrize(
    "answer, limit, expected",
    [
        ("library", 1, True),
        ("pottery class", 2, True),
        ("evening pottery class", 2, False),
        ("12 May", 1, True),
        ("12 14 May", 1, False),
        ("£8", 1, True),
    ],
)
def test_answer_within_limit(answer, limit, expected):
    assert answer_within_limit(answer, limit) is expected


def test_true_false_not_given_answers_are_normalised():
    parsed = {"questions": [_q(1, "true"), _q(2, "Not Given"), _q(3, "NG"), _q(4, "FALSE")]}
    group = assemble("TRUE_FALSE_NOT_GIVEN", parsed, _context(4))
    assert [q["correct_answer"] for q in group["questions"]] == ["TRUE", "NOT GIVEN", "NOT GIVEN", "FALSE"]
    assert group["start_question"] == 1
    assert group["end_question"] == 4
    assert group["options"] is None


def test_judgement_rejects_other_answers():
    with pytest.raises(AssemblyError):
        assemble("YES_NO_NOT_GIVEN", {"questions": [_q(1, "TRUE")]}, _context(1))


def test_questions_are_truncated_to_the_requested_count():
    parsed = {"questions": [_q(n, "TRUE") for n in range(1, 8)]}
    group = assemble("TRUE_FALSE_NOT_GIVEN", parsed, _context(5))
    assert [q["question_number"] for q in group["questions"]] == [1, 2, 3, 4, 5]


def test_too_few_questions_is_an_error():
    with pytest.raises(AssemblyError):
        assemble("TRUE_FALSE_NOT_GIVEN", {"questions": [_q(1, "TRUE"), _q(2, "FALSE")]}, _context(3))


@pytest.mark.parametrize("seed", range(6))
def test_single_choice_answer_follows_the_shuffle(seed):
    options = [{"letter": "A", "text": "Wrong one"}, {"letter": "B", "text": "Right"}, {"letter": "C", "text": "Wrong two"}, {"letter": "D", "text": "Wrong three"}]
    parsed = {"questions": [_q(1, "B", options=options), _q(2, "A. Wrong one", options=options)]}
    group = assemble("MULTIPLE_CHOICE", parsed, _context(2, seed=seed))
    first, second = group["questions"]
    assert [item["letter"] for item in first["options"]] == ["A", "B", "C", "D"]
    assert _option_text(first["options"], first["correct_answer"]) == "Right"
    assert _option_text(second["options"], second["correct_answer"]) == "Wrong one"


def test_single_choice_accepts_prefixed_strings():
    parsed = {"questions": [_q(1, "C", options=["A. Bus", "B. Train", "C. Ferry"])]}
    group = assemble("MULTIPLE_CHOICE_SINGLE", parsed, _context(1, module="listening"))
    question = group["questions"][0]
    assert _option_text(question["options"], question["correct_answer"]) == "Ferry"


def test_single_choice_with_unknown_answer_letter_fails():
    parsed = {"questions": [_q(1, "F", options=["A. Bus", "B. Train", "C. Ferry"])]}
    with pytest.raises(AssemblyError):
        assemble("MULTIPLE_CHOICE", parsed, _context(1))


def test_multiple_answer_question_fans_out_into_slots():
    texts = [f"Statement {n}" for n in range(6)]
    options = [{"letter": "ABCDEF"[n], "text": texts[n]} for n in range(6)]
    parsed = {"questions": [_q(1, "A,C,E", options=options)]}
    group = assemble("MULTIPLE_CHOICE_MULTIPLE", parsed, _context(3))

    questions = group["questions"]
    assert [q["question_number"] for q in questions] == [1, 2, 3]
    assert len({q["correct_answer"] for q in questions}) == 1
    letters = questions[0]["correct_answer"].split(",")
    assert letters == sorted(letters)
    chosen = {_option_text(group["options"]["options"], letter) for letter in letters}
    assert chosen == {texts[0], texts[2], texts[4]}
    assert group["options"]["max_answers"] == 3
    assert group["end_question"] == 3


def test_multiple_answer_needs_distractors_and_exact_answer_count():
    options = ["A. one", "B. two", "C. three"]
    with pytest.raises(AssemblyError):
        assemble("MULTIPLE_CHOICE_MULTIPLE", {"questions": [_q(1, "A,B,C", options=options)]}, _context(3))
    options = ["A. one", "B. two", "C. three", "D. four", "E. five"]
    with pytest.raises(AssemblyError):
        assemble("MULTIPLE_CHOICE_MULTIPLE", {"questions": [_q(1, "A,B", options=options)]}, _context(3))


def test_matching_headings_use_roman_ids_after_shuffle():
    headings = [{"id": numeral, "text": f"Heading {numeral}"} for numeral in ("i", "ii", "iii", "iv", "v", "vi")]
    parsed = {"headings": headings, "questions": [_q(1, "ii"), _q(2, "iv"), _q(3, "i")]}
    group = assemble("MATCHING_HEADINGS", parsed, _context(3))
    pool = group["options"]["headings"]
    assert [item["id"] for item in pool] == ["i", "ii", "iii", "iv", "v", "vi"]
    texts = [_option_text(pool, q["correct_answer"], key="id") for q in group["questions"]]
    assert texts == ["Heading ii", "Heading iv", "Heading i"]


def test_matching_headings_need_more_headings_than_questions():
    headings = [{"id": "i", "text": "One"}, {"id": "ii", "text": "Two"}]
    with pytest.raises(AssemblyError):
        assemble("MATCHING_HEADINGS", {"headings": headings, "questions": [_q(1, "i"), _q(2, "ii")]}, _context(2))


def test_summary_gaps_must_match_questions():
    bank = [{"letter": "ABCDEF"[n], "text": word} for n, word in enumerate(["bees", "honey", "wax", "hives", "pollen", "queens"])]
    good = {"summary_text": "Bees make {{1}} and store it in {{2}}.", "word_bank": bank, "questions": [_q(1, "B"), _q(2, "D")]}
    group = assemble("SUMMARY_WORD_BANK", good, _context(2))
    answers = [_option_text(group["options"]["word_bank"], q["correct_answer"]) for q in group["questions"]]
    assert answers == ["honey", "hives"]

    bad = dict(good, summary_text="Bees make {{1}} only.")
    with pytest.raises(AssemblyError):
        assemble("SUMMARY_COMPLETION", bad, _context(2))


def test_drag_and_drop_answers_are_option_text():
    parsed = {
        "drag_options": ["Museum", "Park", "Library", "Cinema", "Zoo"],
        "questions": [_q(1, "park"), _q(2, "Library"), _q(3, "zoo")],
    }
    group = assemble("DRAG_AND_DROP_OPTIONS", parsed, _context(3, module="listening"))
    assert sorted(group["options"]["options"] if isinstance(group["options"], dict) else group["options"]) == sorted(
        ["Museum", "Park", "Library", "Cinema", "Zoo"]
    )
    assert [q["correct_answer"] for q in group["questions"]] == ["Park", "Library", "Zoo"]


def _map_parsed():
    labels = [{"id": "ABCDEF"[n], "text": name, "x": n * 10, "y": 50} for n, name in enumerate(["Cafe", "Bank", "Gym", "Shop", "Pool", "Park"])]
    return {
        "map_description": "A small town centre",
        "map_labels": labels,
        "landmarks": [{"text": "Station"}],
        "questions": [_q(1, "A"), _q(2, "B"), _q(3, "C")],
    }


@pytest.mark.parametrize("seed", range(5))
def test_map_answers_are_not_sequential(seed):
    calls = []

    def provider(kind, payload):
        calls.append(kind)
        return "/api/media/token"

    group = assemble("MAP_LABELING", _map_parsed(), _context(3, seed=seed, module="listening", image_provider=provider))
    answers = [q["correct_answer"] for q in group["questions"]]
    assert answers != ["A", "B", "C"]
    labels = group["options"]["map_labels"]
    assert [_option_text(labels, answer, key="id") for answer in answers] == ["Cafe", "Bank", "Gym"]
    moved = next(item for item in labels if item["text"] == "Bank")
    assert moved["x"] == 10
    assert group["options"]["map_type"] == "street_map"
    assert group["options"]["image_url"] == "/api/media/token"
    assert calls == ["map"]


def test_map_gives_up_when_order_cannot_be_broken():
    with pytest.raises(AssemblyError):
        assemble("MAP_LABELING", _map_parsed(), AssemblyContext(module="reading", question_count=3, rng=NoShuffle()))


def _table_parsed(second_blank=2):
    return {
        "table_data": [
            [{"content": "Day", "is_header": True}, {"content": "Activity", "is_header": True}, {"content": "Cost", "is_header": True}],
            [{"content": "Monday"}, {"content": "", "has_question": True, "question_number": 1}, {"content": "£5"}],
            [{"content": "Tuesday"}, {"content": "Yoga"}, {"content": "", "has_question": True, "question_number": second_blank}],
        ],
        "questions": [_q(1, "pottery class"), _q(2, "£8")],
    }


def test_table_completion_keeps_three_cells_and_injects_image():
    group = assemble("TABLE_COMPLETION", _table_parsed(), _context(2, image_provider=lambda kind, payload: f"/img/{kind}"))
    table = group["options"]["table_data"]
    assert all(len(row) == 3 for row in table)
    assert table[1][1]["question_number"] == 1
    assert table[0][0]["question_number"] is None
    assert group["options"]["image_url"] == "/img/table"


def test_table_blanks_must_match_questions():
    with pytest.raises(AssemblyError):
        assemble("TABLE_COMPLETION", _table_parsed(second_blank=5), _context(2))


def test_table_rows_need_three_cells():
    parsed = _table_parsed()
    parsed["table_data"][1] = parsed["table_data"][1][:2]
    with pytest.raises(AssemblyError):
        assemble("TABLE_COMPLETION", parsed, _context(2))


def test_table_word_limit_is_two():
    parsed = _table_parsed()
    parsed["questions"][0]["correct_answer"] = "evening pottery class"
    with pytest.raises(AssemblyError):
        assemble("TABLE_COMPLETION", parsed, _context(2))


def test_fill_in_blank_paragraph_variant():
    parsed = {
        "display_as_paragraph": True,
        "paragraph_text": "The (1) _____ opens at (2) _____ every day.",
        "questions": [_q(1, "city library"), _q(2, "9 am")],
    }
    group = assemble("FILL_IN_BLANK", parsed, _context(2, word_limit=2))
    assert group["options"]["display_as_paragraph"] is True
    assert "(2)" in group["options"]["paragraph_text"]


def test_fill_in_blank_paragraph_ignores_bracketed_years():
    parsed = {
        "display_as_paragraph": True,
        "paragraph_text": "The first engine (1712) was (1) _____ and needed (2) _____",
        "questions": [_q(1, "heavy"), _q(2, "coal supplies")],
    }
    group = assemble("FILL_IN_BLANK", parsed, _context(2, word_limit=2))
    assert [q["correct_answer"] for q in group["questions"]] == ["heavy", "coal supplies"]


def test_fill_in_blank_paragraph_gap_mismatch():
    parsed = {
        "display_as_paragraph": True,
        "paragraph_text": "The (1) _____ opens early.",
        "questions": [_q(1, "library"), _q(2, "nine")],
    }
    with pytest.raises(AssemblyError):
        assemble("FILL_IN_BLANK", parsed, _context(2, word_limit=2))


def test_fill_in_blank_enforces_word_limit_and_variety():
    too_long = {"questions": [_q(1, "the old city library")]}
    with pytest.raises(AssemblyError):
        assemble("FILL_IN_BLANK", too_long, _context(1, word_limit=3))

    uniform = {"questions": [_q(1, "library"), _q(2, "museum"), _q(3, "harbour")]}
    with pytest.raises(AssemblyError):
        assemble("FILL_IN_BLANK", uniform, _context(3, word_limit=3))

    varied = {"questions": [_q(1, "library"), _q(2, "art museum"), _q(3, "harbour")]}
    group = assemble("SHORT_ANSWER", varied, _context(3, word_limit=3))
    assert group["options"] is None


def test_spelling_mode_canonicalises_answers():
    parsed = {"questions": [_q(1, "J-O-N-E-S"), _q(2, "double oh seven"), _q(3, "Harbour Street")]}
    group = assemble("FILL_IN_BLANK", parsed, _context(3, module="listening", word_limit=3, spelling_mode=True))
    assert [q["correct_answer"] for q in group["questions"]] == ["Jones", "007", "Harbour Street"]


def test_notes_sections_must_cover_every_question():
    sections = [{"title": "Venue", "items": [{"text_before": "Room", "question_number": 1, "text_after": ""}]}]
    parsed = {"note_sections": sections, "questions": [_q(1, "blue"), _q(2, "level two")]}
    with pytest.raises(AssemblyError):
        assemble("NOTE_COMPLETION", parsed, _context(2, word_limit=2))


def test_flowchart_blanks_and_image():
    parsed = {
        "flowchart_title": "Making paper",
        "flowchart_steps": [
            {"id": "s1", "label": "Collect wood"},
            {"id": "s2", "label": "", "is_blank": True, "question_number": 1},
            {"id": "s3", "label": "", "is_blank": True, "question_number": 2},
        ],
        "questions": [_q(1, "pulp"), _q(2, "dried sheets")],
    }
    group = assemble("FLOWCHART_COMPLETION", parsed, _context(2, word_limit=2, image_provider=lambda kind, payload: None))
    steps = group["options"]["flowchart_steps"]
    assert [step["question_number"] for step in steps] == [None, 1, 2]
    assert "image_url" not in group["options"]


def test_unknown_type_falls_back_to_fill_in_blank_and_default_instruction():
    group = assemble("SOMETHING_NEW", {"questions": [_q(1, "river")]}, _context(1, instruction="Write ONE WORD ONLY."))
    assert group["instruction"] == "Write ONE WORD ONLY."
    group = assemble("FILL_IN_BLANK", {"questions": [_q(1, "river")]}, _context(1))
    assert group["instruction"] == "Questions 1-1"


def test_missing_questions_is_an_error():
    with pytest.raises(AssemblyError):
        assemble("FILL_IN_BLANK", {"questions": []}, _context(1))
    with pytest.raises(AssemblyError):
        assemble("FILL_IN_BLANK", ["not", "an", "object"], _context(1))


def test_extract_passage():
    passage = extract_passage({"passage": {"title": "Bees", "content": "[A] Bees are insects."}})
    assert passage["title"] == "Bees"
    with pytest.raises(AssemblyError):
        extract_passage({"passage": {"title": "Bees"}})


def test_script_helpers():
    dialogue = "Speaker1: Hello <break time='500ms'/> there, welcome to the centre.\nSpeaker2: Hi, I'd like to join."
    script, names = extract_script({"dialogue": dialogue, "speaker_names": {"Speaker1": "Tom"}})
    assert names == {"Speaker1": "Tom"}
    assert display_transcript(script, names) == "Tom: Hello there, welcome to the centre.\nSpeaker 2: Hi, I'd like to join."
    assert tts_script(script, True) == script
    assert not tts_script(script, False).startswith("Speaker1")
    with pytest.raises(AssemblyError):
        extract_script({"dialogue": "Speaker1: Hi."})


def test_writing_task_shapes():
    with pytest.raises(AssemblyError):
        build_writing_task({"instruction": "The chart below shows..."}, "task1")
    task1 = build_writing_task(
        {"instruction": "The chart below shows sales.", "visualData": {"labels": ["A"], "values": [1]}},
        "task1",
        visual_type="BAR_CHART",
    )
    assert (task1["word_limit_min"], task1["word_limit_max"]) == (150, 200)
    assert task1["visual_type"] == "BAR_CHART"
    task2 = build_writing_task({"instruction": "Some people think..."}, "task2", essay_type="OPINION")
    assert (task2["word_limit_min"], task2["word_limit_max"]) == (250, 350)
    assert task2["essay_type"] == "OPINION"
    assert task2["chartData"] is None


def test_speaking_parts_use_default_timings():
    parsed = {
        "parts": [
            {"part_number": 1, "questions": [{"question_text": "Do you work or study?", "sample_answer": "I study."}]},
            {"part_number": 2, "cue_card_topic": "Describe a trip", "cue_card_content": ["where", "when"], "questions": []},
            {"part_number": 3, "questions": [{"question_text": "Why do people travel?"}]},
        ]
    }
    parts = normalize_speaking_parts(parsed, "FULL_TEST")
    assert [part["part_number"] for part in parts] == [1, 2, 3]
    assert parts[0]["time_limit_seconds"] == 300
    assert (parts[1]["preparation_time_seconds"], parts[1]["speaking_time_seconds"]) == (60, 120)
    assert parts[1]["cue_card_topic"] == "Describe a trip"
    assert parts[2]["questions"][0]["sample_answer"] is None

    only_two = normalize_speaking_parts(parsed, "PART_2")
    assert len(only_two) == 1

    with pytest.raises(AssemblyError):
        normalize_speaking_parts({"parts": parsed["parts"][:2]}, "FULL_TEST")
