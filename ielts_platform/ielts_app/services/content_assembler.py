"""Turn parsed model JSON into canonical question groups.

Every option-bearing type goes through :func:`shuffle_with_markers`: the pool is
permuted together with the original indexes, and answer letters are derived from
the new positions. Letters produced by the model are only used to locate the
original option, never carried across the shuffle.
"""

from __future__ import annotations

import random
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .answer_normalizer import canonicalize_answer
from .prompt_templates import OPTION_LETTERS, ROMAN_NUMERALS
from .speaking_prompts import EXAMINER_PHRASES, PART_TIMINGS, parts_for
from .writing_prompts import WORD_LIMITS

ImageProvider = Callable[[str, Mapping[str, Any]], Optional[str]]

MAX_MAP_RESHUFFLES = 10
MIN_DIALOGUE_CHARS = 50

JUDGEMENT_ANSWERS = {
    "TRUE_FALSE_NOT_GIVEN": ("TRUE", "FALSE", "NOT GIVEN"),
    "YES_NO_NOT_GIVEN": ("YES", "NO", "NOT GIVEN"),
}

DISPLAY_KEYS = (
    "display_as_paragraph",
    "paragraph_text",
    "show_bullets",
    "show_headings",
    "group_title",
    "note_style_enabled",
    "note_categories",
)

_PARAGRAPH_GAP_RE = re.compile(r"\((\d+)\)\s*_{2,}")
_SUMMARY_GAP_RE = re.compile(r"\{\{\s*(\d+)\s*\}\}")
_LETTER_PREFIX_RE = re.compile(r"^\s*([A-Za-z])\s*[.):]\s*(.+)$", re.S)
_NUMERAL_RE = re.compile(r"^[£$€]?\d[\d,.:/]*(?:%|st|nd|rd|th|am|pm|kg|km|m)?$", re.I)
_SPEAKER_RE = re.compile(r"^(\s*)Speaker\s*([12])\s*:", re.M)
_BREAK_RE = re.compile(r"<break\b[^>]*/?>", re.I)


class AssemblyError(ValueError):
    """The model output is missing required content or violates a group invariant."""


@dataclass
class AssemblyContext:
    module: str
    question_count: int
    instruction: str = ""
    word_limit: int = 3
    rng: random.Random = field(default_factory=random.Random)
    start_question: int = 1
    spelling_mode: bool = False
    image_provider: ImageProvider | None = None


# --- helpers ------------------------------------------------------------------------------


def shuffle_with_markers(items: Sequence[Any], rng: random.Random) -> Tuple[List[Any], Dict[int, int]]:
    """Return the shuffled items and a map from original index to new index."""

    order = list(range(len(items)))
    rng.shuffle(order)
    return [items[index] for index in order], {old: new for new, old in enumerate(order)}


def answer_within_limit(answer: str, limit: int) -> bool:
    """At most ``limit`` words plus at most one numeral."""

    tokens = answer.split()
    numerals = sum(1 for token in tokens if _NUMERAL_RE.match(token))
    return numerals <= 1 and len(tokens) - numerals <= limit


def _text(value: Any) -> str:
    return " ".join(str(value).split()) if value is not None else ""


def _require_text(mapping: Mapping[str, Any], key: str, what: str) -> str:
    value = mapping.get(key)
    if not isinstance(value, str) or not value.strip():
        raise AssemblyError(f"Missing {what}")
    return value.strip()


def _pool(raw: Any, what: str, default_key: str = "letter") -> Tuple[List[Dict[str, Any]], List[str]]:
    """Normalize an option list; returns the items and the identifiers the model used."""

    if not isinstance(raw, list) or not raw:
        raise AssemblyError(f"Missing {what}")
    strip_plain = all(
        isinstance(item, str) and item.startswith(f"{OPTION_LETTERS[index]} ")
        for index, item in enumerate(raw[: len(OPTION_LETTERS)])
    )
    items: List[Dict[str, Any]] = []
    ids: List[str] = []
    for index, item in enumerate(raw):
        if isinstance(item, Mapping):
            text = _text(item.get("text") or item.get("content") or item.get("label"))
            ident = _text(item.get(default_key) or item.get("id") or item.get("letter"))
            extra = {key: value for key, value in item.items() if key not in ("text", "letter", "id")}
        else:
            text = _text(item)
            ident = ""
            extra = {}
            match = _LETTER_PREFIX_RE.match(text)
            if match:
                ident, text = match.group(1), _text(match.group(2))
            elif strip_plain:
                ident, text = text[0], _text(text[1:])
        if not text:
            raise AssemblyError(f"Empty entry in {what}")
        items.append({"text": text, **extra})
        ids.append((ident or (OPTION_LETTERS[index] if index < len(OPTION_LETTERS) else str(index))).upper())
    return items, ids


def _index_of(answer: str, ids: Sequence[str], what: str) -> int:
    key = _text(answer).upper()
    if key in ids:
        return ids.index(key)
    match = _LETTER_PREFIX_RE.match(key)
    if match and match.group(1).upper() in ids:
        return ids.index(match.group(1).upper())
    raise AssemblyError(f"Answer {answer!r} does not match any entry in {what}")


def _labels(count: int, roman: bool = False) -> List[str]:
    source = ROMAN_NUMERALS if roman else OPTION_LETTERS
    if count > len(source):
        raise AssemblyError("Too many options to label")
    return list(source[:count])


def _relabel(items: Sequence[Dict[str, Any]], key: str, roman: bool = False) -> List[Dict[str, Any]]:
    labels = _labels(len(items), roman)
    return [{key: labels[index], **item} for index, item in enumerate(items)]


def _questions(parsed: Mapping[str, Any], context: AssemblyContext, limit: int | None = None) -> List[Dict[str, Any]]:
    raw = parsed.get("questions")
    if not isinstance(raw, list) or not raw:
        raise AssemblyError("No questions in model output")
    if limit is None and len(raw) < context.question_count:
        raise AssemblyError(f"Expected {context.question_count} questions, got {len(raw)}")
    raw = raw[: limit or context.question_count]
    questions = []
    for offset, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise AssemblyError("Question entry is not an object")
        answer = item.get("correct_answer")
        if answer is None or not _text(answer):
            raise AssemblyError(f"Question {offset + 1} has no correct_answer")
        entry: Dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "question_number": context.start_question + offset,
            "question_text": _text(item.get("question_text")),
            "correct_answer": _text(answer),
            "explanation": _text(item.get("explanation")),
            "options": None,
        }
        if item.get("heading"):
            entry["heading"] = _text(item["heading"])
        entry["_raw"] = item
        questions.append(entry)
    return questions


def _expected_numbers(questions: Sequence[Mapping[str, Any]], context: AssemblyContext) -> List[int]:
    # Models number placeholders from 1 regardless of where the group starts.
    return [number - context.start_question + 1 for number in (q["question_number"] for q in questions)]


def _check_one_to_one(found: Iterable[Any], questions: Sequence[Mapping[str, Any]], context: AssemblyContext, what: str) -> None:
    numbers = []
    for value in found:
        try:
            numbers.append(int(value))
        except (TypeError, ValueError) as exc:
            raise AssemblyError(f"Non-numeric question reference in {what}") from exc
    if sorted(numbers) != sorted(_expected_numbers(questions, context)):
        raise AssemblyError(f"Numbered gaps in {what} do not match the questions")


def _enforce_word_limit(questions: Sequence[Dict[str, Any]], context: AssemblyContext, limit: int, *, variety: bool) -> None:
    if context.spelling_mode:
        for item in questions:
            item["correct_answer"] = canonicalize_answer(item["correct_answer"])
        return
    for item in questions:
        if not answer_within_limit(item["correct_answer"], limit):
            raise AssemblyError(
                f"Answer to question {item['question_number']} exceeds the {limit}-word limit"
            )
    if variety and limit >= 2 and len(questions) >= 3:
        lengths = {len(item["correct_answer"].split()) for item in questions}
        if len(lengths) == 1:
            raise AssemblyError("All answers have the same length")


def _inject_image(options: Dict[str, Any], kind: str, context: AssemblyContext) -> None:
    if context.image_provider is None:
        return
    url = context.image_provider(kind, options)
    if url:
        options["image_url"] = url


# --- per-family builders ------------------------------------------------------------------


def _judgement(question_type: str) -> Callable[[Mapping[str, Any], AssemblyContext], Tuple[Any, List[Dict[str, Any]]]]:
    allowed = JUDGEMENT_ANSWERS[question_type]

    def build(parsed: Mapping[str, Any], context: AssemblyContext):
        questions = _questions(parsed, context)
        for item in questions:
            answer = " ".join(item["correct_answer"].upper().replace("_", " ").split())
            if answer in ("NG", "NOTGIVEN"):
                answer = "NOT GIVEN"
            if answer not in allowed:
                raise AssemblyError(f"Answer {item['correct_answer']!r} is not one of {', '.join(allowed)}")
            item["correct_answer"] = answer
        return None, questions

    return build


def _single_choice(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    for item in questions:
        items, ids = _pool(item["_raw"].get("options"), f"options for question {item['question_number']}")
        if len(items) < 2:
            raise AssemblyError("A multiple-choice question needs at least two options")
        correct = _index_of(item["correct_answer"], ids, "the question options")
        shuffled, position = shuffle_with_markers(items, context.rng)
        item["options"] = _relabel(shuffled, "letter")
        item["correct_answer"] = OPTION_LETTERS[position[correct]]
    return None, questions


def _multiple_choice(parsed: Mapping[str, Any], context: AssemblyContext):
    template = _questions(parsed, context, limit=1)[0]
    slots = context.question_count
    items, ids = _pool(template["_raw"].get("options"), "options for the multi-answer question")
    if len(items) <= slots:
        raise AssemblyError("Multi-answer question needs more options than answers")
    answers = [part for part in template["correct_answer"].split(",") if part.strip()]
    correct = sorted({_index_of(part, ids, "the question options") for part in answers})
    if len(correct) != slots:
        raise AssemblyError(f"Expected {slots} distinct correct answers, got {len(correct)}")

    shuffled, position = shuffle_with_markers(items, context.rng)
    options = _relabel(shuffled, "letter")
    letters = ",".join(sorted(OPTION_LETTERS[position[index]] for index in correct))
    questions = []
    for offset in range(slots):
        questions.append(
            {
                "id": str(uuid.uuid4()),
                "question_number": context.start_question + offset,
                "question_text": template["question_text"],
                "correct_answer": letters,
                "explanation": template["explanation"],
                "options": options,
                "max_answers": slots,
            }
        )
    return {"options": options, "max_answers": slots, "option_format": "A"}, questions


def _shuffled_pool(
    parsed: Mapping[str, Any],
    questions: Sequence[Dict[str, Any]],
    context: AssemblyContext,
    key: str,
    label_key: str,
    *,
    roman: bool = False,
    strictly_larger: bool = True,
) -> List[Dict[str, Any]]:
    items, ids = _pool(parsed.get(key), key, default_key=label_key)
    if strictly_larger and len(items) <= len(questions):
        raise AssemblyError(f"{key} must contain more entries than there are questions")
    correct = [_index_of(item["correct_answer"], ids, key) for item in questions]
    shuffled, position = shuffle_with_markers(items, context.rng)
    labels = _labels(len(shuffled), roman)
    for item, index in zip(questions, correct):
        item["correct_answer"] = labels[position[index]]
    return _relabel(shuffled, label_key, roman)


def _headings(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    headings = _shuffled_pool(parsed, questions, context, "headings", "id", roman=True)
    return {"headings": headings}, questions


def _matching_information(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    items, ids = _pool(parsed.get("options"), "paragraph options")
    for item in questions:
        item["correct_answer"] = ids[_index_of(item["correct_answer"], ids, "paragraph options")]
    return {"options": [{"letter": ident, **entry} for ident, entry in zip(ids, items)]}, questions


def _sentence_endings(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    endings = _shuffled_pool(parsed, questions, context, "sentence_endings", "id")
    beginnings = [{"number": item["question_number"], "text": item["question_text"]} for item in questions]
    return {"sentence_beginnings": beginnings, "sentence_endings": endings}, questions


def _word_bank(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    bank = _shuffled_pool(parsed, questions, context, "word_bank", "letter")
    return {"word_bank": bank}, questions


def _summary(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    summary = _require_text(parsed, "summary_text", "summary_text")
    _check_one_to_one(_SUMMARY_GAP_RE.findall(summary), questions, context, "summary_text")
    bank = _shuffled_pool(parsed, questions, context, "word_bank", "letter")
    return {"summary_text": summary, "word_bank": bank}, questions


def _matching_letter(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    options = _shuffled_pool(parsed, questions, context, "options", "letter", strictly_larger=False)
    return {"options": options}, questions


def _drag_and_drop(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    raw = parsed.get("drag_options")
    if not isinstance(raw, list):
        raise AssemblyError("Missing drag_options")
    pool = [_text(entry.get("text") if isinstance(entry, Mapping) else entry) for entry in raw]
    pool = [entry for entry in pool if entry]
    if len(pool) <= len(questions):
        raise AssemblyError("drag_options must contain more entries than there are questions")
    lowered = [entry.lower() for entry in pool]
    correct = []
    for item in questions:
        answer = item["correct_answer"].lower()
        if answer not in lowered:
            raise AssemblyError(f"Answer {item['correct_answer']!r} is not one of the drag options")
        correct.append(lowered.index(answer))
    shuffled, position = shuffle_with_markers(pool, context.rng)
    for item, index in zip(questions, correct):
        item["correct_answer"] = shuffled[position[index]]
    return {"options": shuffled}, questions


def _is_sequential(answers: Sequence[str]) -> bool:
    return len(answers) >= 2 and all(answer == OPTION_LETTERS[index] for index, answer in enumerate(answers))


def _map_labeling(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    items, ids = _pool(parsed.get("map_labels"), "map_labels", default_key="id")
    if len(items) < len(questions):
        raise AssemblyError("map_labels must contain at least one label per question")
    correct = [_index_of(item["correct_answer"], ids, "map_labels") for item in questions]

    for _ in range(MAX_MAP_RESHUFFLES):
        shuffled, position = shuffle_with_markers(items, context.rng)
        answers = [OPTION_LETTERS[position[index]] for index in correct]
        if not _is_sequential(answers):
            break
    else:
        raise AssemblyError("Map answers follow the label order")

    for item, answer in zip(questions, answers):
        item["correct_answer"] = answer
    landmarks = parsed.get("landmarks") if isinstance(parsed.get("landmarks"), list) else []
    options = {
        "map_description": _text(parsed.get("map_description")),
        "map_type": _text(parsed.get("map_type")) or ("floor_plan" if context.module == "reading" else "street_map"),
        "map_labels": _relabel(shuffled, "id"),
        "landmarks": landmarks,
    }
    _inject_image(options, "map", context)
    return options, questions


def _cell(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        return {"content": _text(raw), "is_header": False, "has_question": False, "question_number": None}
    return {
        "content": _text(raw.get("content")),
        "is_header": bool(raw.get("is_header")),
        "has_question": bool(raw.get("has_question")),
        "question_number": raw.get("question_number") if raw.get("has_question") else None,
    }


def _table(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    rows = parsed.get("table_data")
    if not isinstance(rows, list) or not rows:
        raise AssemblyError("Missing table_data")
    table = []
    for row in rows:
        if not isinstance(row, list) or len(row) != 3:
            raise AssemblyError("Every table row must have exactly 3 cells")
        table.append([_cell(cell) for cell in row])
    blanks = [cell["question_number"] for row in table for cell in row if cell["has_question"]]
    _check_one_to_one(blanks, questions, context, "table_data")
    _enforce_word_limit(questions, context, 2, variety=False)
    options = {"table_data": table}
    _inject_image(options, "table", context)
    return options, questions


def _flowchart(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    raw_steps = parsed.get("flowchart_steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise AssemblyError("Missing flowchart_steps")
    steps = []
    for index, step in enumerate(raw_steps):
        if not isinstance(step, Mapping):
            raise AssemblyError("Flowchart step is not an object")
        blank = bool(step.get("is_blank"))
        steps.append(
            {
                "id": _text(step.get("id")) or f"step{index + 1}",
                "label": _text(step.get("label")),
                "is_blank": blank,
                "question_number": step.get("question_number") if blank else None,
            }
        )
    _check_one_to_one([step["question_number"] for step in steps if step["is_blank"]], questions, context, "flowchart_steps")
    _enforce_word_limit(questions, context, context.word_limit, variety=True)
    options = {"flowchart_title": _text(parsed.get("flowchart_title")), "flowchart_steps": steps}
    _inject_image(options, "flowchart", context)
    return options, questions


def _note_items(sections: Any, what: str) -> List[Any]:
    if not isinstance(sections, list) or not sections:
        raise AssemblyError(f"Missing {what}")
    numbers = []
    for section in sections:
        if not isinstance(section, Mapping) or not isinstance(section.get("items"), list):
            raise AssemblyError(f"Malformed section in {what}")
        numbers.extend(item.get("question_number") for item in section["items"] if isinstance(item, Mapping))
    return numbers


def _notes(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    sections = parsed.get("note_sections")
    _check_one_to_one(_note_items(sections, "note_sections"), questions, context, "note_sections")
    _enforce_word_limit(questions, context, context.word_limit, variety=True)
    return {"note_sections": sections}, questions


def _fill_in_blank(parsed: Mapping[str, Any], context: AssemblyContext):
    questions = _questions(parsed, context)
    display = {key: parsed[key] for key in DISPLAY_KEYS if key in parsed}
    if display.get("display_as_paragraph"):
        paragraph = _require_text(parsed, "paragraph_text", "paragraph_text")
        _check_one_to_one(_PARAGRAPH_GAP_RE.findall(paragraph), questions, context, "paragraph_text")
    if display.get("note_style_enabled"):
        numbers = _note_items(parsed.get("note_categories"), "note_categories")
        _check_one_to_one(numbers, questions, context, "note_categories")
    _enforce_word_limit(questions, context, context.word_limit, variety=True)
    return (display or None), questions


_BUILDERS: Dict[str, Callable[[Mapping[str, Any], AssemblyContext], Tuple[Any, List[Dict[str, Any]]]]] = {
    "TRUE_FALSE_NOT_GIVEN": _judgement("TRUE_FALSE_NOT_GIVEN"),
    "YES_NO_NOT_GIVEN": _judgement("YES_NO_NOT_GIVEN"),
    "MULTIPLE_CHOICE": _single_choice,
    "MULTIPLE_CHOICE_SINGLE": _single_choice,
    "MULTIPLE_CHOICE_MULTIPLE": _multiple_choice,
    "MATCHING_HEADINGS": _headings,
    "MATCHING_INFORMATION": _matching_information,
    "MATCHING_SENTENCE_ENDINGS": _sentence_endings,
    "MATCHING_CORRECT_LETTER": _matching_letter,
    "SENTENCE_COMPLETION": _word_bank,
    "SUMMARY_COMPLETION": _summary,
    "SUMMARY_WORD_BANK": _summary,
    "DRAG_AND_DROP_OPTIONS": _drag_and_drop,
    "MAP_LABELING": _map_labeling,
    "TABLE_COMPLETION": _table,
    "FLOWCHART_COMPLETION": _flowchart,
    "NOTE_COMPLETION": _notes,
    "FILL_IN_BLANK": _fill_in_blank,
    "SHORT_ANSWER": _fill_in_blank,
}


def assemble(question_type: str, parsed: Any, context: AssemblyContext) -> Dict[str, Any]:
    """Build one canonical question group; raises :class:`AssemblyError` on any invariant breach."""

    if not isinstance(parsed, Mapping):
        raise AssemblyError("Model output is not a JSON object")
    builder = _BUILDERS.get(question_type, _fill_in_blank)
    options, questions = builder(parsed, context)
    for item in questions:
        item.pop("_raw", None)

    start = context.start_question
    end = start + len(questions) - 1
    instruction = parsed.get("instruction")
    if not isinstance(instruction, str) or not instruction.strip():
        instruction = context.instruction or f"Questions {start}-{end}"
    return {
        "id": str(uuid.uuid4()),
        "instruction": instruction.strip(),
        "question_type": question_type,
        "start_question": start,
        "end_question": end,
        "options": options,
        "questions": questions,
    }


# --- module-level content -----------------------------------------------------------------


def extract_passage(parsed: Any) -> Dict[str, Any]:
    passage = parsed.get("passage") if isinstance(parsed, Mapping) else None
    if not isinstance(passage, Mapping):
        raise AssemblyError("Missing passage")
    return {
        "id": str(uuid.uuid4()),
        "title": _text(passage.get("title")) or "Reading Passage",
        "content": _require_text(passage, "content", "passage content"),
    }


def extract_script(parsed: Any) -> Tuple[str, Dict[str, str]]:
    if not isinstance(parsed, Mapping):
        raise AssemblyError("Model output is not a JSON object")
    dialogue = parsed.get("dialogue")
    if not isinstance(dialogue, str) or len(dialogue.strip()) < MIN_DIALOGUE_CHARS:
        raise AssemblyError("Missing or too short dialogue")
    names = parsed.get("speaker_names") if isinstance(parsed.get("speaker_names"), Mapping) else {}
    return dialogue.strip(), {str(key): _text(value) for key, value in names.items() if _text(value)}


def display_transcript(dialogue: str, speaker_names: Mapping[str, str]) -> str:
    """Readable transcript: role tokens become names, pacing tags are dropped."""

    def _name(match: "re.Match[str]") -> str:
        role = f"Speaker{match.group(2)}"
        return f"{match.group(1)}{speaker_names.get(role) or f'Speaker {match.group(2)}'}:"

    text = _SPEAKER_RE.sub(_name, dialogue)
    text = _BREAK_RE.sub(" ", text)
    return "\n".join(" ".join(line.split()) for line in text.splitlines()).strip()


def tts_script(dialogue: str, two_speakers: bool) -> str:
    """Two-speaker TTS needs the literal role tokens; a single voice should not read them out."""

    if two_speakers:
        return dialogue
    return _SPEAKER_RE.sub(lambda match: match.group(1), dialogue).strip()


def build_writing_task(parsed: Any, task_key: str, *, visual_type: str | None = None, essay_type: str | None = None) -> Dict[str, Any]:
    if not isinstance(parsed, Mapping):
        raise AssemblyError("Model output is not a JSON object")
    instruction = _require_text(parsed, "instruction", "writing instruction")
    chart = parsed.get("visualData") if isinstance(parsed.get("visualData"), Mapping) else None
    if task_key == "task1" and chart is None:
        raise AssemblyError("Task 1 output has no visualData")
    minimum, maximum = WORD_LIMITS[task_key]
    return {
        "id": str(uuid.uuid4()),
        "task_type": task_key,
        "instruction": instruction,
        "image_description": _text(parsed.get("visual_description")) or instruction,
        "chartData": chart,
        "visual_type": (parsed.get("visual_type") or visual_type) if task_key == "task1" else None,
        "essay_type": (parsed.get("essay_type") or essay_type) if task_key == "task2" else None,
        "word_limit_min": minimum,
        "word_limit_max": maximum,
    }


def attach_chart_image(task: Dict[str, Any], image_provider: ImageProvider | None) -> None:
    if image_provider is None or task.get("task_type") != "task1":
        return
    url = image_provider("chart", task)
    if url:
        task["image_url"] = url


def normalize_speaking_parts(parsed: Any, selection: str) -> List[Dict[str, Any]]:
    if not isinstance(parsed, Mapping) or not isinstance(parsed.get("parts"), list):
        raise AssemblyError("Missing speaking parts")
    by_number: Dict[int, Mapping[str, Any]] = {}
    for part in parsed["parts"]:
        if isinstance(part, Mapping):
            try:
                by_number.setdefault(int(part.get("part_number")), part)
            except (TypeError, ValueError):
                continue

    parts = []
    for number in parts_for(selection):
        raw = by_number.get(number)
        if raw is None:
            raise AssemblyError(f"Speaking part {number} is missing")
        questions = []
        for offset, item in enumerate(raw.get("questions") or []):
            if not isinstance(item, Mapping) or not _text(item.get("question_text")):
                continue
            questions.append(
                {
                    "id": str(uuid.uuid4()),
                    "question_number": offset + 1,
                    "question_text": _text(item.get("question_text")),
                    "sample_answer": _text(item.get("sample_answer")) or None,
                }
            )
        cue_topic = _text(raw.get("cue_card_topic")) or None
        if not questions and not (number == 2 and cue_topic):
            raise AssemblyError(f"Speaking part {number} has no questions")
        timing = PART_TIMINGS[number]
        parts.append(
            {
                "id": str(uuid.uuid4()),
                "part_number": number,
                "instruction": _text(raw.get("instruction")) or EXAMINER_PHRASES[number],
                "questions": questions,
                "cue_card_topic": cue_topic,
                "cue_card_content": raw.get("cue_card_content") or None,
                "preparation_time_seconds": raw.get("preparation_time_seconds") or timing["preparation_time_seconds"],
                "speaking_time_seconds": raw.get("speaking_time_seconds") or timing["speaking_time_seconds"],
                "time_limit_seconds": raw.get("time_limit_seconds") or timing["time_limit_seconds"],
            }
        )
    return parts
