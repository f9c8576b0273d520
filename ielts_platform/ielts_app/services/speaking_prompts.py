from __future__ import annotations

import json
from typing import Any, Dict, List

from .prompt_templates import DIFFICULTY_BANDS, JSON_ONLY

SPEAKING_PARTS = ("FULL_TEST", "PART_1", "PART_2", "PART_3")

EXAMINER_PHRASES: Dict[int, str] = {
    1: "Now, in this first part, I'd like to ask you some questions about yourself.",
    2: (
        "Now, I'm going to give you a topic and I'd like you to talk about it for one to two minutes. "
        "Before you talk, you'll have one minute to think about what you're going to say. "
        "You can make some notes if you wish."
    ),
    3: (
        "We've been talking about [Part 2 topic] and I'd like to discuss one or two more general "
        "questions related to this."
    ),
}

PART_TIMINGS: Dict[int, Dict[str, int | None]] = {
    1: {"preparation_time_seconds": None, "speaking_time_seconds": None, "time_limit_seconds": 300},
    2: {"preparation_time_seconds": 60, "speaking_time_seconds": 120, "time_limit_seconds": 180},
    3: {"preparation_time_seconds": None, "speaking_time_seconds": None, "time_limit_seconds": 300},
}

PART_RULES: Dict[int, str] = {
    1: "Part 1: {count} short familiar questions (home, work, studies, hobbies) linked to the topic.",
    2: "Part 2: one cue card with a 'Describe ...' topic and three or four 'You should say:' bullet points.",
    3: "Part 3: {count} abstract discussion questions that extend the Part 2 theme.",
}


def parts_for(selection: str) -> List[int]:
    if selection == "FULL_TEST":
        return [1, 2, 3]
    try:
        return [int(selection.rsplit("_", 1)[-1])]
    except ValueError:
        return [1, 2, 3]


def _part_example(part: int, count: int) -> Dict[str, Any]:
    example: Dict[str, Any] = {
        "part_number": part,
        "instruction": EXAMINER_PHRASES[part],
        "questions": [
            {"question_number": n, "question_text": "Question?", "sample_answer": "A short band-appropriate answer"}
            for n in range(1, (1 if part == 2 else min(count, 2)) + 1)
        ],
    }
    if part == 2:
        example["cue_card_topic"] = "Describe a place you visited that ..."
        example["cue_card_content"] = "You should say:\n- where it was\n- when you went\n- what you did\nand explain why ..."
    example.update({key: value for key, value in PART_TIMINGS[part].items() if value is not None})
    return example


def build_speaking_prompt(selection: str, difficulty: str, topic: str, question_count: int) -> str:
    band = DIFFICULTY_BANDS.get(difficulty, DIFFICULTY_BANDS["medium"])
    parts = parts_for(selection)
    lines = [
        "Generate an IELTS Speaking test.",
        f"Topic: {topic}",
        f"Difficulty: {difficulty} ({band})",
        "",
        "Rules:",
    ]
    lines.extend(f"- {PART_RULES[part].format(count=question_count)}" for part in parts)
    lines.append("- Use the official examiner phrase as each part's instruction, unchanged.")
    lines.append("- Sample answers show the target band, in natural spoken English.")
    example = {"topic": topic, "parts": [_part_example(part, question_count) for part in parts]}
    lines.extend(["", JSON_ONLY, json.dumps(example, indent=2)])
    return "\n".join(lines)
