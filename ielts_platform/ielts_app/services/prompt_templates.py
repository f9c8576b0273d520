"""Template descriptors and shared tables for practice prompts.

A question type is described by a :class:`QuestionTemplate`; one renderer turns
any template plus a module header into the final prompt text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Any, Callable, Dict, List, Tuple, Union

IELTS_TOPICS: Tuple[str, ...] = (
    "Climate change and environmental conservation",
    "The impact of technology on modern society",
    "Education systems around the world",
    "Health and wellness in the 21st century",
    "Urbanization and city planning",
    "Wildlife conservation and biodiversity",
    "The role of art and culture in society",
    "Space exploration and scientific discovery",
    "Global tourism and its effects",
    "Sustainable energy solutions",
    "Ancient civilizations and archaeology",
    "Marine ecosystems and ocean conservation",
    "The future of transportation",
    "Digital communication and social media",
    "Food security and agriculture",
)

LISTENING_SCENARIOS: Dict[str, str] = {
    "conversation": "a casual conversation between two people",
    "lecture": "a short educational lecture or presentation",
    "interview": "an interview about a specific topic",
    "tour": "a guided tour of a facility or location",
    "phone_call": "a phone conversation about booking or inquiry",
}

DIFFICULTY_BANDS: Dict[str, str] = {
    "easy": "Band 5-5.5",
    "medium": "Band 6-6.5",
    "hard": "Band 7-7.5",
    "expert": "Band 8-9",
}

VOICE_GENDERS: Dict[str, str] = {
    "Kore": "male",
    "Charon": "male",
    "Fenrir": "male",
    "Puck": "male",
    "Aoede": "female",
}

MALE_NAMES = ("Tom", "David", "John", "Michael", "James", "Robert", "William", "Richard", "Daniel", "Mark")
FEMALE_NAMES = ("Sarah", "Emma", "Lisa", "Anna", "Maria", "Sophie", "Rachel", "Laura", "Helen", "Kate")

FILL_VARIANTS = ("standard", "paragraph", "bullets", "headings", "note_style")

WORD_LIMIT_PHRASES: Dict[int, str] = {
    1: "ONE WORD ONLY",
    2: "NO MORE THAN TWO WORDS",
    3: "NO MORE THAN THREE WORDS",
}

OPTION_LETTERS = "ABCDEFGHIJKLMNOP"
ROMAN_NUMERALS = ("i", "ii", "iii", "iv", "v", "vi", "vii", "viii", "ix", "x", "xi", "xii")

JSON_ONLY = "Return ONLY valid JSON in this exact format:"


def voice_gender(voice_name: str | None) -> str:
    return VOICE_GENDERS.get(voice_name or "", "male")


def word_limit_phrase(limit: int, allow_number: bool = True) -> str:
    phrase = WORD_LIMIT_PHRASES.get(limit, WORD_LIMIT_PHRASES[3])
    return f"{phrase} AND/OR A NUMBER" if allow_number else phrase


@dataclass(frozen=True)
class SpellingSettings:
    scenario: str = "phone_call"
    difficulty: str = "low"
    number_format: str = "phone_number"


@dataclass(frozen=True)
class PromptConfig:
    """Fully resolved knobs for one prompt; building from it involves no randomness."""

    question_count: int = 5
    paragraph_count: int = 6
    word_count: int = 750
    fill_variant: str = "standard"
    word_limit: int = 2
    scenario: str = "conversation"
    target_words: int = 600
    two_speakers: bool = True
    speaker1_gender: str = "male"
    speaker1_accent: str | None = None
    speaker2_accent: str | None = None
    spelling: SpellingSettings | None = None
    writing_task: str = "task2"
    visual_type: str = "BAR_CHART"
    essay_type: str = "OPINION"
    speaking_part: str = "FULL_TEST"

    @property
    def monologue(self) -> bool:
        return not self.two_speakers

    @property
    def speaker2_gender(self) -> str:
        return "female" if self.speaker1_gender == "male" else "male"


Text = Union[str, Callable[[PromptConfig], str]]
Rules = Union[Tuple[str, ...], Callable[[PromptConfig], List[str]]]
Example = Union[Dict[str, Any], List[Any], Callable[[PromptConfig], Any]]


@dataclass(frozen=True)
class QuestionTemplate:
    """Everything that differs between two question types of one module."""

    task: Text
    instruction: Text
    questions: Example
    rules: Rules = ()
    group_fields: Example = field(default_factory=dict)


def resolve(value: Any, config: PromptConfig) -> Any:
    return value(config) if callable(value) else value


def render_prompt(header: str, template: QuestionTemplate, config: PromptConfig, envelope: Dict[str, Any]) -> str:
    """Header, task, rules, then the literal JSON shape the model must return."""

    example: Dict[str, Any] = dict(envelope)
    example["instruction"] = resolve(template.instruction, config)
    example.update(resolve(template.group_fields, config))
    example["questions"] = resolve(template.questions, config)

    lines = [header.strip(), "", f"2. {resolve(template.task, config)}"]
    rules = list(resolve(template.rules, config))
    if rules:
        lines.append("")
        lines.append("Rules:")
        lines.extend(f"- {rule}" for rule in rules)
    lines.extend(["", JSON_ONLY, json.dumps(example, indent=2, ensure_ascii=False)])
    return "\n".join(lines)


def question(number: int, text: str, answer: str, explanation: str = "Brief explanation", **extra: Any) -> Dict[str, Any]:
    item: Dict[str, Any] = {"question_number": number, "question_text": text}
    item.update(extra)
    item["correct_answer"] = answer
    item["explanation"] = explanation
    return item


def lettered(texts: List[str], key: str = "letter") -> List[Dict[str, str]]:
    return [{key: OPTION_LETTERS[index], "text": text} for index, text in enumerate(texts)]


GENERAL_RULES = dedent(
    """
    Output rules:
    - Respond with the JSON document only; no commentary before or after it.
    - Every question must be answerable from the content you write.
    - Number questions consecutively starting at 1.
    """
).strip()
