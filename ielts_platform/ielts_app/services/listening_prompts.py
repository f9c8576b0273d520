"""Listening question templates and the script header (speakers, pacing, spelling)."""

from __future__ import annotations

from typing import Any, Dict, List

from .prompt_templates import (
    DIFFICULTY_BANDS,
    FEMALE_NAMES,
    GENERAL_RULES,
    LISTENING_SCENARIOS,
    MALE_NAMES,
    OPTION_LETTERS,
    PromptConfig,
    QuestionTemplate,
    lettered,
    question,
    word_limit_phrase,
)
from .reading_prompts import (
    flowchart_template,
    map_template,
    mcq_multiple_template,
    mcq_template,
    notes_template,
    table_template,
)

SPELLING_SCENARIOS: Dict[str, str] = {
    "phone_call": "a phone call in which the caller gives their personal details",
    "hotel_booking": "a hotel booking in which the guest gives their name and contact details",
    "job_inquiry": "an enquiry about a job in which the applicant gives their details",
}

NUMBER_FORMATS: Dict[str, str] = {
    "phone_number": "a phone number read in digit groups, using forms such as 'double seven' or 'triple two'",
    "date": "a date spoken in full, such as 'the twenty-third of May'",
    "postcode": "a postcode that mixes letters and digits, read character by character",
}

SSML_RULES = (
    "Pacing: insert <break time='500ms'/> between sentences and between speaker turns, "
    "and <break time='300ms'/> for short pauses within speech. Never use a break longer than 1 second."
)

MONOLOGUE_SCENARIO = "a talk given by a single speaker such as a tour guide or lecturer (IELTS Part 4 style)"


def build_gender_constraint(config: PromptConfig) -> str:
    first = MALE_NAMES if config.speaker1_gender == "male" else FEMALE_NAMES
    second = FEMALE_NAMES if config.speaker1_gender == "male" else MALE_NAMES
    lines = [
        "CRITICAL - VOICE-GENDER SYNCHRONIZATION:",
        f"- The MAIN SPEAKER (Speaker1) is {config.speaker1_gender.upper()} and MUST have a "
        f"{config.speaker1_gender} name (e.g. {', '.join(first[:5])}).",
        "- Never contradict the speaker's gender in the script (titles, pronouns, relationships).",
    ]
    if config.two_speakers:
        lines.append(
            f"- The SECOND SPEAKER (Speaker2) is {config.speaker2_gender.upper()} and MUST have a "
            f"{config.speaker2_gender} name (e.g. {', '.join(second[:5])})."
        )
    return "\n".join(lines)


def _character_rules(config: PromptConfig) -> List[str]:
    if config.monologue:
        rules = [
            "- One speaker only. Start the script with Speaker1: and never use Speaker2.",
            "- The speaker is a guide or lecturer; the speaker never spells words out.",
        ]
    else:
        rules = [
            "- Two speakers. Start every turn with exactly Speaker1: or Speaker2: on a new line.",
            "- Put the names you choose for the speakers in speaker_names; never write the names as turn prefixes.",
            "- Include concrete details (names, numbers, dates, prices) that the questions can test.",
        ]
    if config.speaker1_accent:
        rules.append(f"- Speaker1 speaks with a {config.speaker1_accent} accent; reflect it in vocabulary only.")
    if config.two_speakers and config.speaker2_accent:
        rules.append(f"- Speaker2 speaks with a {config.speaker2_accent} accent; reflect it in vocabulary only.")
    return rules


def _scenario_text(config: PromptConfig) -> str:
    if config.monologue:
        return MONOLOGUE_SCENARIO
    if config.spelling is not None:
        return SPELLING_SCENARIOS.get(config.spelling.scenario, SPELLING_SCENARIOS["phone_call"])
    return LISTENING_SCENARIOS.get(config.scenario, LISTENING_SCENARIOS["conversation"])


def listening_header(difficulty: str, topic: str, config: PromptConfig) -> str:
    words = config.target_words
    band = DIFFICULTY_BANDS.get(difficulty, DIFFICULTY_BANDS["medium"])
    lines = [
        "Generate an IELTS Listening test section.",
        f"Topic: {topic}",
        f"Scenario: {_scenario_text(config)}",
        f"Difficulty: {difficulty} ({band})",
        "",
        "1. Write the script as the dialogue field:",
        f"- Approximately {words} words of speech (between {max(words - 50, 50)} and {words + 50}).",
        *_character_rules(config),
        f"- {SSML_RULES}",
        "",
        build_gender_constraint(config),
        "",
        GENERAL_RULES,
    ]
    return "\n".join(lines)


def listening_envelope(config: PromptConfig) -> Dict[str, Any]:
    if config.monologue:
        return {
            "dialogue": "Speaker1: Good morning everyone. <break time='500ms'/> Today we will look at...",
            "speaker_names": {"Speaker1": "Dr Tom Hughes"},
        }
    return {
        "dialogue": (
            "Speaker1: Good morning, how can I help? <break time='500ms'/>\n"
            "Speaker2: Hi, I'd like to ask about..."
        ),
        "speaker_names": {"Speaker1": "Tom", "Speaker2": "Sarah"},
    }


def _spelling_rules(config: PromptConfig) -> List[str]:
    spelling = config.spelling
    if spelling is None:
        return []
    rules = [
        "SPELLING MODE: some answers are names or codes that a speaker spells out in the script.",
        "Spell out ONLY the part of the answer that is missing from question_text, letter by letter (e.g. 'J-O-N-E-S').",
        f"At least one answer must be {NUMBER_FORMATS.get(spelling.number_format, NUMBER_FORMATS['phone_number'])}.",
        "Store correct_answer in canonical written form: 'triple two' becomes 222, a spelled name becomes the name (Jones).",
    ]
    if spelling.difficulty == "high":
        rules.append("Use less common spellings and include one self-correction ('sorry, that's M not N').")
    else:
        rules.append("Use common, easily spelled names and say each letter clearly once.")
    return rules


def _fill_rules(config: PromptConfig) -> List[str]:
    rules = [
        f"Each answer is {word_limit_phrase(config.word_limit)} heard in the recording.",
        "Place the gap (_____) at the start of question_text in about 30% of questions, in the middle in about 40% "
        "and at the end in about 30%.",
        "You are PROHIBITED from placing the gap at the very end of question_text in more than 30% of questions.",
        "Answers appear in the script in question order.",
    ]
    if config.spelling is None and config.word_limit >= 2:
        rules.append(f"Vary answer lengths between 1 and {config.word_limit} words; never make every answer the same length.")
    if config.monologue:
        rules.append("Questions follow the structure of a lecture: main points, examples and conclusions.")
    return rules + _spelling_rules(config)


def _fill_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} note-completion gaps based on the script.",
        instruction=lambda c: f"Complete the notes below. Write {word_limit_phrase(c.word_limit)} for each answer.",
        rules=_fill_rules,
        questions=[
            question(1, "_____ is the name of the hotel.", "Riverside"),
            question(2, "The booking is for _____ nights.", "3"),
            question(3, "Guests should arrive before _____.", "six o'clock"),
        ],
    )


def _matching_letter_template() -> QuestionTemplate:
    def _options(config: PromptConfig) -> int:
        return min(config.question_count + 2, 8)

    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} items to match with a list of {_options(c)} options.",
        instruction=lambda c: (
            f"What does the speaker say about each of the following? "
            f"Choose the correct letter, A-{OPTION_LETTERS[_options(c) - 1]}."
        ),
        rules=(
            "question_text names the item; options hold the statements.",
            "An option may be used more than once; at least two options are never used.",
            "correct_answer is the option letter.",
        ),
        group_fields=lambda c: {"options": lettered([f"Statement {i + 1}" for i in range(_options(c))])},
        questions=[question(1, "The museum cafe", "C")],
    )


def _drag_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} gaps and a box of {c.question_count + 3} short options.",
        instruction="Choose the correct answer from the box and drag it into each gap.",
        rules=(
            "drag_options contains more options than questions; the extras are plausible distractors.",
            "correct_answer is the exact text of one drag option.",
            "Each option is used at most once.",
        ),
        group_fields=lambda c: {"drag_options": [f"option {i + 1}" for i in range(c.question_count + 3)]},
        questions=[question(1, "The workshop starts with _____.", "option 2")],
    )


LISTENING_TEMPLATES: Dict[str, QuestionTemplate] = {
    "FILL_IN_BLANK": _fill_template(),
    "MULTIPLE_CHOICE": mcq_template("recording", option_count=3),
    "MULTIPLE_CHOICE_SINGLE": mcq_template("recording", option_count=3),
    "MULTIPLE_CHOICE_MULTIPLE": mcq_multiple_template("recording"),
    "MATCHING_CORRECT_LETTER": _matching_letter_template(),
    "TABLE_COMPLETION": table_template("recording"),
    "FLOWCHART_COMPLETION": flowchart_template("recording"),
    "MAP_LABELING": map_template("recording", "street_map"),
    "NOTE_COMPLETION": notes_template("recording"),
    "DRAG_AND_DROP_OPTIONS": _drag_template(),
}

LISTENING_FALLBACK = "FILL_IN_BLANK"
