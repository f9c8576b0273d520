"""Reading question templates plus the option/table/map families shared with listening."""

from __future__ import annotations

from typing import Any, Dict, List

from .prompt_templates import (
    DIFFICULTY_BANDS,
    GENERAL_RULES,
    OPTION_LETTERS,
    ROMAN_NUMERALS,
    PromptConfig,
    QuestionTemplate,
    lettered,
    question,
    word_limit_phrase,
)

NUMBER_WORDS = {1: "ONE", 2: "TWO", 3: "THREE", 4: "FOUR", 5: "FIVE", 6: "SIX"}


def _last_letter(count: int) -> str:
    return OPTION_LETTERS[max(count, 1) - 1]


def _phrase(config: PromptConfig) -> str:
    return word_limit_phrase(config.word_limit)


def _source_phrase(source: str) -> str:
    return "from the passage" if source == "passage" else ""


def _cell(content: str, number: int | None = None, header: bool = False) -> Dict[str, Any]:
    return {
        "content": content,
        "is_header": header,
        "has_question": number is not None,
        "question_number": number,
    }


def _length_variety_rule(config: PromptConfig) -> List[str]:
    if config.word_limit < 2:
        return ["Every answer is a single word."]
    return [
        f"Vary answer lengths between 1 and {config.word_limit} words; never make every answer the same length.",
    ]


# --- families shared by reading and listening ------------------------------------------------

def mcq_template(source: str, option_count: int = 4) -> QuestionTemplate:
    letters = OPTION_LETTERS[:option_count]
    listing = ", ".join(letters[:-1]) + f" or {letters[-1]}"
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} multiple-choice questions with {option_count} options each.",
        instruction=f"Choose the correct letter, {listing}.",
        rules=(
            f"Each question has exactly {option_count} options labelled {letters[0]}-{letters[-1]}.",
            "Spread the correct letter evenly across questions; do not favour any one letter.",
            "Distractors must be plausible and mention details that really appear in the "
            + ("passage." if source == "passage" else "recording."),
            "correct_answer is the single letter of the correct option.",
        ),
        questions=[
            question(1, "Question text?", "B", options=lettered([f"Option {l}" for l in letters])),
            question(2, "Question text?", "D", options=lettered([f"Option {l}" for l in letters])),
        ],
    )


def mcq_multiple_template(source: str) -> QuestionTemplate:
    def _answers(config: PromptConfig) -> int:
        return max(2, config.question_count)

    def _options(config: PromptConfig) -> int:
        return _answers(config) + 3

    def _instruction(config: PromptConfig) -> str:
        count = _answers(config)
        return f"Questions 1-{count}. Choose {NUMBER_WORDS.get(count, str(count))} letters, A-{_last_letter(_options(config))}."

    def _questions(config: PromptConfig) -> List[Dict[str, Any]]:
        count = _answers(config)
        answer = ",".join(OPTION_LETTERS[0 : count * 2 : 2])
        options = lettered([f"Option {letter}" for letter in OPTION_LETTERS[: _options(config)]])
        return [
            question(
                1,
                f"Which {NUMBER_WORDS.get(count, str(count))} of the following are mentioned?",
                answer,
                "Why each chosen option is correct",
                options=options,
                max_answers=count,
            )
        ]

    return QuestionTemplate(
        task=lambda c: (
            f"Create ONE multiple-choice question where the candidate must choose {_answers(c)} correct "
            f"answers from {_options(c)} options (A-{_last_letter(_options(c))})."
        ),
        instruction=_instruction,
        rules=lambda c: [
            "Return exactly one question object; it covers all answer slots.",
            f'correct_answer lists all {_answers(c)} correct letters separated by commas, e.g. "A,C,E".',
            "Place the correct options at random letters; never make them consecutive letters starting at A.",
            f"max_answers must be {_answers(c)}.",
        ],
        questions=_questions,
    )


def table_template(source: str) -> QuestionTemplate:
    src = _source_phrase(source)
    return QuestionTemplate(
        task=lambda c: f"Create a table completion task with exactly {c.question_count} blanks.",
        instruction=f"Complete the table below. Choose NO MORE THAN TWO WORDS {src} for each answer.".replace("  ", " "),
        rules=(
            "table_data is a list of rows; every row has exactly 3 cells; the first row is the header row.",
            "Mark each blank inside a cell with __ and set has_question true and question_number on that cell.",
            "Spread the blanks over columns 2 and 3; at least one third of them must be in column 3.",
            "Each answer is at most TWO words.",
        ),
        group_fields={
            "table_data": [
                [_cell("Category", header=True), _cell("Feature", header=True), _cell("Detail", header=True)],
                [_cell("Item one"), _cell("Made of __", 1), _cell("Used since 1900")],
                [_cell("Item two"), _cell("Light weight"), _cell("Found in __", 2)],
            ]
        },
        questions=[
            question(1, "Made of __", "steel"),
            question(2, "Found in __", "coastal areas"),
        ],
    )


def flowchart_template(source: str) -> QuestionTemplate:
    src = _source_phrase(source)
    return QuestionTemplate(
        task=lambda c: f"Create a flow-chart of a process with exactly {c.question_count} blank steps.",
        instruction=lambda c: f"Complete the flow-chart below. Write {_phrase(c)} {src} for each answer.".replace("  ", " "),
        rules=lambda c: [
            f"Use between {c.question_count + 2} and {c.question_count + 4} steps in order.",
            "A blank step has is_blank true, a question_number, and __ in its label where the answer goes.",
            *_length_variety_rule(c),
        ],
        group_fields={
            "flowchart_title": "Process title",
            "flowchart_steps": [
                {"id": "step1", "label": "Raw material is collected", "is_blank": False, "question_number": None},
                {"id": "step2", "label": "It is then __", "is_blank": True, "question_number": 1},
                {"id": "step3", "label": "Product is packed", "is_blank": False, "question_number": None},
            ],
        },
        questions=[question(1, "It is then __", "washed")],
    )


def map_template(source: str, map_type: str) -> QuestionTemplate:
    def _labels(config: PromptConfig) -> int:
        return config.question_count + 3

    def _fields(config: PromptConfig) -> Dict[str, Any]:
        return {
            "map_description": "Describe the layout: where each labelled place sits relative to the landmarks",
            "map_type": map_type,
            "map_labels": [
                {"id": OPTION_LETTERS[i], "text": f"Place {i + 1}", "x": 10 + (i * 11) % 80, "y": 15 + (i * 23) % 70}
                for i in range(_labels(config))
            ],
            "landmarks": [
                {"id": "L1", "text": "Main entrance", "x": 50, "y": 95},
                {"id": "L2", "text": "Reception", "x": 50, "y": 70},
            ],
        }

    described = "passage" if source == "passage" else "speaker"
    return QuestionTemplate(
        task=lambda c: (
            f"Create a {map_type.replace('_', ' ')} labelling task: {_labels(c)} labelled places A-{_last_letter(_labels(c))} "
            f"and exactly {c.question_count} questions."
        ),
        instruction=lambda c: (
            f"Label the {map_type.replace('_', ' ')} below. Write the correct letter, "
            f"A-{_last_letter(_labels(c))}, next to questions 1-{c.question_count}."
        ),
        rules=(
            f"The {described} must describe locations using relative positions (next to, opposite, behind).",
            "Answers must NOT follow the label order: question 1 must not be A, question 2 must not be B, and so on.",
            "Coordinates x and y are percentages between 0 and 100; no two labels share a position.",
            "Extra labels are distractors that are still mentioned.",
            "correct_answer is the letter of the matching label.",
        ),
        group_fields=_fields,
        questions=[question(1, "Cafe", "D"), question(2, "Library", "A")],
    )


def notes_template(source: str) -> QuestionTemplate:
    src = _source_phrase(source)
    return QuestionTemplate(
        task=lambda c: f"Create structured notes with exactly {c.question_count} gaps, grouped under 2-3 section titles.",
        instruction=lambda c: f"Complete the notes below. Write {_phrase(c)} {src} for each answer.".replace("  ", " "),
        rules=lambda c: [
            "Every question number appears in exactly one note item.",
            "text_before and text_after surround the gap; either may be empty.",
            *_length_variety_rule(c),
        ],
        group_fields={
            "note_sections": [
                {
                    "title": "Section title",
                    "items": [
                        {"text_before": "Founded in", "question_number": 1, "text_after": ""},
                        {"text_before": "Main product:", "question_number": 2, "text_after": "for export"},
                    ],
                }
            ]
        },
        questions=[question(1, "Founded in ___", "1887"), question(2, "Main product: ___ for export", "wool")],
    )


# --- reading-only types ----------------------------------------------------------------------

def _judgement_template(kind: str) -> QuestionTemplate:
    if kind == "YES_NO_NOT_GIVEN":
        answers = ("YES", "NO", "NOT GIVEN")
        instruction = (
            "Do the following statements agree with the claims of the writer in the passage? "
            "Write YES, NO, or NOT GIVEN."
        )
        subject = "claims or opinions of the writer"
    else:
        answers = ("TRUE", "FALSE", "NOT GIVEN")
        instruction = (
            "Do the following statements agree with the information given in the passage? "
            "Write TRUE, FALSE, or NOT GIVEN."
        )
        subject = "information in the passage"
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} statements about the {subject}.",
        instruction=instruction,
        rules=(
            f"correct_answer must be exactly one of {', '.join(answers)}.",
            "Use every answer at least once when there are three or more statements.",
            "NOT GIVEN statements stay on topic but are neither confirmed nor contradicted.",
            "Paraphrase; never copy a sentence word for word.",
        ),
        questions=[
            question(1, "Statement about the passage", answers[0], "Paragraph B states ..."),
            question(2, "Another statement", answers[2], "The passage does not mention ..."),
        ],
    )


def _headings_template() -> QuestionTemplate:
    def _fields(config: PromptConfig) -> Dict[str, Any]:
        total = min(config.question_count + 3, len(ROMAN_NUMERALS))
        return {"headings": [{"id": ROMAN_NUMERALS[i], "text": f"Heading {i + 1}"} for i in range(total)]}

    return QuestionTemplate(
        task=lambda c: f"Create a matching headings task for exactly {c.question_count} paragraphs.",
        instruction=lambda c: (
            "The passage has several paragraphs. Choose the correct heading for each paragraph "
            f"from the list of headings below. Write the correct number, i-{ROMAN_NUMERALS[min(c.question_count + 3, 12) - 1]}."
        ),
        rules=(
            "Provide more headings than paragraphs; the extras are plausible distractors.",
            "Each heading is used at most once.",
            'question_text is "Paragraph X" for each paragraph being matched, using the passage labels.',
            "correct_answer is the heading id (a lower-case roman numeral).",
        ),
        group_fields=_fields,
        questions=[question(1, "Paragraph A", "iii"), question(2, "Paragraph B", "i")],
    )


def _information_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} matching information items.",
        instruction=lambda c: (
            "Which paragraph contains the following information? "
            f"Write the correct letter, A-{_last_letter(c.paragraph_count)}."
        ),
        rules=(
            "Each item paraphrases a specific detail found in exactly one paragraph.",
            "A paragraph may be used more than once; not every paragraph needs to be used.",
            "correct_answer is the paragraph letter.",
        ),
        group_fields=lambda c: {
            "options": lettered([f"Paragraph {OPTION_LETTERS[i]}" for i in range(c.paragraph_count)])
        },
        questions=[question(1, "a reference to an early experiment", "C")],
    )


def _word_bank_fields(config: PromptConfig, with_summary: bool) -> Dict[str, Any]:
    bank = lettered([f"word {i + 1}" for i in range(config.question_count + 3)])
    fields: Dict[str, Any] = {}
    if with_summary:
        fields["summary_text"] = "The study found that {{1}} was common, while {{2}} was rare."
    fields["word_bank"] = bank
    return fields


def _summary_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Write a summary of part of the passage with exactly {c.question_count} gaps and a word bank.",
        instruction=lambda c: (
            f"Complete the summary using the list of words, A-{_last_letter(c.question_count + 3)}, below."
        ),
        rules=(
            "Mark gap n in summary_text as {{n}}; each question number appears exactly once.",
            "The word bank has more words than gaps; the extra words fit grammatically but are wrong.",
            "correct_answer is the letter of the word-bank entry.",
        ),
        group_fields=lambda c: _word_bank_fields(c, with_summary=True),
        questions=[question(1, "Gap 1", "C"), question(2, "Gap 2", "F")],
    )


def _sentence_completion_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} incomplete sentences and a word bank to complete them.",
        instruction=lambda c: (
            f"Complete the sentences below using the list of words, A-{_last_letter(c.question_count + 3)}, from the box."
        ),
        rules=(
            "Each question_text contains one gap written as _____.",
            "The word bank has more entries than sentences; distractors must be grammatically possible.",
            "correct_answer is the letter of the word-bank entry.",
        ),
        group_fields=lambda c: _word_bank_fields(c, with_summary=False),
        questions=[question(1, "The researchers relied on _____ to collect data.", "E")],
    )


def _sentence_endings_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} sentence beginnings and a longer list of endings.",
        instruction=lambda c: (
            f"Complete each sentence with the correct ending, A-{_last_letter(c.question_count + 2)}, below."
        ),
        rules=(
            "question_text is the sentence beginning.",
            "Provide two more endings than beginnings; every ending is grammatically possible.",
            "correct_answer is the id of the correct ending.",
        ),
        group_fields=lambda c: {
            "sentence_endings": lettered([f"ending {i + 1}" for i in range(c.question_count + 2)], key="id")
        },
        questions=[question(1, "Early settlers in the region", "D")],
    )


def _fill_group_fields(config: PromptConfig) -> Dict[str, Any]:
    variant = config.fill_variant
    if variant == "paragraph":
        return {
            "display_as_paragraph": True,
            "paragraph_text": "The first engines were (1) _____ and needed (2) _____ to run.",
        }
    if variant == "bullets":
        return {"show_bullets": True}
    if variant == "headings":
        return {"show_headings": True, "group_title": "Overall title"}
    if variant == "note_style":
        return {
            "note_style_enabled": True,
            "note_categories": [
                {
                    "title": "Category",
                    "items": [
                        {"text_before": "Built from", "question_number": 1, "text_after": ""},
                        {"text_before": "Powered by", "question_number": 2, "text_after": "in winter"},
                    ],
                }
            ],
        }
    return {}


def _fill_rules(config: PromptConfig) -> List[str]:
    rules = [
        f"Each answer is {word_limit_phrase(config.word_limit)} copied exactly from the passage.",
        *_length_variety_rule(config),
        "Write each gap in question_text as _____.",
    ]
    variant = config.fill_variant
    if variant == "paragraph":
        rules.append("paragraph_text contains every gap exactly once as (n) _____ using the question number.")
    elif variant == "bullets":
        rules.append("Write each question_text as a short bullet-point note.")
    elif variant == "headings":
        rules.append("Give every question a short heading field; consecutive questions may share a heading.")
    elif variant == "note_style":
        rules.append("Every question number appears in exactly one note_categories item.")
    return rules


def _fill_questions(config: PromptConfig) -> List[Dict[str, Any]]:
    extra: Dict[str, Any] = {"heading": "Sub-heading"} if config.fill_variant == "headings" else {}
    return [
        question(1, "The first engines were _____.", "heavy", **extra),
        question(2, "They needed _____ to run.", "constant supervision", **extra),
    ]


def _fill_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} gap-fill questions based on the passage.",
        instruction=lambda c: (
            f"Complete the {'notes' if c.fill_variant == 'note_style' else 'sentences'} below. "
            f"Choose {_phrase(c)} from the passage for each answer."
        ),
        rules=_fill_rules,
        group_fields=_fill_group_fields,
        questions=_fill_questions,
    )


def _short_answer_template() -> QuestionTemplate:
    return QuestionTemplate(
        task=lambda c: f"Create exactly {c.question_count} short-answer questions (who, what, where, when).",
        instruction=lambda c: f"Answer the questions below. Choose {_phrase(c)} from the passage for each answer.",
        rules=lambda c: [
            f"Each answer is {word_limit_phrase(c.word_limit)} copied exactly from the passage.",
            *_length_variety_rule(c),
        ],
        questions=[question(1, "What material was used first?", "bronze")],
    )


READING_TEMPLATES: Dict[str, QuestionTemplate] = {
    "TRUE_FALSE_NOT_GIVEN": _judgement_template("TRUE_FALSE_NOT_GIVEN"),
    "YES_NO_NOT_GIVEN": _judgement_template("YES_NO_NOT_GIVEN"),
    "MULTIPLE_CHOICE": mcq_template("passage"),
    "MULTIPLE_CHOICE_SINGLE": mcq_template("passage"),
    "MULTIPLE_CHOICE_MULTIPLE": mcq_multiple_template("passage"),
    "MATCHING_HEADINGS": _headings_template(),
    "MATCHING_INFORMATION": _information_template(),
    "MATCHING_SENTENCE_ENDINGS": _sentence_endings_template(),
    "FILL_IN_BLANK": _fill_template(),
    "SHORT_ANSWER": _short_answer_template(),
    "SENTENCE_COMPLETION": _sentence_completion_template(),
    "SUMMARY_COMPLETION": _summary_template(),
    "SUMMARY_WORD_BANK": _summary_template(),
    "TABLE_COMPLETION": table_template("passage"),
    "FLOWCHART_COMPLETION": flowchart_template("passage"),
    "MAP_LABELING": map_template("passage", "floor_plan"),
    "NOTE_COMPLETION": notes_template("passage"),
}

READING_FALLBACK = "FILL_IN_BLANK"


def reading_header(difficulty: str, topic: str, config: PromptConfig) -> str:
    words = config.word_count
    labels = ", ".join(f"[{OPTION_LETTERS[i]}]" for i in range(config.paragraph_count))
    band = DIFFICULTY_BANDS.get(difficulty, DIFFICULTY_BANDS["medium"])
    return (
        "Generate an IELTS Academic Reading test.\n"
        f"Topic: {topic}\n"
        f"Difficulty: {difficulty} ({band})\n\n"
        "1. Write an academic passage:\n"
        f"- Approximately {words} words (strictly between {max(words - 50, 100)} and {words + 100}).\n"
        f"- Exactly {config.paragraph_count} paragraphs, each starting with its label: {labels}.\n"
        "- Each paragraph 80-150 words, formal academic register, with specific facts, dates and figures.\n\n"
        f"{GENERAL_RULES}"
    )


READING_ENVELOPE = {
    "passage": {
        "title": "Passage title",
        "content": "[A] First paragraph...\n\n[B] Second paragraph...",
    }
}
