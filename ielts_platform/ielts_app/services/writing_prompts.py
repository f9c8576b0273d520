from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Dict

from .prompt_templates import DIFFICULTY_BANDS, JSON_ONLY

VISUAL_TYPES = ("BAR_CHART", "LINE_GRAPH", "PIE_CHART", "TABLE", "PROCESS_DIAGRAM", "MAP")

ESSAY_TYPES = ("OPINION", "DISCUSSION", "PROBLEM_SOLUTION", "ADVANTAGES_DISADVANTAGES", "TWO_PART_QUESTION")

VISUAL_DATA_EXAMPLES: Dict[str, Dict[str, Any]] = {
    "BAR_CHART": {
        "title": "Chart title",
        "xAxisLabel": "Country",
        "yAxisLabel": "Percentage",
        "data": [{"label": "Japan", "value": 45}, {"label": "Brazil", "value": 30}],
    },
    "LINE_GRAPH": {
        "title": "Graph title",
        "xAxisLabel": "Year",
        "yAxisLabel": "Millions",
        "series": [
            {"name": "Series A", "data": [{"x": "2000", "y": 12}, {"x": "2010", "y": 18}]},
            {"name": "Series B", "data": [{"x": "2000", "y": 20}, {"x": "2010", "y": 15}]},
        ],
    },
    "PIE_CHART": {
        "title": "Chart title",
        "data": [{"label": "Housing", "value": 40}, {"label": "Food", "value": 35}, {"label": "Other", "value": 25}],
    },
    "TABLE": {
        "title": "Table title",
        "headers": ["Category", "2010", "2020"],
        "rows": [[{"value": "Rail"}, {"value": "120"}, {"value": "150"}]],
    },
    "PROCESS_DIAGRAM": {
        "title": "Process title",
        "steps": [
            {"label": "Collection", "description": "Raw material is gathered"},
            {"label": "Washing", "description": "Material is cleaned"},
        ],
    },
    "MAP": {
        "title": "Map title",
        "mapData": {
            "before": {"year": "1990", "features": [{"label": "Park", "type": "green", "position": "north"}]},
            "after": {"year": "2020", "features": [{"label": "Car park", "type": "building", "position": "north"}]},
        },
    },
}

VISUAL_DATA_RULES: Dict[str, str] = {
    "BAR_CHART": "Use 4-8 bars.",
    "LINE_GRAPH": "Use 2-4 series with 5-8 points each and the same x values in every series.",
    "PIE_CHART": "Use 4-7 segments whose values sum to exactly 100.",
    "TABLE": "Use 3-5 columns and 4-6 rows.",
    "PROCESS_DIAGRAM": "Use 4-8 steps in order.",
    "MAP": "Show 4-7 features in each of the before and after maps.",
}

ESSAY_FORMAT_GUIDE: Dict[str, str] = {
    "OPINION": "To what extent do you agree or disagree?",
    "DISCUSSION": "Discuss both views and give your own opinion.",
    "PROBLEM_SOLUTION": "What are the causes of this problem and what solutions can you suggest?",
    "ADVANTAGES_DISADVANTAGES": "What are the advantages and disadvantages of this?",
    "TWO_PART_QUESTION": "Include two related questions that the student must address.",
}

TASK2_CLOSING = (
    "Give reasons for your answer and include any relevant examples from your own knowledge or experience. "
    "Write at least 250 words."
)

WORD_LIMITS = {"task1": (150, 200), "task2": (250, 350)}


def visual_label(visual_type: str) -> str:
    return visual_type.replace("_", " ").lower()


def build_task1_prompt(visual_type: str, difficulty: str, topic: str) -> str:
    band = DIFFICULTY_BANDS.get(difficulty, DIFFICULTY_BANDS["medium"])
    label = visual_label(visual_type)
    example = {
        "task_type": "task1",
        "instruction": (
            f"The {label} below shows ... Summarise the information by selecting and reporting the main "
            "features, and make comparisons where relevant. Write at least 150 words."
        ),
        "visual_type": visual_type,
        "visual_description": f"One sentence describing the {label}",
        "visualData": VISUAL_DATA_EXAMPLES[visual_type],
    }
    return dedent(
        f"""
        Generate an IELTS Academic Writing Task 1 question.
        Topic: {topic}
        Difficulty: {difficulty} ({band})
        Visual type: {label}

        Rules:
        - The instruction follows the official wording and ends with "Write at least 150 words."
        - {VISUAL_DATA_RULES[visual_type]}
        - Use whole numbers only and keep every label under 15 characters.
        - The data must show clear trends or contrasts worth describing.
        """
    ).strip() + "\n\n" + JSON_ONLY + "\n" + json.dumps(example, indent=2)


def build_task2_prompt(essay_type: str, difficulty: str, topic: str) -> str:
    band = DIFFICULTY_BANDS.get(difficulty, DIFFICULTY_BANDS["medium"])
    guide = ESSAY_FORMAT_GUIDE[essay_type]
    example = {
        "task_type": "task2",
        "instruction": f"Statement of the issue. {guide if essay_type != 'TWO_PART_QUESTION' else 'Question one? Question two?'} {TASK2_CLOSING}",
        "essay_type": essay_type,
    }
    return dedent(
        f"""
        Generate an IELTS Writing Task 2 essay question.
        Topic: {topic}
        Difficulty: {difficulty} ({band})
        Essay type: {essay_type.replace('_', ' ').lower()}

        Rules:
        - Open with a two- or three-sentence statement of a debatable issue.
        - Question format: {guide}
        - End the instruction with: "{TASK2_CLOSING}"
        """
    ).strip() + "\n\n" + JSON_ONLY + "\n" + json.dumps(example, indent=2)
