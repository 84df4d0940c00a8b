"""Prompt templates for lecture analysis and question generation."""
from __future__ import annotations

import json
from typing import TYPE_CHECKING

from lecture_assistant.models import FILL_IN_THE_BLANK, MULTIPLE_CHOICE, SINGLE_CHOICE

if TYPE_CHECKING:
    from lecture_assistant.models import LectureAnalysisResult, LectureContentItem

ANALYSIS_PROMPT = """\
You are an expert in analyzing lecture materials and synthesizing information.
Analyze the following lecture contents. Identify the key concepts and themes \
that span across all materials, and write a single, coherent summary that \
integrates information from all provided content.

Important: write every output (key concepts, themes and summary) in the \
predominant language of the input content. If several languages are present, \
use the language of the first content item.

{contents}

Respond in this exact JSON format only, with no other text:
{{
  "keyConcepts": ["concept 1", "concept 2"],
  "themes": ["theme 1", "theme 2"],
  "summary": "A brief combined summary of all lecture contents"
}}
"""

GENERATION_PROMPT = """\
You are an expert educator creating practice test questions for students.
Based on the following lecture content, generate {number_of_questions} test \
questions of {difficulty} difficulty.
Every question must be of type: {question_type}.
Important: write the questions, options and answers in the same language as \
the lecture content.

Lecture content:
{lecture_content}

{type_rules}

Respond with a JSON object containing a "questions" array, with no other text. Example:
{example}
"""

TYPE_RULES = {
    FILL_IN_THE_BLANK: (
        'The "questionText" must contain "___" where the blank is. '
        '"correctAnswer" is the word or phrase that fills the blank.'
    ),
    SINGLE_CHOICE: (
        'Provide 3 to 5 unique "options". "correctAnswer" must exactly match '
        "one of the options."
    ),
    MULTIPLE_CHOICE: (
        'Provide 3 to 5 unique "options". "correctAnswers" must be an array of '
        "one or more entries, each exactly matching one of the options."
    ),
}

TYPE_EXAMPLES = {
    FILL_IN_THE_BLANK: {
        "type": FILL_IN_THE_BLANK,
        "questionText": "The capital of France is ___, known for the Eiffel Tower.",
        "correctAnswer": "Paris",
    },
    SINGLE_CHOICE: {
        "type": SINGLE_CHOICE,
        "questionText": "What is the chemical symbol for water?",
        "options": ["O2", "H2O", "CO2", "NaCl"],
        "correctAnswer": "H2O",
    },
    MULTIPLE_CHOICE: {
        "type": MULTIPLE_CHOICE,
        "questionText": "Which of the following are primary colors?",
        "options": ["Red", "Green", "Blue", "Yellow"],
        "correctAnswers": ["Red", "Blue", "Yellow"],
    },
}


def format_content_items(items: list[LectureContentItem]) -> str:
    """Delimit each file; media files point at their attachment number."""
    blocks = []
    attachment = 0
    for item in items:
        if item.content_type == "text":
            body = item.raw_text_content or ""
        else:
            attachment += 1
            body = f"[{item.content_type} attachment #{attachment}]"
        blocks.append(
            f"--- START FILE: {item.file_name} (Type: {item.content_type}) ---\n"
            f"{body}\n"
            f"--- END FILE: {item.file_name} ---"
        )
    return "\n\n".join(blocks)


def format_type_example(question_type: str) -> str:
    return json.dumps({"questions": [TYPE_EXAMPLES[question_type]]}, indent=2, ensure_ascii=False)


def format_lecture_content(analysis: LectureAnalysisResult) -> str:
    """Generation input built from an analysis: summary, then concepts and themes."""
    parts = [analysis.summary.strip()]
    if analysis.key_concepts:
        parts.append("Key concepts: " + ", ".join(analysis.key_concepts))
    if analysis.themes:
        parts.append("Themes: " + ", ".join(analysis.themes))
    return "\n\n".join(p for p in parts if p)


def build_analysis_prompt(items: list[LectureContentItem]) -> str:
    return ANALYSIS_PROMPT.format(contents=format_content_items(items))


def build_generation_prompt(
    lecture_content: str,
    number_of_questions: int,
    difficulty: str,
    question_type: str,
) -> str:
    return GENERATION_PROMPT.format(
        number_of_questions=number_of_questions,
        difficulty=difficulty,
        question_type=question_type,
        lecture_content=lecture_content,
        type_rules=TYPE_RULES[question_type],
        example=format_type_example(question_type),
    )
