"""Ask the model for quiz questions and keep only well-formed ones."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from lecture_assistant.errors import GenerationFailed, InvalidInput, QuestionCountOutOfRange
from lecture_assistant.llm_output import extract_json
from lecture_assistant.models import (
    BLANK_MARKER,
    DIFFICULTIES,
    FILL_IN_THE_BLANK,
    MAX_OPTIONS,
    MIN_OPTIONS,
    QUESTION_TYPES,
    SINGLE_CHOICE,
    GeneratedQuestion,
    question_from_dict,
)
from lecture_assistant.prompts import build_generation_prompt

if TYPE_CHECKING:
    from lecture_assistant.providers.base import LLMProvider

_log = logging.getLogger("lecture_assistant.qgen")

MIN_QUESTIONS = 1
MAX_QUESTIONS = 20


@dataclass
class GenerationResult:
    questions: list[GeneratedQuestion]
    dropped: int = 0
    drop_reasons: list[str] = field(default_factory=list)


def validate_request(number_of_questions: int, difficulty: str, question_type: str) -> None:
    if isinstance(number_of_questions, bool) or not isinstance(number_of_questions, int):
        raise QuestionCountOutOfRange(
            f"Number of questions must be an integer (got {number_of_questions!r}).",
        )
    if not MIN_QUESTIONS <= number_of_questions <= MAX_QUESTIONS:
        raise QuestionCountOutOfRange(
            f"Number of questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS} "
            f"(got {number_of_questions}).",
            number_of_questions=number_of_questions,
        )
    if difficulty not in DIFFICULTIES:
        raise InvalidInput(f"Unknown difficulty '{difficulty}'.", stage="generation", difficulty=difficulty)
    if question_type not in QUESTION_TYPES:
        raise InvalidInput(
            f"Unknown question type '{question_type}'.", stage="generation", question_type=question_type,
        )


def _normalize_blank(text: str) -> str:
    if BLANK_MARKER in text:
        return text
    text = re.sub(r"_{4,}", BLANK_MARKER, text)
    text = re.sub(r"\[blank\]", BLANK_MARKER, text, flags=re.IGNORECASE)
    text = re.sub(r"\(blank\)", BLANK_MARKER, text, flags=re.IGNORECASE)
    return text


def _match_option(answer, options: list[str]) -> str | None:
    """Return the option *answer* refers to, tolerating case and whitespace."""
    if not isinstance(answer, str):
        return None
    if answer in options:
        return answer
    wanted = answer.strip().lower()
    for opt in options:
        if opt.strip().lower() == wanted:
            return opt
    return None


def _validate_question(data: dict, question_type: str) -> str | None:
    """Validate one generated question and auto-fix minor issues.

    Returns ``None`` on success (data is valid and possibly patched in-place),
    or a human-readable reason string on failure.
    """
    if not isinstance(data, dict):
        return f"expected object, got {type(data).__name__}"
    qtype = data.get("type", question_type)
    if qtype not in QUESTION_TYPES:
        return f"unknown question type {qtype!r}"
    if qtype != question_type:
        return f"wrong question type {qtype!r} (requested {question_type!r})"
    data["type"] = qtype

    text = data.get("questionText")
    if not isinstance(text, str) or not text.strip():
        return "missing questionText"

    if qtype == FILL_IN_THE_BLANK:
        normalized = _normalize_blank(text)
        if BLANK_MARKER not in normalized:
            return f"questionText has no blank marker: {text[:80]!r}"
        data["questionText"] = normalized
        answer = data.get("correctAnswer")
        if not isinstance(answer, str) or not answer.strip():
            return "missing correctAnswer"
        return None

    options = data.get("options")
    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        return "options must be a list of strings"
    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        return f"options must have {MIN_OPTIONS}-{MAX_OPTIONS} entries (got {len(options)})"
    lowered = [o.strip().lower() for o in options]
    if len(set(lowered)) != len(options):
        return "duplicate options"

    if qtype == SINGLE_CHOICE:
        match = _match_option(data.get("correctAnswer"), options)
        if match is None:
            return f"correctAnswer {data.get('correctAnswer')!r} is not one of the options"
        data["correctAnswer"] = match
        return None

    answers = data.get("correctAnswers")
    if not isinstance(answers, list) or not answers:
        return "correctAnswers must be a non-empty list"
    matched = []
    for a in answers:
        m = _match_option(a, options)
        if m is None:
            return f"correctAnswers entry {a!r} is not one of the options"
        if m not in matched:
            matched.append(m)
    data["correctAnswers"] = matched
    return None


async def generate_questions(
    llm: LLMProvider,
    lecture_content: str,
    number_of_questions: int = 5,
    difficulty: str = "medium",
    question_type: str = SINGLE_CHOICE,
    temperature: float = 0.7,
    thinking: bool = False,
) -> GenerationResult:
    """Generate questions of one type from *lecture_content*.

    The request is validated before any model call.  Malformed questions in
    the reply are dropped and counted; anything beyond the requested number
    is cut off.
    """
    validate_request(number_of_questions, difficulty, question_type)
    if not lecture_content or not lecture_content.strip():
        raise InvalidInput("Lecture content is empty.", stage="generation")

    prompt = build_generation_prompt(lecture_content, number_of_questions, difficulty, question_type)
    _log.info("Generate %d %s question(s), %s", number_of_questions, question_type, difficulty)
    try:
        response = await llm.generate(prompt, temperature=temperature, thinking=thinking)
    except Exception as e:
        _log.warning("Generation call failed: %s", e)
        raise GenerationFailed(f"Could not generate questions: {e}") from e
    if not isinstance(response, str) or not response.strip():
        raise GenerationFailed("Model returned an empty response.")

    data = extract_json(response, keys=("questions",))
    if data is None or not isinstance(data.get("questions"), list):
        _log.debug("Raw response: %.300s", response)
        raise GenerationFailed("Model response did not contain a questions array.")

    result = GenerationResult(questions=[])
    for i, raw in enumerate(data["questions"], 1):
        reason = _validate_question(raw, question_type)
        if reason:
            result.dropped += 1
            result.drop_reasons.append(f"question {i}: {reason}")
            _log.info("  Dropped question %d: %s", i, reason)
            continue
        result.questions.append(question_from_dict(raw))

    if len(result.questions) > number_of_questions:
        _log.info("  Model returned %d questions, keeping %d", len(result.questions), number_of_questions)
        result.questions = result.questions[:number_of_questions]

    if not result.questions:
        raise GenerationFailed(
            "Model returned no usable questions.",
            dropped=result.dropped, reasons=result.drop_reasons,
        )
    if result.dropped:
        _log.warning("Dropped %d malformed question(s)", result.dropped)
    return result
