"""Send extracted lecture content to the model and parse concepts, themes and summary."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lecture_assistant.errors import AnalysisFailed, InvalidInput
from lecture_assistant.llm_output import extract_json
from lecture_assistant.models import CONTENT_TYPES, LectureAnalysisResult, LectureContentItem
from lecture_assistant.prompts import build_analysis_prompt

if TYPE_CHECKING:
    from lecture_assistant.models import UploadedFileInfo
    from lecture_assistant.providers.base import LLMProvider

_log = logging.getLogger("lecture_assistant.analysis")

ANALYSIS_KEYS = ("keyConcepts", "themes", "summary")


def content_item_from_file(info: UploadedFileInfo) -> LectureContentItem:
    content_type = info.content_type
    if content_type is None:
        raise InvalidInput(f"File '{info.file_name}' has no extracted content.", file_name=info.file_name)
    return LectureContentItem(
        file_name=info.file_name,
        content_type=content_type,
        raw_text_content=info.text_content,
        content_data_uri=info.data_uri,
    )


def validate_items(items: list[LectureContentItem]) -> None:
    """Check every item carries the payload its content type needs."""
    if not items:
        raise InvalidInput("At least one lecture content item is required.")
    for item in items:
        if item.content_type not in CONTENT_TYPES:
            raise InvalidInput(
                f"Content item '{item.file_name}' has unknown type '{item.content_type}'.",
                file_name=item.file_name,
            )
        if item.content_type == "text" and not item.raw_text_content:
            raise InvalidInput(
                f"Content item '{item.file_name}' of type 'text' is missing its text content.",
                file_name=item.file_name,
            )
        if item.content_type != "text" and not item.content_data_uri:
            raise InvalidInput(
                f"Content item '{item.file_name}' of type '{item.content_type}' is missing its data URI.",
                file_name=item.file_name,
            )


def _string_list(value) -> tuple[str, ...] | None:
    if not isinstance(value, list):
        return None
    return tuple(str(v).strip() for v in value if str(v).strip())


def parse_analysis(data: dict) -> LectureAnalysisResult:
    key_concepts = _string_list(data.get("keyConcepts"))
    themes = _string_list(data.get("themes"))
    summary = data.get("summary")
    if key_concepts is None or themes is None or not isinstance(summary, str):
        raise AnalysisFailed("Model response is missing keyConcepts, themes or summary.")
    return LectureAnalysisResult(key_concepts=key_concepts, themes=themes, summary=summary.strip())


async def analyze(
    llm: LLMProvider,
    items: LectureContentItem | list[LectureContentItem],
    temperature: float = 0.3,
    thinking: bool = False,
) -> LectureAnalysisResult:
    """Analyze one or more content items together in a single model call.

    Input is validated before the call; any model or parse failure becomes
    AnalysisFailed.  There is no retry.
    """
    if isinstance(items, LectureContentItem):
        items = [items]
    validate_items(items)

    prompt = build_analysis_prompt(items)
    media = [item.content_data_uri for item in items if item.content_type != "text"]
    names = ", ".join(item.file_name for item in items)
    _log.info("Analyzing %d item(s): %s", len(items), names)

    try:
        response = await llm.generate(prompt, temperature=temperature, media=media, thinking=thinking)
    except Exception as e:
        _log.warning("Analysis call failed: %s", e)
        raise AnalysisFailed(f"Could not analyze content: {e}") from e
    if not isinstance(response, str) or not response.strip():
        raise AnalysisFailed("Model returned an empty response.")

    data = extract_json(response, keys=ANALYSIS_KEYS)
    if data is None:
        _log.debug("Raw response: %.300s", response)
        raise AnalysisFailed("Model response did not contain valid JSON.")
    result = parse_analysis(data)
    _log.info("Analysis OK: %d concepts, %d themes", len(result.key_concepts), len(result.themes))
    return result
