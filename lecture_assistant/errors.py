"""Typed pipeline errors.

Every error carries the pipeline stage that raised it and the HTTP status the
web layer answers with, so the orchestrator and the API never have to guess.
"""
from __future__ import annotations

from typing import Any


class LectureAssistantError(Exception):
    """Base class for all recoverable pipeline errors."""

    stage = "pipeline"
    status_code = 400

    def __init__(self, message: str, stage: str | None = None, **details: Any):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.details = details

    @property
    def error_code(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "stage": self.stage,
            "message": self.message,
            "details": self.details,
        }


# ── File stage ──────────────────────────────────────────────────────────

class SizeExceeded(LectureAssistantError):
    stage = "file"
    status_code = 413


class UnsupportedFormat(LectureAssistantError):
    stage = "file"
    status_code = 415


class ExtractionFailed(LectureAssistantError):
    stage = "file"
    status_code = 422


# ── Remote model stages ─────────────────────────────────────────────────

class InvalidInput(LectureAssistantError):
    stage = "analysis"
    status_code = 400


class QuestionCountOutOfRange(InvalidInput):
    stage = "generation"


class AnalysisFailed(LectureAssistantError):
    stage = "analysis"
    status_code = 502


class GenerationFailed(LectureAssistantError):
    stage = "generation"
    status_code = 502


# ── Editing and export ──────────────────────────────────────────────────

class QuestionNotFound(LectureAssistantError):
    stage = "editor"
    status_code = 404


class InvalidEdit(LectureAssistantError):
    stage = "editor"
    status_code = 400


class NothingSelected(LectureAssistantError):
    stage = "export"
    status_code = 400


class PipelineBusy(LectureAssistantError):
    status_code = 409
