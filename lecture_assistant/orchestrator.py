"""Pipeline state machine: file processing, analysis, question generation.

One ``Pipeline`` owns one ``PipelineState``.  Every upload bumps the state's
epoch; a stage that finishes after a newer upload started drops its result
instead of writing it.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from lecture_assistant.analysis import analyze, content_item_from_file
from lecture_assistant.config import Settings
from lecture_assistant.editor import QuestionEditor
from lecture_assistant.errors import (
    AnalysisFailed,
    ExtractionFailed,
    GenerationFailed,
    InvalidInput,
    LectureAssistantError,
    PipelineBusy,
)
from lecture_assistant.extractor import extract, extract_batch
from lecture_assistant.models import LectureAnalysisResult, LectureContentItem, UploadedFile, UploadedFileInfo
from lecture_assistant.prompts import format_lecture_content
from lecture_assistant.providers.base import LLMProvider
from lecture_assistant.question_generator import generate_questions, validate_request

_log = logging.getLogger("lecture_assistant.pipeline")


class Stage(str, enum.Enum):
    IDLE = "idle"
    FILE_PROCESSING = "file_processing"
    ANALYZING = "analyzing"
    GENERATING = "generating"


@dataclass
class FileFailure:
    file_name: str
    error: LectureAssistantError

    def to_dict(self) -> dict:
        return {"file_name": self.file_name, **self.error.to_dict()}


@dataclass
class PipelineState:
    stage: Stage = Stage.IDLE
    epoch: int = 0
    file_info: UploadedFileInfo | None = None
    analysis: LectureAnalysisResult | None = None
    editor: QuestionEditor | None = None
    dropped_questions: int = 0
    file_error: LectureAssistantError | None = None
    analysis_error: LectureAssistantError | None = None
    generation_error: LectureAssistantError | None = None
    batch_errors: list[FileFailure] = field(default_factory=list)

    @property
    def busy(self) -> bool:
        return self.stage is not Stage.IDLE

    def reset(self) -> None:
        """Clear every result and error; the epoch keeps counting."""
        self.stage = Stage.IDLE
        self.file_info = None
        self.analysis = None
        self.editor = None
        self.dropped_questions = 0
        self.file_error = None
        self.analysis_error = None
        self.generation_error = None
        self.batch_errors = []

    def to_dict(self) -> dict:
        def err(e):
            return e.to_dict() if e else None

        return {
            "stage": self.stage.value,
            "epoch": self.epoch,
            "file_info": self.file_info.to_dict() if self.file_info else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "questions": self.editor.to_dict() if self.editor else [],
            "dropped_questions": self.dropped_questions,
            "file_error": err(self.file_error),
            "analysis_error": err(self.analysis_error),
            "generation_error": err(self.generation_error),
            "batch_errors": [f.to_dict() for f in self.batch_errors],
        }


class Pipeline:
    def __init__(self, get_llm: Callable[[], LLMProvider], settings: Settings | None = None):
        self._get_llm = get_llm
        self.settings = settings or Settings()
        self.state = PipelineState()

    def _is_current(self, epoch: int) -> bool:
        if epoch != self.state.epoch:
            _log.info("Discarding result of stale epoch %d (current %d)", epoch, self.state.epoch)
            return False
        return True

    @contextlib.contextmanager
    def _running(self, epoch: int, stage: Stage):
        """Hold *stage* while the block runs; always fall back to IDLE for the current epoch."""
        self.state.stage = stage
        try:
            yield
        finally:
            if epoch == self.state.epoch:
                self.state.stage = Stage.IDLE

    def _llm(self, error_cls: type[LectureAssistantError]) -> LLMProvider:
        try:
            return self._get_llm()
        except Exception as e:
            _log.warning("Could not set up the model provider: %s", e)
            raise error_cls(f"Model provider is not available: {e}") from e

    def begin_upload(self) -> int:
        """Reset downstream state for a new upload and return its epoch."""
        self.state.reset()
        self.state.epoch += 1
        self.state.stage = Stage.FILE_PROCESSING
        _log.info("Upload started (epoch %d)", self.state.epoch)
        return self.state.epoch

    def reject_upload(self, error: LectureAssistantError) -> PipelineState:
        """Record a file error for an upload turned away before extraction."""
        self.begin_upload()
        self.state.file_error = error
        self.state.stage = Stage.IDLE
        return self.state

    async def process_file(self, upload: UploadedFile) -> PipelineState:
        """Single-shot mode: extract one file, then analyze it."""
        epoch = self.begin_upload()
        with self._running(epoch, Stage.FILE_PROCESSING):
            try:
                info = await asyncio.to_thread(extract, upload, self.settings.max_upload_bytes)
            except LectureAssistantError as e:
                if self._is_current(epoch):
                    self.state.file_error = e
                return self.state
        if not self._is_current(epoch):
            return self.state

        self.state.file_info = info
        if info.error:
            self.state.file_error = ExtractionFailed(info.error, file_name=info.file_name)
            return self.state

        await self._analyze(epoch, [content_item_from_file(info)])
        return self.state

    async def process_batch(
        self,
        uploads: Sequence[UploadedFile],
        analyze_together: bool | None = None,
    ) -> PipelineState:
        """Batch mode: extract files in order, collecting per-file failures.

        By default only the last successfully processed file is analyzed;
        with *analyze_together* every processed file goes into one call.
        """
        if analyze_together is None:
            analyze_together = self.settings.analyze_batch_together
        epoch = self.begin_upload()
        processed: list[UploadedFileInfo] = []

        with self._running(epoch, Stage.FILE_PROCESSING):
            outcomes = extract_batch(uploads, self.settings.max_upload_bytes)
            while True:
                outcome = await asyncio.to_thread(next, outcomes, None)
                if outcome is None:
                    break
                if not self._is_current(epoch):
                    return self.state
                if outcome.error is not None:
                    self.state.batch_errors.append(FileFailure(outcome.file_name, outcome.error))
                elif outcome.info.error:
                    failure = ExtractionFailed(outcome.info.error, file_name=outcome.file_name)
                    self.state.batch_errors.append(FileFailure(outcome.file_name, failure))
                else:
                    processed.append(outcome.info)
                    self.state.file_info = outcome.info

        _log.info("Batch: %d processed, %d failed", len(processed), len(self.state.batch_errors))
        if not processed:
            self.state.file_error = InvalidInput("None of the uploaded files could be processed.", stage="file")
            return self.state

        sources = processed if analyze_together else processed[-1:]
        await self._analyze(epoch, [content_item_from_file(info) for info in sources])
        return self.state

    async def _analyze(self, epoch: int, items: list[LectureContentItem]) -> None:
        with self._running(epoch, Stage.ANALYZING):
            try:
                result = await analyze(
                    self._llm(AnalysisFailed), items,
                    temperature=self.settings.analysis_temperature,
                    thinking=self.settings.llm_thinking,
                )
            except LectureAssistantError as e:
                if self._is_current(epoch):
                    self.state.analysis_error = e
                return
            if self._is_current(epoch):
                self.state.analysis = result

    async def generate(
        self,
        number_of_questions: int | None = None,
        difficulty: str | None = None,
        question_type: str | None = None,
    ) -> PipelineState:
        """Generate questions from the current analysis into a fresh editor."""
        s = self.settings
        number_of_questions = s.default_question_count if number_of_questions is None else number_of_questions
        difficulty = difficulty or s.default_difficulty
        question_type = question_type or s.default_question_type

        if self.state.busy:
            raise PipelineBusy(f"Pipeline is busy ({self.state.stage.value}).", stage=self.state.stage.value)

        self.state.generation_error = None
        try:
            validate_request(number_of_questions, difficulty, question_type)
            if self.state.analysis is None:
                raise InvalidInput("Analyze a lecture before generating questions.", stage="generation")
        except LectureAssistantError as e:
            self.state.generation_error = e
            return self.state

        epoch = self.state.epoch
        with self._running(epoch, Stage.GENERATING):
            try:
                result = await generate_questions(
                    self._llm(GenerationFailed),
                    format_lecture_content(self.state.analysis),
                    number_of_questions=number_of_questions,
                    difficulty=difficulty,
                    question_type=question_type,
                    temperature=s.generation_temperature,
                    thinking=s.llm_thinking,
                )
            except LectureAssistantError as e:
                if self._is_current(epoch):
                    self.state.generation_error = e
                return self.state
            if self._is_current(epoch):
                self.state.editor = QuestionEditor.from_generated(result.questions)
                self.state.dropped_questions = result.dropped
        return self.state
