from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union

FILL_IN_THE_BLANK = "fill-in-the-blank"
SINGLE_CHOICE = "single-choice"
MULTIPLE_CHOICE = "multiple-choice"
QUESTION_TYPES = (FILL_IN_THE_BLANK, SINGLE_CHOICE, MULTIPLE_CHOICE)

DIFFICULTIES = ("easy", "medium", "hard")
CONTENT_TYPES = ("text", "image", "pdf")

BLANK_MARKER = "___"
MIN_OPTIONS = 3
MAX_OPTIONS = 5


@dataclass
class UploadedFile:
    """Raw file as received from the browser."""
    name: str
    mime_type: str
    data: bytes
    size: int = -1

    def __post_init__(self):
        if self.size < 0:
            self.size = len(self.data)


@dataclass
class UploadedFileInfo:
    file_name: str
    file_type: str
    file_size: int
    text_content: str | None = None
    data_uri: str | None = None
    error: str | None = None

    @property
    def content_type(self) -> str | None:
        if self.text_content is not None:
            return "text"
        if self.data_uri is None:
            return None
        if self.data_uri.startswith("data:application/pdf"):
            return "pdf"
        return "image"

    def to_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "text_content": self.text_content,
            "data_uri": self.data_uri,
            "error": self.error,
        }


@dataclass
class LectureContentItem:
    file_name: str
    content_type: str  # text | image | pdf
    raw_text_content: str | None = None
    content_data_uri: str | None = None


@dataclass(frozen=True)
class LectureAnalysisResult:
    key_concepts: tuple[str, ...]
    themes: tuple[str, ...]
    summary: str

    def to_dict(self) -> dict:
        return {
            "keyConcepts": list(self.key_concepts),
            "themes": list(self.themes),
            "summary": self.summary,
        }


# ── Generated questions ─────────────────────────────────────────────────

@dataclass(frozen=True)
class FillInTheBlankQuestion:
    question_text: str
    correct_answer: str
    type: ClassVar[str] = FILL_IN_THE_BLANK

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "questionText": self.question_text,
            "correctAnswer": self.correct_answer,
        }


@dataclass(frozen=True)
class SingleChoiceQuestion:
    question_text: str
    options: tuple[str, ...]
    correct_answer: str
    type: ClassVar[str] = SINGLE_CHOICE

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "questionText": self.question_text,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
        }


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    question_text: str
    options: tuple[str, ...]
    correct_answers: tuple[str, ...]
    type: ClassVar[str] = MULTIPLE_CHOICE

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "questionText": self.question_text,
            "options": list(self.options),
            "correctAnswers": list(self.correct_answers),
        }


GeneratedQuestion = Union[FillInTheBlankQuestion, SingleChoiceQuestion, MultipleChoiceQuestion]


def question_from_dict(data: dict) -> GeneratedQuestion:
    """Build a question from its camelCase wire form.

    Only the shape is checked here; content rules (option counts, answer
    membership) belong to the generator's validation.
    """
    qtype = data.get("type")
    text = data.get("questionText")
    if not isinstance(text, str):
        raise ValueError("questionText must be a string")
    if qtype == FILL_IN_THE_BLANK:
        return FillInTheBlankQuestion(text, str(data["correctAnswer"]))
    if qtype == SINGLE_CHOICE:
        return SingleChoiceQuestion(
            text, tuple(str(o) for o in data["options"]), str(data["correctAnswer"]),
        )
    if qtype == MULTIPLE_CHOICE:
        return MultipleChoiceQuestion(
            text,
            tuple(str(o) for o in data["options"]),
            tuple(str(a) for a in data["correctAnswers"]),
        )
    raise ValueError(f"unknown question type: {qtype!r}")


# ── Editable questions ──────────────────────────────────────────────────

@dataclass(frozen=True)
class EditableOption:
    id: str
    text: str

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True)
class EditableFillInTheBlank:
    id: str
    original: FillInTheBlankQuestion
    edited_question_text: str
    edited_correct_answer: str
    selected: bool = True
    type: ClassVar[str] = FILL_IN_THE_BLANK


@dataclass(frozen=True)
class EditableSingleChoice:
    id: str
    original: SingleChoiceQuestion
    edited_question_text: str
    edited_options: tuple[EditableOption, ...]
    edited_correct_answer: str
    selected: bool = True
    type: ClassVar[str] = SINGLE_CHOICE


@dataclass(frozen=True)
class EditableMultipleChoice:
    id: str
    original: MultipleChoiceQuestion
    edited_question_text: str
    edited_options: tuple[EditableOption, ...]
    edited_correct_answers: tuple[str, ...] = field(default_factory=tuple)
    selected: bool = True
    type: ClassVar[str] = MULTIPLE_CHOICE


EditableQuestionItem = Union[EditableFillInTheBlank, EditableSingleChoice, EditableMultipleChoice]
