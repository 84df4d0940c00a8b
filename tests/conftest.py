"""Shared test fixtures."""
from __future__ import annotations

import io
import json
import zipfile

import docx
import pytest

from lecture_assistant.models import (
    FillInTheBlankQuestion,
    LectureAnalysisResult,
    MultipleChoiceQuestion,
    SingleChoiceQuestion,
    UploadedFile,
)


class FakeLLM:
    """Scripted LLM; a response that is an Exception instance is raised."""

    def __init__(self, responses=None):
        self._responses = responses or []
        self.prompts: list[str] = []
        self.media: list[list[str]] = []

    async def generate(self, prompt: str, temperature: float = 0.7, media=None, thinking=False) -> str:
        idx = min(len(self.prompts), len(self._responses) - 1)
        self.prompts.append(prompt)
        self.media.append(list(media or []))
        response = self._responses[idx]
        if isinstance(response, Exception):
            raise response
        return response

    def name(self) -> str:
        return "fake-llm"

    @property
    def call_count(self):
        return len(self.prompts)


ANALYSIS_JSON = json.dumps({
    "keyConcepts": ["mitochondria"],
    "themes": ["cell biology"],
    "summary": "Mitochondria produce most of the cell's energy.",
})


def questions_json(questions: list[dict]) -> str:
    return json.dumps({"questions": questions})


SINGLE_CHOICE_JSON = questions_json([
    {
        "type": "single-choice",
        "questionText": "Which organelle is called the powerhouse of the cell?",
        "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi apparatus"],
        "correctAnswer": "Mitochondria",
    },
    {
        "type": "single-choice",
        "questionText": "What molecule do mitochondria mainly produce?",
        "options": ["ATP", "DNA", "Glucose"],
        "correctAnswer": "ATP",
    },
    {
        "type": "single-choice",
        "questionText": "Mitochondria are found in which kind of cells?",
        "options": ["Eukaryotic", "Prokaryotic", "Viral", "None"],
        "correctAnswer": "Eukaryotic",
    },
])


@pytest.fixture
def text_upload():
    text = "The mitochondria is the powerhouse of the cell."
    return UploadedFile(name="lecture.txt", mime_type="text/plain", data=text.encode("utf-8"))


@pytest.fixture
def docx_bytes():
    document = docx.Document()
    document.add_paragraph("Photosynthesis converts light into chemical energy.")
    document.add_paragraph("Chlorophyll absorbs mostly blue and red light.")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Input"
    table.rows[0].cells[1].text = "Carbon dioxide"
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


@pytest.fixture
def truncated_docx_bytes(docx_bytes):
    """A valid zip whose main document XML is cut in half."""
    src = zipfile.ZipFile(io.BytesIO(docx_bytes))
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as out:
        for entry in src.infolist():
            data = src.read(entry.filename)
            if entry.filename == "word/document.xml":
                data = data[: len(data) // 2]
            out.writestr(entry, data)
    return buf.getvalue()


@pytest.fixture
def sample_analysis():
    return LectureAnalysisResult(
        key_concepts=("mitochondria",),
        themes=("cell biology",),
        summary="Mitochondria produce most of the cell's energy.",
    )


@pytest.fixture
def sample_questions():
    """One question of each variant."""
    return [
        FillInTheBlankQuestion("The ___ is the powerhouse of the cell.", "mitochondria"),
        SingleChoiceQuestion(
            "Which organelle makes ATP?",
            ("Nucleus", "Mitochondria", "Ribosome"),
            "Mitochondria",
        ),
        MultipleChoiceQuestion(
            "Which of these are organelles?",
            ("Mitochondria", "Ribosome", "Glucose", "Lysosome"),
            ("Mitochondria", "Ribosome", "Lysosome"),
        ),
    ]
