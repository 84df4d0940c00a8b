"""Turn uploaded lecture files into text or data URIs for analysis."""
from __future__ import annotations

import base64
import io
import logging
import zipfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import docx
from docx.opc.exceptions import PackageNotFoundError
from lxml import etree

from lecture_assistant.errors import LectureAssistantError, SizeExceeded, UnsupportedFormat
from lecture_assistant.models import UploadedFile, UploadedFileInfo

log = logging.getLogger("lecture_assistant.extract")

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

TEXT_SUFFIXES = (".txt", ".md")
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"
PDF_MIME = "application/pdf"


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _docx_text(data: bytes) -> str:
    """Raw text of a .docx: paragraphs first, then table cells, one per line."""
    document = docx.Document(io.BytesIO(data))
    lines = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines).strip()


def extract(upload: UploadedFile, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> UploadedFileInfo:
    """Extract text or a data URI from one uploaded file.

    Raises SizeExceeded before touching the bytes, and UnsupportedFormat for
    legacy .doc files and unknown types.  A malformed .docx is not raised:
    the returned info carries the error instead.
    """
    if upload.size > max_bytes:
        raise SizeExceeded(
            f"File '{upload.name}' is larger than {max_bytes / (1024 * 1024):g} MB.",
            file_name=upload.name, file_size=upload.size, max_bytes=max_bytes,
        )

    name = upload.name.lower()
    mime = upload.mime_type or ""
    info = UploadedFileInfo(file_name=upload.name, file_type=mime, file_size=upload.size)

    if mime == "text/plain" or name.endswith(TEXT_SUFFIXES):
        info.text_content = upload.data.decode("utf-8", errors="replace")
    elif mime == DOCX_MIME or name.endswith(".docx"):
        try:
            text = _docx_text(upload.data)
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, etree.LxmlError) as e:
            log.warning("DOCX extraction failed for %s: %s", upload.name, e)
            info.error = f"Could not read Word document '{upload.name}': {e}"
        else:
            if text:
                info.text_content = text
            else:
                info.error = f"Word document '{upload.name}' contains no text."
    elif mime.startswith("image/"):
        info.data_uri = to_data_uri(upload.data, mime)
    elif mime == PDF_MIME or name.endswith(".pdf"):
        info.data_uri = to_data_uri(upload.data, PDF_MIME)
    elif mime == DOC_MIME or name.endswith(".doc"):
        raise UnsupportedFormat(
            f"Legacy Word file '{upload.name}' cannot be read. Save it as .docx or PDF.",
            file_name=upload.name,
        )
    else:
        raise UnsupportedFormat(
            f"Unsupported file type for '{upload.name}'. "
            "Upload a text (.txt, .md), Word (.docx), PDF or image file.",
            file_name=upload.name, file_type=mime,
        )

    log.info("Extracted %s (%s, %d bytes) -> %s", upload.name, mime or "?", upload.size,
             "error" if info.error else info.content_type)
    return info


@dataclass
class ExtractionOutcome:
    """Result of one file in a batch: either info or an error."""
    file_name: str
    info: UploadedFileInfo | None = None
    error: LectureAssistantError | None = None

    @property
    def ok(self) -> bool:
        return self.info is not None and self.info.error is None


def extract_batch(
    uploads: Iterable[UploadedFile],
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> Iterator[ExtractionOutcome]:
    """Extract files one at a time, reporting each success or failure.

    A failing file never stops the batch.
    """
    for upload in uploads:
        try:
            info = extract(upload, max_bytes)
        except LectureAssistantError as e:
            log.info("Batch: %s rejected (%s)", upload.name, e.error_code)
            yield ExtractionOutcome(upload.name, error=e)
            continue
        yield ExtractionOutcome(upload.name, info=info)
