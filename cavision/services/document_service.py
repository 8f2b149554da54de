"""
Validation and preparation of uploaded study documents.

Checks run before any model call; DOCX files are flattened to plain text
because Gemini does not accept Word documents as media parts.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import PurePath

from docx import Document

logger = logging.getLogger(__name__)

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT = "text/plain"

ACCEPTED_MIME_TYPES = (PDF, DOCX, TEXT)
_EXTENSION_TYPES = {".pdf": PDF, ".docx": DOCX, ".txt": TEXT}


class UploadValidationError(ValueError):
    """Raised when an upload is rejected before submission."""

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason  # "missing" | "too_large" | "unsupported_type" | "unreadable"


@dataclass(frozen=True)
class UploadedDocument:
    filename: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _resolve_mime_type(filename: str, content_type: str | None) -> str:
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime in ACCEPTED_MIME_TYPES:
        return mime
    # Browsers often send application/octet-stream for Word files.
    extension = PurePath(filename or "").suffix.lower()
    return _EXTENSION_TYPES.get(extension) or mime or "application/octet-stream"


def validate_upload(
    filename: str | None,
    content_type: str | None,
    data: bytes | None,
    *,
    max_bytes: int,
) -> UploadedDocument:
    if not data:
        raise UploadValidationError("File is required.", reason="missing")
    if len(data) > max_bytes:
        raise UploadValidationError(
            f"Max file size is {max_bytes // (1024 * 1024)}MB.",
            reason="too_large",
        )

    filename = filename or "upload"
    mime_type = _resolve_mime_type(filename, content_type)
    if mime_type not in ACCEPTED_MIME_TYPES:
        raise UploadValidationError(
            ".pdf, .docx, and .txt files are accepted.",
            reason="unsupported_type",
        )
    return UploadedDocument(filename=filename, mime_type=mime_type, data=data)


def extract_text_from_docx(data: bytes) -> str:
    try:
        document = Document(io.BytesIO(data))
    except Exception as exc:  # noqa: BLE001
        logger.error("Could not read DOCX file: %s", exc, exc_info=True)
        raise UploadValidationError("Invalid or corrupted DOCX file.", reason="unreadable") from exc

    paragraphs = [para.text for para in document.paragraphs if para.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                paragraphs.append(" | ".join(cells))
    return "\n".join(paragraphs)


def prepare_for_model(document: UploadedDocument) -> UploadedDocument:
    """Return a variant of the document the model can read as a media part."""
    if document.mime_type != DOCX:
        return document

    text = extract_text_from_docx(document.data)
    if not text.strip():
        raise UploadValidationError("The document does not contain any text.", reason="unreadable")
    logger.info(
        "converted docx to text",
        extra={"upload_filename": document.filename, "chars": len(text)},
    )
    return UploadedDocument(filename=document.filename, mime_type=TEXT, data=text.encode("utf-8"))

