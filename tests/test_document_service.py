import pytest

from cavision.services.document_service import (
    DOCX,
    PDF,
    TEXT,
    UploadValidationError,
    prepare_for_model,
    validate_upload,
)

FIVE_MB = 5 * 1024 * 1024


def test_accepts_pdf_docx_and_text():
    assert validate_upload("a.pdf", PDF, b"x", max_bytes=FIVE_MB).mime_type == PDF
    assert validate_upload("a.docx", DOCX, b"x", max_bytes=FIVE_MB).mime_type == DOCX
    assert validate_upload("a.txt", "text/plain; charset=utf-8", b"x", max_bytes=FIVE_MB).mime_type == TEXT


def test_falls_back_to_extension_for_generic_content_type():
    document = validate_upload("notes.docx", "application/octet-stream", b"x", max_bytes=FIVE_MB)
    assert document.mime_type == DOCX


def test_rejects_oversized_file():
    with pytest.raises(UploadValidationError) as excinfo:
        validate_upload("a.pdf", PDF, b"x" * (FIVE_MB + 1), max_bytes=FIVE_MB)
    assert excinfo.value.reason == "too_large"


def test_rejects_unsupported_type():
    with pytest.raises(UploadValidationError) as excinfo:
        validate_upload("photo.png", "image/png", b"\x89PNG", max_bytes=FIVE_MB)
    assert excinfo.value.reason == "unsupported_type"


def test_rejects_empty_file():
    with pytest.raises(UploadValidationError) as excinfo:
        validate_upload("a.pdf", PDF, b"", max_bytes=FIVE_MB)
    assert excinfo.value.reason == "missing"


def test_corrupt_docx_is_unreadable():
    document = validate_upload("a.docx", DOCX, b"not a zip", max_bytes=FIVE_MB)
    with pytest.raises(UploadValidationError) as excinfo:
        prepare_for_model(document)
    assert excinfo.value.reason == "unreadable"

