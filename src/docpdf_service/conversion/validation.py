"""Intake checks and structural signature validation for uploaded Word documents.

Intake checks are *hard*: they raise `IntakeRejected` and the job is aborted
before any extraction. The signature check is *soft*: a mismatch only steers
the orchestrator towards the fallback notice.
"""
from __future__ import annotations

import logging
from pathlib import Path

from .errors import IntakeRejected
from .interfaces import UploadedDocument, ValidationResult
from .utils import format_file_size

LOGGER = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"

ALLOWED_EXTENSIONS = frozenset({".doc", ".docx"})
ALLOWED_MIME_TYPES = frozenset({DOC_MIME, DOCX_MIME})

ZIP_SIGNATURES = (
    b"\x50\x4b\x03\x04",  # local file header
    b"\x50\x4b\x05\x06",  # empty archive
    b"\x50\x4b\x07\x08",  # spanned archive
)
SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
_HEAD_BYTES = 8


def file_too_large(max_file_size: int) -> IntakeRejected:
    limit_mb = round(max_file_size / (1024 * 1024))
    return IntakeRejected(
        "FILE_TOO_LARGE",
        f"File size too large. Maximum size allowed is {limit_mb}MB.",
    )


def validate_intake(document: UploadedDocument, max_file_size: int) -> None:
    """Run the hard checks in order; raise `IntakeRejected` on the first failure."""
    if document.byte_size == 0:
        raise IntakeRejected(
            "EMPTY_FILE",
            "Uploaded file is empty. Please select a valid Word document.",
        )

    if document.byte_size > max_file_size:
        raise file_too_large(max_file_size)

    if document.declared_extension.lower() not in ALLOWED_EXTENSIONS:
        raise IntakeRejected(
            "INVALID_FILE_TYPE",
            "Invalid file type. Only .doc and .docx files are allowed.",
        )

    if document.declared_mime_type.strip().lower() not in ALLOWED_MIME_TYPES:
        raise IntakeRejected(
            "INVALID_MIME_TYPE",
            "Invalid file format. Please upload a valid Word document.",
        )

    if not Path(document.path).is_file():
        raise IntakeRejected(
            "FILE_NOT_FOUND",
            "File upload failed. Please try again.",
            status_code=500,
        )

    LOGGER.info(
        "File validation passed: %s (%s)",
        document.original_filename,
        format_file_size(document.byte_size),
    )


def check_signature(data: bytes, mime_type: str) -> bool:
    """Return True when the leading bytes match the container expected for ``mime_type``."""
    mime_type = mime_type.strip().lower()
    if mime_type == DOCX_MIME:
        return data[:4] in ZIP_SIGNATURES
    if mime_type == DOC_MIME:
        head = data[:_HEAD_BYTES]
        return 0xD0 in head and 0xCF in head
    return True


def check_integrity(path: str | Path, mime_type: str) -> ValidationResult:
    """Soft structural check of a stored upload. Never raises."""
    try:
        with Path(path).open("rb") as f:
            head = f.read(_HEAD_BYTES)
    except OSError as exc:
        LOGGER.warning("Integrity check could not read %s: %s", path, exc)
        return ValidationResult(ok=False, reason=SIGNATURE_MISMATCH, hard=False)

    if check_signature(head, mime_type):
        return ValidationResult.passed()
    LOGGER.warning("File integrity check failed, continuing with fallback notice")
    return ValidationResult(ok=False, reason=SIGNATURE_MISMATCH, hard=False)
