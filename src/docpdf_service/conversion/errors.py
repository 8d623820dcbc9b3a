"""Exceptions raised inside the conversion pipeline."""
from __future__ import annotations

from pathlib import Path


class ConversionServiceError(RuntimeError):
    """Base class for all pipeline exceptions."""


class IntakeRejected(ConversionServiceError):
    """Hard validation failure: the upload is refused before any conversion work."""

    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


class FatalConversionError(ConversionServiceError):
    """Raised when the PDF write or its verification fails.

    ``path`` names the partially written output, if one was created.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ExtractionError(ConversionServiceError):
    """Raised by extractor adapters when a document yields no text."""


class InvalidTransition(ConversionServiceError):
    """Raised when a job is moved to a state it cannot reach from its current one."""
