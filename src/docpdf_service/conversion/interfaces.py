from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol


class TextExtractorGateway(Protocol):
    def extract_text(self, input_uri: str) -> str:
        """Extract plain text from the given document synchronously.
        May raise or return an empty string; callers treat both as unusable.
        """


class TimerHandle(Protocol):
    def start(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]
Clock = Callable[[], float]


@dataclass(frozen=True)
class UploadedDocument:
    path: Path
    original_filename: str
    declared_mime_type: str
    declared_extension: str
    byte_size: int


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: Optional[str] = None
    hard: bool = False

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)


@dataclass(frozen=True)
class ExtractedContent:
    """Either non-empty plain text or the unusable marker (text is None)."""

    text: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.text is not None

    @classmethod
    def unusable(cls) -> "ExtractedContent":
        return cls(text=None)

    @classmethod
    def from_text(cls, text: Optional[str]) -> "ExtractedContent":
        if text is None or not text.strip():
            return cls.unusable()
        return cls(text=text)


@dataclass(frozen=True)
class OutputArtifact:
    path: Path
    download_name: str
    size: int
