from __future__ import annotations

import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest
from pypdf import PdfReader

from docpdf_service.conversion import CleanupScheduler, ConversionService, UploadedDocument
from docpdf_service.conversion.validation import DOC_MIME, DOCX_MIME

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    """Collects scheduled callbacks; `fire_due` runs those whose delay has elapsed."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.pending: list[tuple[float, Callable[[], None]]] = []

    def __call__(self, delay: float, fn: Callable[[], None]) -> "FakeTimer._Handle":
        return FakeTimer._Handle(self, self._clock() + delay, fn)

    class _Handle:
        def __init__(self, owner: "FakeTimer", due: float, fn: Callable[[], None]) -> None:
            self._owner = owner
            self._due = due
            self._fn = fn

        def start(self) -> None:
            self._owner.pending.append((self._due, self._fn))

    def fire_due(self) -> int:
        due = [item for item in self.pending if item[0] <= self._clock()]
        self.pending = [item for item in self.pending if item[0] > self._clock()]
        for _, fn in due:
            fn()
        return len(due)


class StaticExtractor:
    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[str] = []

    def extract_text(self, input_uri: str) -> str:
        self.calls.append(input_uri)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def timer(clock: FakeClock) -> FakeTimer:
    return FakeTimer(clock)


@pytest.fixture()
def incoming_dir(tmp_path: Path) -> Path:
    d = tmp_path / "incoming"
    d.mkdir()
    return d


@pytest.fixture()
def outgoing_dir(tmp_path: Path) -> Path:
    d = tmp_path / "outgoing"
    d.mkdir()
    return d


@pytest.fixture()
def cleanup(incoming_dir: Path, outgoing_dir: Path, clock: FakeClock, timer: FakeTimer) -> CleanupScheduler:
    return CleanupScheduler(
        incoming_dir,
        outgoing_dir,
        delay=5.0,
        max_age=24 * 60 * 60,
        sweep_interval=60 * 60,
        clock=clock,
        timer=timer,
    )


@pytest.fixture()
def make_service(cleanup: CleanupScheduler, outgoing_dir: Path) -> Callable[..., ConversionService]:
    def _make(extractor: StaticExtractor, **kwargs) -> ConversionService:
        kwargs.setdefault("max_file_size", 10 * 1024 * 1024)
        return ConversionService(
            extractor=extractor,
            cleanup=cleanup,
            outgoing_dir=str(outgoing_dir),
            now=lambda: FIXED_NOW,
            **kwargs,
        )

    return _make


@pytest.fixture()
def docx_bytes() -> bytes:
    return b"PK\x03\x04" + b"\x14\x00\x06\x00" + b"\x00" * 200


@pytest.fixture()
def doc_bytes() -> bytes:
    return b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 200


@pytest.fixture()
def make_upload(incoming_dir: Path) -> Callable[..., UploadedDocument]:
    def _make(
        data: bytes,
        filename: str = "report.docx",
        mime: str = DOCX_MIME,
        byte_size: int | None = None,
    ) -> UploadedDocument:
        path = incoming_dir / f"upload-{len(list(incoming_dir.iterdir()))}{Path(filename).suffix}"
        path.write_bytes(data)
        return UploadedDocument(
            path=path,
            original_filename=filename,
            declared_mime_type=mime,
            declared_extension=Path(filename).suffix.lower(),
            byte_size=len(data) if byte_size is None else byte_size,
        )

    return _make


def read_pdf(data_or_path: bytes | Path) -> PdfReader:
    if isinstance(data_or_path, Path):
        data_or_path = data_or_path.read_bytes()
    return PdfReader(io.BytesIO(data_or_path))

