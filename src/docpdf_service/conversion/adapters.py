import logging
import secrets
import threading
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .errors import ExtractionError
from .interfaces import TextExtractorGateway
from .utils import format_file_size, safe_basename, safe_suffix
from .validation import file_too_large

LOGGER = logging.getLogger(__name__)

CHUNK = 1024 * 1024


class LocalStorage:
    """Process-owned ``incoming`` / ``outgoing`` directories under one data root."""

    def __init__(self, data_dir: str | Path) -> None:
        self._base = Path(data_dir).resolve()

    @property
    def incoming_dir(self) -> Path:
        return self._base / "incoming"

    @property
    def outgoing_dir(self) -> Path:
        return self._base / "outgoing"

    def upload_path(self, filename: str) -> Path:
        unique = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
        return self.incoming_dir / f"{safe_basename(filename)}-{unique}{safe_suffix(filename)}"

    async def save_upload(
        self,
        filename: str,
        reader: Callable[[int], Awaitable[bytes]],
        max_bytes: Optional[int] = None,
    ) -> tuple[Path, int]:
        """Stream an upload into ``incoming`` and return its path and byte size.

        Raises `IntakeRejected` (``FILE_TOO_LARGE``) as soon as the stream
        passes ``max_bytes``; the partial file is removed first. A write
        error also removes the partial file before propagating.
        """
        self.incoming_dir.mkdir(parents=True, exist_ok=True)
        input_path = self.upload_path(filename)
        size_bytes = 0
        f_out = input_path.open("xb")
        try:
            with f_out:
                while True:
                    chunk = await reader(CHUNK)
                    if not chunk:
                        break
                    b = bytes(chunk)
                    size_bytes += len(b)
                    if max_bytes is not None and size_bytes > max_bytes:
                        raise file_too_large(max_bytes)
                    f_out.write(b)
        except BaseException:
            input_path.unlink(missing_ok=True)
            raise
        LOGGER.info("Stored upload %s as %s (%s)", filename, input_path.name, format_file_size(size_bytes))
        return input_path, size_bytes


class DoclingExtractor(TextExtractorGateway):
    """Plain-text extraction through Docling's DocumentConverter.

    Docling reads Office Open XML (.docx). Legacy binary .doc input is
    rejected by Docling, which the orchestrator turns into the fallback notice.
    """

    EXPORT_METHODS = ("export_to_text", "export_to_markdown", "to_markdown", "as_markdown")

    def __init__(self) -> None:
        self._converter = None
        self._lock = threading.Lock()

    def _document_converter(self):
        # convert() runs on worker threads; build the converter only once
        with self._lock:
            if self._converter is None:
                from docling.document_converter import DocumentConverter  # type: ignore
                self._converter = DocumentConverter()
            return self._converter

    def extract_text(self, input_uri: str) -> str:
        result = self._document_converter().convert(input_uri)
        # generic extraction across variants
        doc = getattr(result, "document", None)
        if doc is None:
            to_doc = getattr(result, "to_doc", None)
            doc = to_doc() if callable(to_doc) else result
        for m in self.EXPORT_METHODS:
            fn = getattr(doc, m, None)
            if callable(fn):
                text = fn()
                LOGGER.debug("Extracted %d characters from %s via %s", len(text), input_uri, m)
                return text
        raise ExtractionError("Doc object lacks a text export method")
