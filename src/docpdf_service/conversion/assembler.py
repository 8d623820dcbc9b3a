"""Rendering laid-out pages to PDF bytes and writing the output artifact."""
from __future__ import annotations

import io
import logging
import secrets
import time
from pathlib import Path
from typing import Sequence
from urllib.parse import quote

from reportlab.pdfgen import canvas

from .errors import FatalConversionError
from .interfaces import OutputArtifact
from .layout import DEFAULT_LAYOUT, LayoutSettings, Page
from .utils import original_basename, safe_basename

LOGGER = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
PDF_EXTENSION = ".pdf"


def _drawable(text: str) -> str:
    # Standard Type 1 fonts only cover the WinAnsi code page.
    return text.encode("cp1252", errors="replace").decode("cp1252")


def render_pdf(pages: Sequence[Page], settings: LayoutSettings = DEFAULT_LAYOUT) -> bytes:
    buffer = io.BytesIO()
    # invariant=1 drops the creation date and random document id
    pdf = canvas.Canvas(
        buffer,
        pagesize=(settings.page_width, settings.page_height),
        invariant=1,
    )
    for page in pages:
        pdf.setFont(settings.font_name, settings.font_size)
        for line in page.lines:
            if line.text:
                pdf.drawString(line.x, line.y, _drawable(line.text))
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def unique_output_name(original_filename: str, suffix: str = PDF_EXTENSION) -> str:
    timestamp = int(time.time() * 1000)
    random_suffix = secrets.randbelow(10**9)
    return f"{safe_basename(original_filename)}_{timestamp}_{random_suffix}{suffix}"


def download_name(original_filename: str) -> str:
    return f"{original_basename(original_filename)}{PDF_EXTENSION}"


def write_artifact(data: bytes, original_filename: str, outgoing_dir: str | Path) -> OutputArtifact:
    """Write ``data`` to a fresh file in ``outgoing_dir`` and verify it landed."""
    out_dir = Path(outgoing_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / unique_output_name(original_filename)
    try:
        f = out_path.open("xb")
    except OSError as exc:
        # the name may belong to another job's file; leave it alone
        raise FatalConversionError(f"Could not create PDF output: {exc}") from exc
    try:
        with f:
            f.write(data)
    except OSError as exc:
        raise FatalConversionError(f"Could not write PDF output: {exc}", path=out_path) from exc

    if not out_path.is_file():
        raise FatalConversionError("PDF file was not generated successfully")
    size = out_path.stat().st_size
    if size == 0:
        raise FatalConversionError("PDF file was generated empty", path=out_path)

    LOGGER.info("Wrote %s (%d bytes)", out_path.name, size)
    return OutputArtifact(path=out_path, download_name=download_name(original_filename), size=size)


def content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def delivery_headers(artifact: OutputArtifact) -> dict[str, str]:
    return {
        "Content-Type": PDF_CONTENT_TYPE,
        "Content-Length": str(artifact.size),
        "Content-Disposition": content_disposition(artifact.download_name),
        "Cache-Control": "no-cache",
    }
