"""Diagnostic notice produced when no usable text could be extracted."""
from __future__ import annotations

from datetime import datetime

from .utils import utc_timestamp

NOTICE_TITLE = "Document Conversion Notice"

LIKELY_CAUSES = (
    "The file is corrupted or was truncated during upload.",
    "The file is not a genuine Word document despite its extension.",
    "The document is a legacy binary .doc file whose text could not be read.",
    "The document contains no extractable text (for example only images).",
    "The document is password protected or encrypted.",
)

REMEDIATION_STEPS = (
    "Open the document in a word processor and confirm it displays correctly.",
    "Re-save it as a .docx file and upload it again.",
    "Remove password protection before uploading.",
    "If the document only holds scanned images, export it to PDF directly.",
)


def build_notice_lines(original_filename: str, generated_at: datetime) -> list[str]:
    lines = [
        NOTICE_TITLE,
        "",
        f"Original file: {original_filename}",
        f"Generated at: {utc_timestamp(generated_at)}",
        "",
        "The text of this document could not be extracted, so this notice was",
        "produced in place of a converted copy.",
        "",
        "Likely causes:",
    ]
    lines.extend(f"  {n}. {cause}" for n, cause in enumerate(LIKELY_CAUSES, start=1))
    lines.append("")
    lines.append("What you can do:")
    lines.extend(f"  {n}. {step}" for n, step in enumerate(REMEDIATION_STEPS, start=1))
    return lines
