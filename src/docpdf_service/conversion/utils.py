"""Small helpers shared by the pipeline and the web layer."""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from pathlib import Path

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\-_]")
# Keeps stored names well under the 255-byte filename limit.
MAX_STORED_BASENAME = 100
MAX_STORED_SUFFIX = 10


def utc_timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def format_file_size(size: int) -> str:
    """Return ``size`` in a human readable unit, e.g. ``"1.5 KB"``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    exponent = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / (1024 ** exponent), 2)
    return f"{value:g} {units[exponent]}"


def original_basename(filename: str) -> str:
    """Strip any directory part and the extension from an uploaded filename."""
    name = Path(filename.replace("\\", "/")).name
    stem = Path(name).stem
    return stem or "document"


def safe_basename(filename: str) -> str:
    """ASCII-only, length-capped basename used for names on disk."""
    return _UNSAFE_CHARS.sub("_", original_basename(filename))[:MAX_STORED_BASENAME]


def safe_suffix(filename: str) -> str:
    suffix = _UNSAFE_CHARS.sub("_", declared_extension(filename)[1:])[:MAX_STORED_SUFFIX]
    return f".{suffix}" if suffix else ""


def declared_extension(filename: str) -> str:
    return Path(filename.replace("\\", "/")).suffix.lower()
