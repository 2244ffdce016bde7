"""Shared utility functions."""

from __future__ import annotations

import hashlib
import time
from datetime import date
from pathlib import Path

STORAGE_PREFIX = "audio-files"


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA256 hex digest of in-memory content."""
    return hashlib.sha256(data).hexdigest()


def derive_output_name(filename: str) -> str:
    """Derive a storage-safe base name from an uploaded filename.

    Removes extension and sanitizes the name for use in a storage key.

    Args:
        filename: Original filename as uploaded

    Returns:
        Sanitized name
    """
    name = Path(filename).stem

    # Replace spaces and special characters with underscores
    name = "".join(c if c.isalnum() or c in "-_" else "_" for c in name)

    while "__" in name:
        name = name.replace("__", "_")

    name = name.strip("_")

    return name or "unnamed"


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def audio_storage_key(
    original_filename: str,
    version: int | None = None,
    timestamp: int | None = None,
    tag: str | None = None,
) -> str:
    """Storage key for a canonical WAV blob.

    ``audio-files/{ts}_{name}.wav`` for first uploads,
    ``audio-files/{ts}_v{n}_{name}.wav`` for later versions,
    ``audio-files/{ts}_v{n}_{tag}_{name}.wav`` for tagged copies such as backups.
    """
    ts = timestamp if timestamp is not None else timestamp_ms()
    parts = [str(ts)]
    if version is not None:
        parts.append(f"v{version}")
    if tag:
        parts.append(tag)
    parts.append(derive_output_name(original_filename))
    return f"{STORAGE_PREFIX}/{'_'.join(parts)}.wav"


def dated_filename(prefix: str, scope: str | None, ext: str, today: date | None = None) -> str:
    """``{prefix}_{scope or 'all'}_{YYYY-MM-DD}.{ext}`` for export downloads."""
    day = (today or date.today()).isoformat()
    return f"{prefix}_{scope or 'all'}_{day}.{ext}"
