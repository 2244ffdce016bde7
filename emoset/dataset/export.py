# pyright: reportExplicitAny=false
"""Dataset export (CSV, JSON, ZIP) and CSV metadata import."""

from __future__ import annotations

import csv
import io
import zipfile
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from ..config import DatasetConfig, DatasetSplit
from ..db.models import AudioFile

CSV_HEADERS = [
    "ID",
    "Original Filename",
    "File Path",
    "File Size (MB)",
    "Original Format",
    "Uploaded By",
    "Emotion",
    "Description",
    "Duration (s)",
    "Sample Rate (Hz)",
    "Channels",
    "Audio Level (dB)",
    "Dataset Type",
    "Uploaded At",
    "Version",
]

# Import column aliases: English export headers, snake_case and the Turkish headers
IMPORT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("ID", "id"),
    "dataset_type": ("Dataset Type", "dataset_type", "Veri Seti Tipi"),
    "emotion": ("Emotion", "emotion", "Duygu"),
    "description": ("Description", "description", "Açıklama"),
}


def _fmt(value: float | int | None, digits: int | None = None) -> str:
    if value is None:
        return ""
    if digits is None:
        return str(value)
    return f"{value:.{digits}f}"


def filter_by_dataset_type(files: Iterable[AudioFile], dataset_type: str | None) -> list[AudioFile]:
    """Keep clips whose split matches exactly (case-insensitive); clips without a split are dropped."""
    if not dataset_type:
        return list(files)
    wanted = dataset_type.lower()
    return [f for f in files if f.dataset_type and f.dataset_type.lower() == wanted]


def export_csv(files: Sequence[AudioFile]) -> str:
    """Render clips as CSV with the fixed export header order."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for f in files:
        writer.writerow(
            [
                str(f.id),
                f.original_filename,
                f.file_path,
                _fmt(f.file_size_mb if f.file_size else None, 2),
                f.original_format or "",
                f.uploaded_by,
                f.emotion or "",
                f.description or "",
                _fmt(f.duration, 2),
                _fmt(f.sample_rate),
                _fmt(f.channels),
                _fmt(f.audio_level, 1),
                f.dataset_type or "",
                f.created_at.strftime("%Y-%m-%d %H:%M:%S") if f.created_at else "",
                f.current_version or 1,
            ]
        )
    return out.getvalue()


class ExportedFile(BaseModel):
    id: str
    original_filename: str
    file_path: str
    file_size_bytes: int
    file_size_mb: str | None
    original_format: str
    uploaded_by: str
    emotion: str | None
    description: str | None
    duration: float | None
    sample_rate: int | None
    channels: int | None
    audio_level: float | None
    dataset_type: str | None
    created_at: datetime
    updated_at: datetime
    current_version: int


class DatasetExport(BaseModel):
    """JSON export document."""

    export_date: datetime
    total_files: int
    files: list[ExportedFile]


def export_json(files: Sequence[AudioFile], now: datetime | None = None) -> str:
    """Render clips as a pretty-printed JSON export document."""
    document = DatasetExport(
        export_date=now or datetime.now(UTC),
        total_files=len(files),
        files=[
            ExportedFile(
                id=str(f.id),
                original_filename=f.original_filename,
                file_path=f.file_path,
                file_size_bytes=f.file_size,
                file_size_mb=f"{f.file_size_mb:.2f}" if f.file_size else None,
                original_format=f.original_format,
                uploaded_by=f.uploaded_by,
                emotion=f.emotion,
                description=f.description,
                duration=f.duration,
                sample_rate=f.sample_rate,
                channels=f.channels,
                audio_level=f.audio_level,
                dataset_type=f.dataset_type,
                created_at=f.created_at,
                updated_at=f.updated_at,
                current_version=f.current_version,
            )
            for f in files
        ],
    )
    return document.model_dump_json(indent=2)


class ImportRow(BaseModel):
    """One CSV row resolved to the clip it updates and the label changes."""

    file_id: str
    changes: dict[str, str | None]


def _lookup(row: dict[str, Any], field: str) -> str | None:
    """Value of the first alias column present in the row, or None if none is present."""
    for column in IMPORT_COLUMN_ALIASES[field]:
        if column in row and row[column] is not None:
            return str(row[column]).strip()
    return None


def parse_import_csv(text: str, dataset: DatasetConfig | None = None) -> tuple[list[ImportRow], int]:
    """Parse an edited export back into label updates.

    Rows without an ID, or with nothing recognisable to change, are skipped.
    Unknown emotions and splits are ignored; an empty cell clears the field.

    Returns:
        (rows to apply, number of skipped rows)
    """
    dataset = dataset or DatasetConfig()
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if reader.fieldnames is not None:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

    rows: list[ImportRow] = []
    skipped = 0
    for raw in reader:
        file_id = _lookup(raw, "id")
        if not file_id:
            skipped += 1
            continue

        changes: dict[str, str | None] = {}

        split = _lookup(raw, "dataset_type")
        if split == "":
            changes["dataset_type"] = None
        elif split is not None and (parsed := DatasetSplit.parse(split)) is not None:
            changes["dataset_type"] = parsed.value

        emotion = _lookup(raw, "emotion")
        if emotion == "":
            changes["emotion"] = None
        elif emotion is not None and (normalized := dataset.normalize_emotion(emotion)) is not None:
            changes["emotion"] = normalized

        description = _lookup(raw, "description")
        if description is not None:
            changes["description"] = description or None

        if not changes:
            skipped += 1
            continue
        rows.append(ImportRow(file_id=file_id, changes=changes))

    return rows, skipped


class ZipArchiveBuilder:
    """Collects WAV blobs into an in-memory ZIP under unique names."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, "w", compression=zipfile.ZIP_DEFLATED)
        self._names: set[str] = set()

    @property
    def names(self) -> list[str]:
        return sorted(self._names)

    def unique_name(self, original_filename: str) -> str:
        stem = Path(original_filename).stem or "audio"
        name = f"{stem}.wav"
        counter = 2
        while name in self._names:
            name = f"{stem}_{counter}.wav"
            counter += 1
        return name

    def add(self, original_filename: str, data: bytes) -> str:
        name = self.unique_name(original_filename)
        self._zip.writestr(name, data)
        self._names.add(name)
        return name

    def finish(self) -> bytes:
        self._zip.close()
        return self._buffer.getvalue()
