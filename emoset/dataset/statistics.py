"""Collection progress statistics."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

from ..config import DatasetConfig, DatasetSplit
from ..db.models import AudioFile


class DatasetStatistics(BaseModel):
    """Counts shown on the statistics page."""

    total_files: int = 0
    target_clips: int
    member_totals: dict[str, int] = Field(default_factory=dict)
    member_emotions: dict[str, dict[str, int]] = Field(default_factory=dict)
    emotion_totals: dict[str, int] = Field(default_factory=dict)
    split_totals: dict[str, int] = Field(default_factory=dict)

    @property
    def progress_percent(self) -> float:
        return min(self.total_files / self.target_clips * 100, 100.0)

    @property
    def remaining_clips(self) -> int:
        return max(self.target_clips - self.total_files, 0)


def compute_statistics(files: Iterable[AudioFile], dataset: DatasetConfig) -> DatasetStatistics:
    """Tally clips per uploader, per emotion and per split.

    Uploaders come from ``dataset.team_members`` when configured, otherwise from
    the clips themselves. Emotions outside the configured list are not counted.
    """
    files = list(files)
    members = list(dataset.team_members) or sorted(
        {f.uploaded_by.strip() for f in files if f.uploaded_by and f.uploaded_by.strip()}
    )

    stats = DatasetStatistics(
        total_files=len(files),
        target_clips=dataset.target_clips,
        member_totals={m: 0 for m in members},
        member_emotions={m: {e: 0 for e in dataset.emotions} for m in members},
        emotion_totals={e: 0 for e in dataset.emotions},
        split_totals={s.value: 0 for s in DatasetSplit},
    )

    for f in files:
        uploader = (f.uploaded_by or "").strip()
        emotion = (f.emotion or "").strip()

        if uploader in stats.member_totals:
            stats.member_totals[uploader] += 1
            if emotion in stats.member_emotions[uploader]:
                stats.member_emotions[uploader][emotion] += 1

        if emotion in stats.emotion_totals:
            stats.emotion_totals[emotion] += 1

        if f.dataset_type in stats.split_totals:
            stats.split_totals[f.dataset_type] += 1

    return stats
