"""Listing filters for curated clips."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, Field

from ..db.models import AudioFile

CHANNEL_LAYOUTS = {"mono": 1, "stereo": 2}


class FileFilter(BaseModel):
    """Advanced filters from the file list.

    A clip whose duration, sample rate, channel count or size is unknown is
    never excluded by the corresponding filter. The emotion filter is exact.
    """

    emotion: str | None = None
    duration_min: float | None = Field(default=None, ge=0)
    duration_max: float | None = Field(default=None, ge=0)
    sample_rate: int | None = None
    channels: Literal["mono", "stereo"] | None = None
    size_min_mb: float | None = Field(default=None, ge=0)
    size_max_mb: float | None = Field(default=None, ge=0)
    dataset_type: str | None = None
    uploaded_by: str | None = None

    @property
    def active_count(self) -> int:
        return sum(1 for value in self.model_dump().values() if value not in (None, ""))

    def matches(self, audio_file: AudioFile) -> bool:
        if self.emotion and audio_file.emotion != self.emotion:
            return False

        if self.dataset_type and (audio_file.dataset_type or "").lower() != self.dataset_type.lower():
            return False

        if self.uploaded_by and audio_file.uploaded_by != self.uploaded_by:
            return False

        if audio_file.duration:
            if self.duration_min is not None and audio_file.duration < self.duration_min:
                return False
            if self.duration_max is not None and audio_file.duration > self.duration_max:
                return False

        if self.sample_rate and audio_file.sample_rate and audio_file.sample_rate != self.sample_rate:
            return False

        if self.channels and audio_file.channels:
            if audio_file.channels != CHANNEL_LAYOUTS[self.channels]:
                return False

        if audio_file.file_size:
            size_mb = audio_file.file_size_mb
            if self.size_min_mb is not None and size_mb < self.size_min_mb:
                return False
            if self.size_max_mb is not None and size_mb > self.size_max_mb:
                return False

        return True

    def apply(self, files: Iterable[AudioFile]) -> list[AudioFile]:
        return [f for f in files if self.matches(f)]
