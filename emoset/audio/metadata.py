"""Acoustic metadata attached to every file and version record."""

from __future__ import annotations

import math

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .codec import SampleBuffer

SILENCE_FLOOR_DB: float = -60.0
FULL_SCALE_DB: float = 0.0


class AudioMetadata(BaseModel):
    """Technical attributes of a decoded clip used for dataset curation.

    ``average_level_db`` is a pooled RMS level in dBFS, an approximation of
    perceived loudness for sorting and filtering clips. It is not a
    broadcast loudness measurement (LUFS).
    """

    model_config = ConfigDict(frozen=True)

    duration_seconds: float = Field(gt=0)
    sample_rate_hz: int = Field(gt=0)
    channel_count: int = Field(ge=1)
    average_level_db: float = Field(ge=SILENCE_FLOOR_DB, le=FULL_SCALE_DB)


def rms_to_db(rms: float) -> float:
    """Convert an RMS amplitude to dBFS clamped into [-60, 0]."""
    db = 20 * math.log10(rms) if rms > 0 else SILENCE_FLOOR_DB
    return max(SILENCE_FLOOR_DB, min(FULL_SCALE_DB, db))


def average_level_db(buffer: SampleBuffer) -> float:
    """RMS level over every sample of every channel pooled together.

    Args:
        buffer: Decoded audio

    Returns:
        Level in dBFS within [-60, 0]; -60 for silence or an empty buffer
    """
    if buffer.samples.size == 0:
        return SILENCE_FLOOR_DB

    rms = float(np.sqrt(np.mean(np.square(buffer.samples))))
    return rms_to_db(rms)


def extract_metadata(buffer: SampleBuffer) -> AudioMetadata:
    """Derive duration, sample rate, channel count and level from a buffer.

    Raises:
        ValueError: If the buffer is empty (pydantic validation of duration)
    """
    return AudioMetadata(
        duration_seconds=buffer.frame_count / buffer.sample_rate_hz,
        sample_rate_hz=buffer.sample_rate_hz,
        channel_count=buffer.channel_count,
        average_level_db=average_level_db(buffer),
    )
