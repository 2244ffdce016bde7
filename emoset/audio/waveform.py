"""RMS amplitude envelopes for waveform display."""

from __future__ import annotations

import asyncio

import httpx
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .codec import AudioProcessingError, DecodeError, SampleBuffer, decode_audio

PLAYBACK_SAMPLE_COUNT: int = 300
DEFAULT_SAMPLE_COUNT: int = 100


class WaveformError(AudioProcessingError):
    """Raised when an envelope cannot be produced (fetch, decode, or empty audio)."""


class WaveformEnvelope(BaseModel):
    """Fixed-length RMS summary of channel 0, one value per time bucket."""

    model_config = ConfigDict(frozen=True)

    values: tuple[float, ...] = Field(min_length=1)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    @property
    def peak(self) -> float:
        return max(self.values)


def block_bounds(frame_count: int, sample_count: int) -> list[tuple[int, int]]:
    """Split ``frame_count`` frames into ``sample_count`` contiguous blocks.

    Every block holds ``frame_count // sample_count`` frames, with ends clamped
    to ``frame_count``. Trailing frames past the last full block are not used.
    """
    block_size = frame_count // sample_count
    return [
        (i * block_size, min((i + 1) * block_size, frame_count)) for i in range(sample_count)
    ]


def compute_envelope(buffer: SampleBuffer, sample_count: int = DEFAULT_SAMPLE_COUNT) -> WaveformEnvelope:
    """Downsample channel 0 of a buffer into ``sample_count`` RMS values.

    Args:
        buffer: Decoded audio
        sample_count: Number of envelope buckets

    Returns:
        Envelope of exactly ``sample_count`` non-negative values

    Raises:
        WaveformError: If the buffer has no frames
        ValueError: If sample_count is not positive
    """
    if sample_count <= 0:
        raise ValueError(f"sample_count must be positive, got {sample_count}")
    if buffer.frame_count == 0:
        raise WaveformError("Cannot build a waveform from empty audio")

    channel = buffer.channel(0)
    values: list[float] = []
    for start, end in block_bounds(buffer.frame_count, sample_count):
        block = channel[start:end]
        # Empty blocks only occur when there are fewer frames than buckets
        values.append(float(np.sqrt(np.mean(np.square(block)))) if block.size else 0.0)

    return WaveformEnvelope(values=tuple(values))


def envelope_from_bytes(data: bytes, sample_count: int = DEFAULT_SAMPLE_COUNT) -> WaveformEnvelope:
    """Decode audio bytes and compute their envelope.

    Raises:
        WaveformError: If decoding fails or the audio is empty
    """
    try:
        buffer = decode_audio(data)
    except DecodeError as e:
        raise WaveformError(f"Could not extract waveform: {e}") from e
    return compute_envelope(buffer, sample_count)


async def extract_waveform(
    audio_url: str,
    sample_count: int = DEFAULT_SAMPLE_COUNT,
    client: httpx.AsyncClient | None = None,
) -> WaveformEnvelope:
    """Fetch audio from a (signed) URL and compute its envelope.

    Args:
        audio_url: URL of stored audio
        sample_count: Number of envelope buckets (300 for the player)
        client: Optional shared HTTP client

    Returns:
        The waveform envelope

    Raises:
        WaveformError: If the fetch or decode fails
    """
    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.get(audio_url)
        else:
            response = await client.get(audio_url)
        _ = response.raise_for_status()
    except httpx.HTTPError as e:
        raise WaveformError(f"Could not load audio: {e}") from e

    return await asyncio.to_thread(envelope_from_bytes, response.content, sample_count)
