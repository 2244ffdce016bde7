"""Audio decoding and canonical WAV encoding.

Every file that enters the catalog is stored as 16-bit PCM WAV so downstream
training tooling can read it without a codec. Decoding goes through libsndfile
(via soundfile) and falls back to ffmpeg for containers libsndfile cannot open.
"""

from __future__ import annotations

import io
import shutil
import struct
import subprocess
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

WAV_HEADER_SIZE: int = 44
PCM_FORMAT: int = 1
BITS_PER_SAMPLE: int = 16
BYTES_PER_SAMPLE: int = BITS_PER_SAMPLE // 8

# float -> int16 scale factors; +1.0 maps to 32767, -1.0 maps to -32768
NEGATIVE_SCALE: float = 32768.0
POSITIVE_SCALE: float = 32767.0

_UINT16_MAX = 0xFFFF
_UINT32_MAX = 0xFFFFFFFF


class AudioProcessingError(Exception):
    """Base class for audio pipeline failures."""


class DecodeError(AudioProcessingError):
    """Raised when bytes are not a supported or parseable audio container."""


class EncodeError(AudioProcessingError):
    """Raised when a sample buffer cannot be represented as PCM16 WAV."""


@dataclass(frozen=True)
class SampleBuffer:
    """Decoded audio: float samples shaped (channels, frames) plus sample rate.

    The sample array is made read-only on construction so consumers can share
    it without copying.
    """

    samples: NDArray[np.float64]
    sample_rate_hz: int

    def __post_init__(self) -> None:
        samples = np.array(self.samples, dtype=np.float64, copy=True)
        if samples.ndim == 1:
            samples = samples[np.newaxis, :]
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[1]) if self.samples.ndim == 2 else 0

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate_hz

    def channel(self, index: int) -> NDArray[np.float64]:
        """Return one channel's samples (read-only view)."""
        return self.samples[index]


def float_to_pcm16(samples: NDArray[np.floating]) -> NDArray[np.int16]:
    """Convert float samples to int16 with the asymmetric PCM scaling.

    Samples are clamped to [-1, 1], negatives scaled by 32768 and the rest by
    32767, then truncated toward zero.
    """
    clamped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * NEGATIVE_SCALE, clamped * POSITIVE_SCALE)
    return np.trunc(scaled).astype(np.int16)


def pcm16_to_float(samples: NDArray[np.integer]) -> NDArray[np.float64]:
    """Inverse of float_to_pcm16 (up to quantization)."""
    values = np.asarray(samples, dtype=np.float64)
    return np.where(values < 0, values / NEGATIVE_SCALE, values / POSITIVE_SCALE)


def build_wav_header(channels: int, sample_rate: int, frame_count: int) -> bytes:
    """Build the 44-byte RIFF/WAVE header for PCM16 data.

    Raises:
        EncodeError: If a value does not fit its header field
    """
    data_bytes = frame_count * channels * BYTES_PER_SAMPLE
    byte_rate = sample_rate * channels * BYTES_PER_SAMPLE
    block_align = channels * BYTES_PER_SAMPLE

    if channels > _UINT16_MAX or block_align > _UINT16_MAX:
        raise EncodeError(f"Too many channels for a WAV header: {channels}")
    if sample_rate > _UINT32_MAX or byte_rate > _UINT32_MAX:
        raise EncodeError(f"Sample rate too large for a WAV header: {sample_rate}")
    if 36 + data_bytes > _UINT32_MAX:
        raise EncodeError(f"Audio too long for a WAV container: {data_bytes} data bytes")

    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_bytes,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_bytes,
    )


def encode_wav(buffer: SampleBuffer) -> bytes:
    """Encode a sample buffer as canonical 16-bit PCM WAV bytes.

    Args:
        buffer: Decoded audio to encode

    Returns:
        44-byte header followed by interleaved little-endian int16 samples

    Raises:
        EncodeError: If the buffer is empty or malformed
    """
    samples = buffer.samples
    if samples.ndim != 2 or samples.shape[0] == 0:
        raise EncodeError("Sample buffer must have at least one channel")
    if samples.shape[1] == 0:
        raise EncodeError("Sample buffer has no frames")
    if buffer.sample_rate_hz <= 0:
        raise EncodeError(f"Invalid sample rate: {buffer.sample_rate_hz}")

    header = build_wav_header(buffer.channel_count, buffer.sample_rate_hz, buffer.frame_count)

    # (channels, frames) -> (frames, channels) gives frame-major interleaving
    interleaved = float_to_pcm16(samples).T
    data = np.ascontiguousarray(interleaved).astype("<i2", copy=False).tobytes()
    return header + data


def decode_audio(data: bytes) -> SampleBuffer:
    """Decode compressed or PCM audio bytes into a SampleBuffer.

    Args:
        data: Raw bytes of an audio file (WAV, MP3, FLAC, OGG, ...)

    Returns:
        A fresh SampleBuffer owned by the caller

    Raises:
        DecodeError: If the bytes cannot be decoded or contain no audio
    """
    if not data:
        raise DecodeError("No audio data")

    try:
        buffer = _decode_with_soundfile(data)
    except DecodeError as sndfile_error:
        if shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None:
            raise
        try:
            buffer = _decode_with_ffmpeg(data)
        except DecodeError as ffmpeg_error:
            raise ffmpeg_error from sndfile_error

    if buffer.frame_count == 0:
        raise DecodeError("Decoded audio contains no frames")
    return buffer


def _decode_with_soundfile(data: bytes) -> SampleBuffer:
    import soundfile as sf  # pyright: ignore[reportMissingTypeStubs]

    try:
        with sf.SoundFile(io.BytesIO(data)) as audio_file:
            sample_rate = int(audio_file.samplerate)
            if audio_file.subtype == "PCM_16":
                raw = audio_file.read(dtype="int16", always_2d=True)
                frames = pcm16_to_float(raw)
            else:
                frames = audio_file.read(dtype="float64", always_2d=True)
    except (RuntimeError, TypeError, ValueError) as e:
        # soundfile.LibsndfileError subclasses RuntimeError
        raise DecodeError(f"Could not decode audio: {e}") from e

    if sample_rate <= 0:
        raise DecodeError(f"Invalid sample rate: {sample_rate}")

    return SampleBuffer(samples=frames.T, sample_rate_hz=sample_rate)


def _probe_stream(data: bytes, entry: str) -> int:
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "a:0",
        "-show_entries",
        f"stream={entry}",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        "-i",
        "pipe:0",
    ]
    result = subprocess.run(cmd, input=data, check=True, capture_output=True)
    return int(result.stdout.decode().strip().splitlines()[0])


def _decode_with_ffmpeg(data: bytes) -> SampleBuffer:
    try:
        sample_rate = _probe_stream(data, "sample_rate")
        channels = _probe_stream(data, "channels")

        cmd = [
            "ffmpeg",
            "-v",
            "error",
            "-i",
            "pipe:0",
            "-f",
            "f32le",  # 32-bit float PCM
            "-acodec",
            "pcm_f32le",
            "pipe:1",
        ]
        result = subprocess.run(cmd, input=data, check=True, capture_output=True)
    except (subprocess.CalledProcessError, ValueError, IndexError, OSError) as e:
        raise DecodeError(f"Could not decode audio with ffmpeg: {e}") from e

    if sample_rate <= 0 or channels <= 0:
        raise DecodeError("ffprobe reported an invalid stream layout")

    interleaved = np.frombuffer(result.stdout, dtype="<f4")
    usable = len(interleaved) - len(interleaved) % channels
    frames = interleaved[:usable].reshape(-1, channels)
    return SampleBuffer(samples=frames.T, sample_rate_hz=sample_rate)
