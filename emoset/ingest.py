"""Upload preparation: convert incoming audio to canonical WAV and measure it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .audio.codec import AudioProcessingError, decode_audio, encode_wav
from .audio.metadata import AudioMetadata, extract_metadata
from .utils import compute_bytes_hash

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".mp3", ".wav"}


class UploadRejectedError(ValueError):
    """Raised when an uploaded file cannot be accepted."""


@dataclass(frozen=True)
class PreparedAudio:
    """Canonical WAV bytes ready to be stored, plus what we learned about them."""

    filename: str
    wav_bytes: bytes
    original_format: str
    original_size: int
    is_converted: bool
    file_hash: str
    metadata: AudioMetadata | None

    @property
    def size(self) -> int:
        return len(self.wav_bytes)


def validate_upload(filename: str, size: int, max_upload_mb: int = 150) -> str:
    """Check name and size of an upload.

    Returns:
        The lower-case format name ("wav" or "mp3")

    Raises:
        UploadRejectedError: If the extension is not allowed or the file is too big
    """
    file_ext = Path(filename).suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise UploadRejectedError(
            f"Unsupported file type: {file_ext or '(none)'}. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    if size == 0:
        raise UploadRejectedError(f"File is empty: {filename}")
    if size > max_upload_mb * 1024 * 1024:
        raise UploadRejectedError(
            f"File too large: {size / 1024 / 1024:.1f}MB. Maximum: {max_upload_mb}MB"
        )
    return file_ext.lstrip(".")


def measure(wav_bytes: bytes) -> AudioMetadata | None:
    """Extract metadata from WAV bytes; failures are logged and yield None."""
    try:
        return extract_metadata(decode_audio(wav_bytes))
    except (AudioProcessingError, ValueError) as e:
        logger.warning(f"Could not extract audio metadata: {e}")
        return None


def prepare_upload(filename: str, data: bytes, max_upload_mb: int = 150) -> PreparedAudio:
    """Turn an uploaded file into canonical WAV bytes with metadata.

    MP3 input is decoded and re-encoded as 16-bit PCM WAV. WAV input is kept
    byte-for-byte. Metadata extraction never fails the upload.

    Args:
        filename: Name as uploaded
        data: File content
        max_upload_mb: Size limit

    Returns:
        PreparedAudio for storage

    Raises:
        UploadRejectedError: If validation or MP3 conversion fails
    """
    original_format = validate_upload(filename, len(data), max_upload_mb)

    if original_format == "mp3":
        try:
            wav_bytes = encode_wav(decode_audio(data))
        except AudioProcessingError as e:
            raise UploadRejectedError(f"Could not convert {filename} to WAV: {e}") from e
        logger.info(f"Converted {filename} to WAV ({len(data)} -> {len(wav_bytes)} bytes)")
        is_converted = True
    else:
        wav_bytes = data
        is_converted = False

    return PreparedAudio(
        filename=filename,
        wav_bytes=wav_bytes,
        original_format=original_format,
        original_size=len(data),
        is_converted=is_converted,
        file_hash=compute_bytes_hash(wav_bytes),
        metadata=measure(wav_bytes),
    )
