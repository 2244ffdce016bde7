"""Pydantic models for API requests and responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..db.models import AudioFile, AudioVersion


class AuthStatusResponse(BaseModel):
    """Auth status response."""

    authenticated: bool
    user: dict[str, str | None] | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    """Sign-in response with JWT token (also set as a cookie)."""

    token: str
    user: dict[str, str | None]


class LogoutResponse(BaseModel):
    """Logout response."""

    success: bool


class AudioFileResponse(BaseModel):
    """A clip as shown in the file list."""

    id: str
    filename: str
    original_filename: str
    file_path: str
    file_size: int
    file_size_mb: float
    original_format: str
    is_converted: bool
    uploaded_by: str
    emotion: str | None
    description: str | None
    dataset_type: str | None
    duration: float | None
    sample_rate: int | None
    channels: int | None
    audio_level: float | None
    current_version: int
    created_at: datetime
    updated_at: datetime
    audio_url: str | None = None

    @classmethod
    def from_record(cls, audio_file: AudioFile, audio_url: str | None = None) -> AudioFileResponse:
        return cls(
            id=str(audio_file.id),
            filename=audio_file.filename,
            original_filename=audio_file.original_filename,
            file_path=audio_file.file_path,
            file_size=audio_file.file_size,
            file_size_mb=round(audio_file.file_size_mb, 2),
            original_format=audio_file.original_format,
            is_converted=audio_file.is_converted,
            uploaded_by=audio_file.uploaded_by,
            emotion=audio_file.emotion,
            description=audio_file.description,
            dataset_type=audio_file.dataset_type,
            duration=audio_file.duration,
            sample_rate=audio_file.sample_rate,
            channels=audio_file.channels,
            audio_level=audio_file.audio_level,
            current_version=audio_file.current_version,
            created_at=audio_file.created_at,
            updated_at=audio_file.updated_at,
            audio_url=audio_url,
        )


class AudioVersionResponse(BaseModel):
    """One entry of a clip's version history."""

    id: str
    version_number: int
    file_path: str
    file_size: int
    original_format: str
    is_converted: bool
    uploaded_by: str
    notes: str | None
    duration: float | None
    sample_rate: int | None
    channels: int | None
    audio_level: float | None
    created_at: datetime
    is_current: bool = False

    @classmethod
    def from_record(cls, version: AudioVersion, current_version: int) -> AudioVersionResponse:
        return cls(
            id=str(version.id),
            version_number=version.version_number,
            file_path=version.file_path,
            file_size=version.file_size,
            original_format=version.original_format,
            is_converted=version.is_converted,
            uploaded_by=version.uploaded_by,
            notes=version.notes,
            duration=version.duration,
            sample_rate=version.sample_rate,
            channels=version.channels,
            audio_level=version.audio_level,
            created_at=version.created_at,
            is_current=version.version_number == current_version,
        )


class UpdateFileRequest(BaseModel):
    """Label edit. Omitted fields are left alone; empty strings clear."""

    emotion: str | None = None
    description: str | None = None
    dataset_type: str | None = None


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


class BulkIdsRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class BulkAssignRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
    dataset_type: str | None = None


class WaveformResponse(BaseModel):
    """Normalized amplitude envelope of a clip."""

    file_id: str
    sample_count: int
    values: list[float]


class SeekResponse(BaseModel):
    progress: float
    time: float
