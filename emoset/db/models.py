# pyright: reportExplicitAny=false
"""Database models for Emoset using SQLModel."""

from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlmodel import Column, Field, Relationship, SQLModel


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_uuid() -> UUID:
    """Generate a new UUIDv4."""
    return uuid4()


class User(SQLModel, table=True):
    """Team member, upserted on every successful sign-in."""

    __tablename__: ClassVar[Any] = "users"

    id: UUID = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: str | None = None
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )
    last_login_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )


class AudioFile(SQLModel, table=True):
    """A curated clip: the current canonical WAV blob plus its labels.

    ``file_path`` and the acoustic metadata always describe the current
    version; earlier blobs are kept as AudioVersion rows.
    """

    __tablename__: ClassVar[Any] = "audio_files"

    id: UUID = Field(default_factory=new_uuid, primary_key=True)

    # Blob
    filename: str  # Storage name, e.g. "1718000000000_clip.wav"
    original_filename: str  # Name as uploaded
    file_path: str = Field(index=True)  # Storage key
    file_size: int
    original_file_size: int | None = None
    file_hash: str | None = None  # SHA256 of the stored WAV
    mime_type: str = "audio/wav"
    original_format: str  # "wav" | "mp3"
    is_converted: bool = False

    # Labels
    uploaded_by: str = Field(index=True)
    emotion: str | None = Field(default=None, index=True)
    description: str | None = None
    dataset_type: str | None = Field(default=None, index=True)  # "train" | "test" | "validation"

    # Acoustic metadata (null when extraction failed)
    duration: float | None = None
    sample_rate: int | None = None
    channels: int | None = None
    audio_level: float | None = None

    current_version: int = Field(default=1)
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )

    # Relationships
    versions: list["AudioVersion"] = Relationship(
        back_populates="audio_file",
        sa_relationship_kwargs={"lazy": "noload"},
    )

    @property
    def file_size_mb(self) -> float:
        return self.file_size / 1024 / 1024


class AudioVersion(SQLModel, table=True):
    """One uploaded revision of a clip."""

    __tablename__: ClassVar[Any] = "audio_versions"

    id: UUID = Field(default_factory=new_uuid, primary_key=True)
    audio_file_id: UUID = Field(foreign_key="audio_files.id", index=True, ondelete="CASCADE")
    version_number: int
    file_path: str
    file_size: int
    original_format: str
    is_converted: bool = False
    uploaded_by: str
    notes: str | None = None

    duration: float | None = None
    sample_rate: int | None = None
    channels: int | None = None
    audio_level: float | None = None

    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )

    # Relationships
    audio_file: "AudioFile" = Relationship(
        back_populates="versions", sa_relationship_kwargs={"lazy": "noload"}
    )

    __table_args__ = (
        sa.UniqueConstraint("audio_file_id", "version_number", name="uq_audio_version_number"),
    )
