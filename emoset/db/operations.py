"""Database operations for curated clips and their versions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..config import DatasetSplit
from ..utils import audio_storage_key
from .models import AudioFile, AudioVersion, User, utc_now

if TYPE_CHECKING:
    from ..dataset.filters import FileFilter
    from ..ingest import PreparedAudio
    from ..storage import StorageBackend

logger = logging.getLogger(__name__)

LABEL_FIELDS = ("emotion", "description", "dataset_type")
BACKUP_NOTE = "Automatic backup before restore"


def _apply_metadata(target: AudioFile | AudioVersion, prepared: PreparedAudio) -> None:
    metadata = prepared.metadata
    target.duration = metadata.duration_seconds if metadata else None
    target.sample_rate = metadata.sample_rate_hz if metadata else None
    target.channels = metadata.channel_count if metadata else None
    target.audio_level = metadata.average_level_db if metadata else None


def _storage_filename(key: str) -> str:
    return key.rsplit("/", 1)[-1]


async def list_files(session: AsyncSession, file_filter: FileFilter | None = None) -> list[AudioFile]:
    """List clips, newest first.

    Args:
        session: Active async database session
        file_filter: Optional advanced filters

    Returns:
        Matching AudioFile records
    """
    stmt = select(AudioFile).order_by(col(AudioFile.created_at).desc())
    result = await session.exec(stmt)
    files = list(result.all())
    if file_filter is not None:
        files = file_filter.apply(files)
    return files


async def get_file(session: AsyncSession, file_id: UUID) -> AudioFile | None:
    """Get a single clip by ID."""
    result = await session.exec(select(AudioFile).where(AudioFile.id == file_id))
    return result.first()


async def require_file(session: AsyncSession, file_id: UUID) -> AudioFile:
    """Get a clip by ID.

    Raises:
        ValueError: If the clip does not exist
    """
    audio_file = await get_file(session, file_id)
    if audio_file is None:
        raise ValueError(f"Audio file {file_id} not found")
    return audio_file


async def list_versions(session: AsyncSession, file_id: UUID) -> list[AudioVersion]:
    """Get all versions of a clip, newest version number first."""
    stmt = (
        select(AudioVersion)
        .where(AudioVersion.audio_file_id == file_id)
        .order_by(col(AudioVersion.version_number).desc())
    )
    result = await session.exec(stmt)
    return list(result.all())


async def _next_version_number(session: AsyncSession, audio_file: AudioFile) -> int:
    # After a restore current_version can be lower than the highest stored number
    stmt = select(func.max(AudioVersion.version_number)).where(
        AudioVersion.audio_file_id == audio_file.id
    )
    result = await session.exec(stmt)
    highest = result.first() or 0
    return max(highest, audio_file.current_version) + 1


async def create_file_with_version(
    session: AsyncSession,
    storage: StorageBackend,
    prepared: PreparedAudio,
    uploaded_by: str,
    emotion: str | None = None,
    description: str | None = None,
    dataset_type: str | None = None,
) -> AudioFile:
    """Store an upload and create its clip record plus version 1.

    Args:
        session: Active async database session
        storage: Blob storage backend
        prepared: Canonical WAV produced by prepare_upload
        uploaded_by: Team member name
        emotion: Emotion label
        description: Free text
        dataset_type: Split name, or None

    Returns:
        The created AudioFile
    """
    key = audio_storage_key(prepared.filename)
    _ = storage.upload_bytes(key, prepared.wav_bytes)
    logger.info(f"Stored {prepared.filename} as {key}")

    split = DatasetSplit.parse(dataset_type)
    audio_file = AudioFile(
        filename=_storage_filename(key),
        original_filename=prepared.filename,
        file_path=key,
        file_size=prepared.size,
        original_file_size=prepared.original_size,
        file_hash=prepared.file_hash,
        original_format=prepared.original_format,
        is_converted=prepared.is_converted,
        uploaded_by=uploaded_by,
        emotion=emotion or None,
        description=description or None,
        dataset_type=split.value if split else None,
        current_version=1,
    )
    _apply_metadata(audio_file, prepared)
    session.add(audio_file)
    await session.flush()

    version = AudioVersion(
        audio_file_id=audio_file.id,
        version_number=1,
        file_path=key,
        file_size=prepared.size,
        original_format=prepared.original_format,
        is_converted=prepared.is_converted,
        uploaded_by=uploaded_by,
    )
    _apply_metadata(version, prepared)
    session.add(version)

    await session.commit()
    await session.refresh(audio_file)
    return audio_file


async def update_file_labels(
    session: AsyncSession, file_id: UUID, changes: dict[str, str | None]
) -> AudioFile:
    """Update emotion, description and/or dataset_type.

    Only keys present in ``changes`` are touched; an empty string clears the field.

    Raises:
        ValueError: If the clip is missing, a key is not a label field or the split is unknown
    """
    unknown = set(changes) - set(LABEL_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    audio_file = await require_file(session, file_id)

    for field, value in changes.items():
        value = value.strip() if value else None
        if field == "dataset_type" and value is not None:
            split = DatasetSplit.parse(value)
            if split is None:
                raise ValueError(f"Unknown dataset type: {value}")
            value = split.value
        setattr(audio_file, field, value or None)

    audio_file.updated_at = utc_now()
    session.add(audio_file)
    await session.commit()
    await session.refresh(audio_file)
    return audio_file


async def assign_dataset_split(
    session: AsyncSession, file_id: UUID, split: DatasetSplit | None
) -> AudioFile:
    """Set (or clear) the dataset split of one clip."""
    return await update_file_labels(
        session, file_id, {"dataset_type": split.value if split else None}
    )


async def delete_file(session: AsyncSession, storage: StorageBackend, file_id: UUID) -> AudioFile:
    """Delete a clip, its versions and their blobs.

    Blob removal failures are logged; the records are deleted regardless.

    Returns:
        The deleted AudioFile (before deletion, for metadata)

    Raises:
        ValueError: If the clip is not found
    """
    audio_file = await require_file(session, file_id)
    versions = await list_versions(session, file_id)

    keys = {audio_file.file_path, *(v.file_path for v in versions)}
    warnings: list[str] = []
    for key in sorted(keys):
        try:
            storage.delete(key)
        except Exception as e:
            msg = f"Could not delete blob {key}: {e}"
            logger.warning(msg)
            warnings.append(msg)

    if warnings:
        logger.info(f"Deleted {len(keys) - len(warnings)} blobs with {len(warnings)} warnings")

    for version in versions:
        await session.delete(version)
    await session.delete(audio_file)
    await session.commit()
    return audio_file


async def add_version(
    session: AsyncSession,
    storage: StorageBackend,
    file_id: UUID,
    prepared: PreparedAudio,
    uploaded_by: str,
    notes: str | None = None,
) -> AudioVersion:
    """Upload a new revision; the clip now points at it.

    Raises:
        ValueError: If the clip is not found
    """
    audio_file = await require_file(session, file_id)
    number = await _next_version_number(session, audio_file)

    key = audio_storage_key(audio_file.original_filename, version=number)
    _ = storage.upload_bytes(key, prepared.wav_bytes)

    version = AudioVersion(
        audio_file_id=audio_file.id,
        version_number=number,
        file_path=key,
        file_size=prepared.size,
        original_format=prepared.original_format,
        is_converted=prepared.is_converted,
        uploaded_by=uploaded_by,
        notes=(notes or "").strip() or None,
    )
    _apply_metadata(version, prepared)
    session.add(version)

    audio_file.current_version = number
    audio_file.file_path = key
    audio_file.filename = _storage_filename(key)
    audio_file.file_size = prepared.size
    audio_file.file_hash = prepared.file_hash
    audio_file.original_format = prepared.original_format
    audio_file.is_converted = prepared.is_converted
    _apply_metadata(audio_file, prepared)
    audio_file.updated_at = utc_now()
    session.add(audio_file)

    await session.commit()
    await session.refresh(version)
    logger.info(f"Added version {number} to {audio_file.original_filename}")
    return version


async def restore_version(
    session: AsyncSession,
    storage: StorageBackend,
    file_id: UUID,
    version_number: int,
) -> AudioFile:
    """Make an earlier version current again.

    The current blob is first copied to a backup version so nothing is lost.

    Raises:
        ValueError: If the clip or version is not found
    """
    audio_file = await require_file(session, file_id)

    result = await session.exec(
        select(AudioVersion).where(
            AudioVersion.audio_file_id == file_id,
            AudioVersion.version_number == version_number,
        )
    )
    target = result.first()
    if target is None:
        raise ValueError(f"Version {version_number} of audio file {file_id} not found")

    backup_number = await _next_version_number(session, audio_file)
    backup_key = audio_storage_key(
        audio_file.original_filename, version=backup_number, tag="backup"
    )
    _ = storage.upload_bytes(backup_key, storage.download(audio_file.file_path))

    backup = AudioVersion(
        audio_file_id=audio_file.id,
        version_number=backup_number,
        file_path=backup_key,
        file_size=audio_file.file_size,
        original_format=audio_file.original_format,
        is_converted=audio_file.is_converted,
        uploaded_by=audio_file.uploaded_by,
        notes=BACKUP_NOTE,
        duration=audio_file.duration,
        sample_rate=audio_file.sample_rate,
        channels=audio_file.channels,
        audio_level=audio_file.audio_level,
    )
    session.add(backup)

    audio_file.current_version = target.version_number
    audio_file.file_path = target.file_path
    audio_file.filename = _storage_filename(target.file_path)
    audio_file.file_size = target.file_size
    audio_file.original_format = target.original_format
    audio_file.is_converted = target.is_converted
    audio_file.duration = target.duration
    audio_file.sample_rate = target.sample_rate
    audio_file.channels = target.channels
    audio_file.audio_level = target.audio_level
    audio_file.file_hash = None
    audio_file.updated_at = utc_now()
    session.add(audio_file)

    await session.commit()
    await session.refresh(audio_file)
    logger.info(
        f"Restored {audio_file.original_filename} to version {version_number} (backup v{backup_number})"
    )
    return audio_file


async def upsert_user(session: AsyncSession, email: str, name: str | None = None) -> User:
    """Create or refresh a team member on sign-in."""
    result = await session.exec(select(User).where(User.email == email))
    user = result.first()
    if user is None:
        user = User(email=email, name=name)
    else:
        user.name = name or user.name
        user.last_login_at = utc_now()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user
