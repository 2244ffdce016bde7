"""Clip upload, listing and label editing endpoints."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from litestar import delete, get, patch, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.exceptions import NotFoundException, ValidationException
from litestar.params import Body
from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from ..dataset.filters import FileFilter
from ..db.config import get_engine
from ..db.operations import (
    create_file_with_version,
    delete_file,
    get_file,
    list_files,
    update_file_labels,
)
from ..ingest import UploadRejectedError, prepare_upload
from ..storage import StorageBackend
from .models import AudioFileResponse, SignedUrlResponse, UpdateFileRequest
from .state import AppState
from .types import AppRequest

logger = logging.getLogger(__name__)


@dataclass
class UploadForm:
    """Multipart upload form."""

    file: UploadFile
    uploaded_by: str | None = None
    emotion: str | None = None
    description: str | None = None
    dataset_type: str | None = None


def signed_url(storage: StorageBackend, key: str, expires_in: int) -> str | None:
    """Signed URL for a blob, or None when signing fails."""
    try:
        return storage.get_signed_url(key, expires_in)
    except Exception as e:
        logger.warning(f"Could not sign URL for {key}: {e}")
        return None


def uploader_name(request: AppRequest, explicit: str | None) -> str:
    if explicit and explicit.strip():
        return explicit.strip()
    user = request.user
    return user.name or user.email


@get("/api/files")
async def list_files_endpoint(
    state: AppState,
    emotion: str | None = None,
    dataset_type: str | None = None,
    uploaded_by: str | None = None,
    duration_min: float | None = None,
    duration_max: float | None = None,
    sample_rate: int | None = None,
    channels: str | None = None,
    size_min_mb: float | None = None,
    size_max_mb: float | None = None,
) -> list[AudioFileResponse]:
    """List clips newest first, with the advanced filters applied."""
    try:
        file_filter = FileFilter(
            emotion=emotion,
            dataset_type=dataset_type,
            uploaded_by=uploaded_by,
            duration_min=duration_min,
            duration_max=duration_max,
            sample_rate=sample_rate,
            channels=channels.lower() if channels else None,  # pyright: ignore[reportArgumentType]
            size_min_mb=size_min_mb,
            size_max_mb=size_max_mb,
        )
    except ValidationError as e:
        raise ValidationException(detail=f"Invalid filter: {e}") from e

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        files = await list_files(session, file_filter)

    expires = state.config.signed_url_seconds
    return [
        AudioFileResponse.from_record(f, signed_url(state.storage, f.file_path, expires))
        for f in files
    ]


@get("/api/files/{file_id:uuid}")
async def get_file_endpoint(file_id: UUID, state: AppState) -> AudioFileResponse:
    """Get a single clip."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        audio_file = await get_file(session, file_id)

    if audio_file is None:
        raise NotFoundException(detail=f"Audio file {file_id} not found")

    url = signed_url(state.storage, audio_file.file_path, state.config.signed_url_seconds)
    return AudioFileResponse.from_record(audio_file, url)


@post("/api/files")
async def upload_file(
    request: AppRequest,
    data: Annotated[UploadForm, Body(media_type=RequestEncodingType.MULTI_PART)],
    state: AppState,
) -> AudioFileResponse:
    """Upload a WAV or MP3 clip.

    Workflow:
    1. Validate file (size, type)
    2. Convert MP3 to 16-bit PCM WAV (in a worker thread)
    3. Extract metadata (best effort)
    4. Store the WAV and create the clip record with version 1

    Raises:
        ValidationException: If the file is rejected or the labels are invalid
    """
    config = state.config
    content = await data.file.read()

    emotion = config.dataset.normalize_emotion(data.emotion)
    if data.emotion and emotion is None:
        raise ValidationException(detail=f"Unknown emotion: {data.emotion}")

    try:
        prepared = await asyncio.to_thread(
            prepare_upload, data.file.filename, content, config.dataset.max_upload_mb
        )
    except UploadRejectedError as e:
        raise ValidationException(detail=str(e)) from e

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        audio_file = await create_file_with_version(
            session,
            state.storage,
            prepared,
            uploaded_by=uploader_name(request, data.uploaded_by),
            emotion=emotion,
            description=data.description,
            dataset_type=data.dataset_type,
        )

    url = signed_url(state.storage, audio_file.file_path, config.signed_url_seconds)
    return AudioFileResponse.from_record(audio_file, url)


@patch("/api/files/{file_id:uuid}")
async def update_file_endpoint(
    file_id: UUID, data: UpdateFileRequest, state: AppState
) -> AudioFileResponse:
    """Edit emotion, description or dataset split."""
    changes = data.model_dump(exclude_unset=True)

    if changes.get("emotion"):
        emotion = state.config.dataset.normalize_emotion(changes["emotion"])
        if emotion is None:
            raise ValidationException(detail=f"Unknown emotion: {changes['emotion']}")
        changes["emotion"] = emotion

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        if await get_file(session, file_id) is None:
            raise NotFoundException(detail=f"Audio file {file_id} not found")
        try:
            audio_file = await update_file_labels(session, file_id, changes)
        except ValueError as e:
            raise ValidationException(detail=str(e)) from e

    url = signed_url(state.storage, audio_file.file_path, state.config.signed_url_seconds)
    return AudioFileResponse.from_record(audio_file, url)


@delete("/api/files/{file_id:uuid}")
async def delete_file_endpoint(file_id: UUID, state: AppState) -> None:
    """Delete a clip with all its versions."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        try:
            _ = await delete_file(session, state.storage, file_id)
        except ValueError as e:
            raise NotFoundException(detail=str(e)) from e


@get("/api/files/{file_id:uuid}/url")
async def get_signed_url_endpoint(file_id: UUID, state: AppState) -> SignedUrlResponse:
    """Get a time-limited URL for playing the current version."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        audio_file = await get_file(session, file_id)

    if audio_file is None:
        raise NotFoundException(detail=f"Audio file {file_id} not found")

    expires = state.config.signed_url_seconds
    return SignedUrlResponse(
        url=state.storage.get_signed_url(audio_file.file_path, expires), expires_in=expires
    )
