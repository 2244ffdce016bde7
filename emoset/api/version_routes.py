"""Version history endpoints."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from litestar import get, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.exceptions import NotFoundException, ValidationException
from litestar.params import Body
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.config import get_engine
from ..db.operations import add_version, get_file, list_versions, restore_version
from ..ingest import UploadRejectedError, prepare_upload
from ..storage import StorageError
from .file_routes import signed_url, uploader_name
from .models import AudioFileResponse, AudioVersionResponse
from .state import AppState
from .types import AppRequest


@dataclass
class VersionForm:
    """Multipart form for a new revision."""

    file: UploadFile
    notes: str | None = None
    uploaded_by: str | None = None


@get("/api/files/{file_id:uuid}/versions")
async def list_versions_endpoint(file_id: UUID) -> list[AudioVersionResponse]:
    """Get the version history of a clip, newest first."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        audio_file = await get_file(session, file_id)
        if audio_file is None:
            raise NotFoundException(detail=f"Audio file {file_id} not found")
        versions = await list_versions(session, file_id)

    return [AudioVersionResponse.from_record(v, audio_file.current_version) for v in versions]


@post("/api/files/{file_id:uuid}/versions")
async def upload_version_endpoint(
    file_id: UUID,
    request: AppRequest,
    data: Annotated[VersionForm, Body(media_type=RequestEncodingType.MULTI_PART)],
    state: AppState,
) -> AudioVersionResponse:
    """Upload a new revision of a clip; it becomes the current version."""
    content = await data.file.read()
    try:
        prepared = await asyncio.to_thread(
            prepare_upload, data.file.filename, content, state.config.dataset.max_upload_mb
        )
    except UploadRejectedError as e:
        raise ValidationException(detail=str(e)) from e

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        try:
            version = await add_version(
                session,
                state.storage,
                file_id,
                prepared,
                uploaded_by=uploader_name(request, data.uploaded_by),
                notes=data.notes,
            )
        except ValueError as e:
            raise NotFoundException(detail=str(e)) from e

    return AudioVersionResponse.from_record(version, version.version_number)


@post("/api/files/{file_id:uuid}/versions/{version_number:int}/restore", status_code=200)
async def restore_version_endpoint(
    file_id: UUID, version_number: int, state: AppState
) -> AudioFileResponse:
    """Make an earlier version current, backing up the present one first."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        try:
            audio_file = await restore_version(session, state.storage, file_id, version_number)
        except ValueError as e:
            raise NotFoundException(detail=str(e)) from e
        except StorageError as e:
            raise ValidationException(detail=f"Could not back up current version: {e}") from e

    url = signed_url(state.storage, audio_file.file_path, state.config.signed_url_seconds)
    return AudioFileResponse.from_record(audio_file, url)
