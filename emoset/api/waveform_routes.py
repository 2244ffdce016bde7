"""Waveform envelope, image and seek endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated
from uuid import UUID

from litestar import Response, get
from litestar.exceptions import NotFoundException, ValidationException
from litestar.params import Parameter
from sqlmodel.ext.asyncio.session import AsyncSession

from ..audio.player import WaveformPlayer, WaveformPlayerCache
from ..audio.renderer import (
    DEFAULT_PLAYED_COLOR,
    DEFAULT_UNPLAYED_COLOR,
    RasterSurface,
    RenderMode,
    parse_color,
    seek_time,
    x_to_progress,
)
from ..audio.waveform import DEFAULT_SAMPLE_COUNT, PLAYBACK_SAMPLE_COUNT
from ..db.config import get_engine
from ..db.models import AudioFile
from ..db.operations import get_file
from ..storage import StorageBackend, StorageError
from .models import SeekResponse, WaveformResponse
from .state import AppState

logger = logging.getLogger(__name__)

# Storage keys never change content, so players can be shared between requests
_players = WaveformPlayerCache()


def get_player_cache() -> WaveformPlayerCache:
    return _players


async def _load_file(file_id: UUID) -> AudioFile:
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        audio_file = await get_file(session, file_id)
    if audio_file is None:
        raise NotFoundException(detail=f"Audio file {file_id} not found")
    return audio_file


async def _loaded_player(storage: StorageBackend, audio_file: AudioFile, samples: int) -> WaveformPlayer:
    key = audio_file.file_path

    async def download() -> bytes:
        return await asyncio.to_thread(storage.download, key)

    player = _players.get(key, download, audio_file.duration or 0.0, samples)
    try:
        _ = await player.load()
    except StorageError as e:
        raise NotFoundException(detail=str(e)) from e
    return player


@get("/api/files/{file_id:uuid}/waveform")
async def get_waveform(
    file_id: UUID,
    state: AppState,
    samples: Annotated[int, Parameter(ge=1, le=4096)] = DEFAULT_SAMPLE_COUNT,
) -> WaveformResponse:
    """Get the normalized amplitude envelope of the current version."""
    audio_file = await _load_file(file_id)
    player = await _loaded_player(state.storage, audio_file, samples)
    if player.envelope is None:
        raise ValidationException(detail=f"Could not compute waveform: {player.error}")
    envelope = player.envelope
    return WaveformResponse(file_id=str(file_id), sample_count=len(envelope), values=list(envelope.values))


@get("/api/files/{file_id:uuid}/waveform.png")
async def get_waveform_image(
    file_id: UUID,
    state: AppState,
    mode: RenderMode = RenderMode.PROGRESS,
    progress: Annotated[float, Parameter(ge=0.0, le=1.0)] = 0.0,
    width: Annotated[float, Parameter(gt=0, le=4096)] = 600.0,
    height: Annotated[float, Parameter(gt=0, le=1024)] = 80.0,
    dpr: Annotated[float, Parameter(gt=0, le=4)] = 1.0,
    samples: Annotated[int, Parameter(ge=1, le=4096)] = PLAYBACK_SAMPLE_COUNT,
    played_color: str = DEFAULT_PLAYED_COLOR,
    unplayed_color: str = DEFAULT_UNPLAYED_COLOR,
) -> Response[bytes]:
    """Render the waveform as a PNG at ``width x height`` logical pixels times ``dpr``.

    A clip whose audio cannot be decoded gets a flat placeholder image.
    """
    try:
        _ = parse_color(played_color)
        _ = parse_color(unplayed_color)
    except ValueError as e:
        raise ValidationException(detail=f"Invalid color: {e}") from e

    audio_file = await _load_file(file_id)
    player = await _loaded_player(state.storage, audio_file, samples)
    if player.envelope is None:
        logger.warning(f"Waveform unavailable for {file_id}: {player.error}")

    surface = player.render(
        RasterSurface(width, height, dpr),
        progress=progress,
        mode=mode,
        played_color=played_color,
        unplayed_color=unplayed_color,
    )
    png = await asyncio.to_thread(surface.to_png_bytes)
    return Response(png, media_type="image/png", headers={"Cache-Control": "no-cache"})


@get("/api/files/{file_id:uuid}/seek")
async def seek_endpoint(
    file_id: UUID,
    x: float,
    width: Annotated[float, Parameter(gt=0)],
) -> SeekResponse:
    """Map a click position on a waveform of the given width to a playback time."""
    audio_file = await _load_file(file_id)
    duration = audio_file.duration or 0.0
    return SeekResponse(progress=x_to_progress(x, width), time=seek_time(x, width, duration))
