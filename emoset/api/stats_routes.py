"""Collection statistics endpoint."""

from __future__ import annotations

from litestar import get
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from ..dataset.statistics import DatasetStatistics, compute_statistics
from ..db.config import get_engine
from ..db.operations import list_files
from .state import AppState


class StatisticsResponse(BaseModel):
    statistics: DatasetStatistics
    progress_percent: float
    remaining_clips: int


@get("/api/statistics")
async def get_statistics(state: AppState) -> StatisticsResponse:
    """Clip counts per team member and emotion, and progress towards the target."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        files = await list_files(session)

    stats = compute_statistics(files, state.config.dataset)
    return StatisticsResponse(
        statistics=stats,
        progress_percent=round(stats.progress_percent, 1),
        remaining_clips=stats.remaining_clips,
    )
