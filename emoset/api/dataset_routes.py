"""Bulk actions, export/import and ZIP download endpoints.

Each bulk item runs in its own session, so a database error on one item
is rolled back without poisoning the items after it.
"""

from __future__ import annotations

import asyncio
from typing import Annotated
from uuid import UUID

from litestar import Response, get, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.exceptions import NotFoundException, ValidationException
from litestar.params import Body
from sqlmodel.ext.asyncio.session import AsyncSession

from ..config import DatasetSplit
from ..dataset.bulk import BatchReport, run_batch
from ..dataset.export import (
    ZipArchiveBuilder,
    export_csv,
    export_json,
    filter_by_dataset_type,
    parse_import_csv,
)
from ..db.config import get_engine
from ..db.models import AudioFile
from ..db.operations import (
    assign_dataset_split,
    delete_file,
    get_file,
    list_files,
    update_file_labels,
)
from ..utils import dated_filename
from .models import BulkAssignRequest, BulkIdsRequest
from .state import AppState


def _parse_ids(ids: list[str]) -> list[UUID]:
    try:
        return [UUID(i) for i in ids]
    except ValueError as e:
        raise ValidationException(detail=f"Invalid file id: {e}") from e


def _split_or_none(dataset_type: str | None) -> DatasetSplit | None:
    if not dataset_type:
        return None
    split = DatasetSplit.parse(dataset_type)
    if split is None:
        raise ValidationException(detail=f"Unknown dataset type: {dataset_type}")
    return split


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@post("/api/files/bulk-delete", status_code=200)
async def bulk_delete(data: BulkIdsRequest, state: AppState) -> BatchReport:
    """Delete the selected clips one by one."""
    ids = _parse_ids(data.ids)

    async def remove(file_id: UUID) -> None:
        async with AsyncSession(get_engine(), expire_on_commit=False) as session:
            _ = await delete_file(session, state.storage, file_id)

    return await run_batch(ids, remove)


@post("/api/files/bulk-assign", status_code=200)
async def bulk_assign(data: BulkAssignRequest) -> BatchReport:
    """Assign (or clear) the dataset split of the selected clips."""
    ids = _parse_ids(data.ids)
    split = _split_or_none(data.dataset_type)

    async def assign(file_id: UUID) -> None:
        async with AsyncSession(get_engine(), expire_on_commit=False) as session:
            _ = await assign_dataset_split(session, file_id, split)

    return await run_batch(ids, assign)


async def _files_for_export(dataset_type: str | None) -> list[AudioFile]:
    _ = _split_or_none(dataset_type)
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        files = await list_files(session)
    return filter_by_dataset_type(files, dataset_type)


@get("/api/export/csv")
async def export_csv_endpoint(dataset_type: str | None = None) -> Response[str]:
    """Download clip metadata as CSV."""
    files = await _files_for_export(dataset_type)
    filename = dated_filename("audio_dataset", dataset_type, "csv")
    return Response(
        export_csv(files), media_type="text/csv; charset=utf-8", headers=_attachment(filename)
    )


@get("/api/export/json")
async def export_json_endpoint(dataset_type: str | None = None) -> Response[str]:
    """Download clip metadata as a JSON document."""
    files = await _files_for_export(dataset_type)
    filename = dated_filename("audio_dataset", dataset_type, "json")
    return Response(
        export_json(files), media_type="application/json", headers=_attachment(filename)
    )


@post("/api/import/csv", status_code=200)
async def import_csv_endpoint(
    data: Annotated[UploadFile, Body(media_type=RequestEncodingType.MULTI_PART)],
    state: AppState,
) -> BatchReport:
    """Apply label edits from an exported (and edited) CSV."""
    text = (await data.read()).decode("utf-8", errors="replace")
    rows, skipped = parse_import_csv(text, state.config.dataset)
    if not rows and not skipped:
        raise ValidationException(detail="CSV file contains no rows")

    async def apply(row_file_id: str, changes: dict[str, str | None]) -> None:
        async with AsyncSession(get_engine(), expire_on_commit=False) as session:
            _ = await update_file_labels(session, UUID(row_file_id), changes)

    report = await run_batch(
        rows, lambda row: apply(row.file_id, row.changes), describe=lambda row: row.file_id
    )

    report.skipped += skipped
    return report


@post("/api/download/zip", status_code=200)
async def download_zip(
    state: AppState, data: BulkIdsRequest | None = None, dataset_type: str | None = None
) -> Response[bytes]:
    """Download clips as a ZIP archive.

    Either the selected ids, or every clip (optionally of one split). Missing
    blobs are counted in the X-Batch-* headers and left out of the archive.
    """
    archive = ZipArchiveBuilder()

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        if data is not None:
            files: list[AudioFile] = []
            for file_id in _parse_ids(data.ids):
                audio_file = await get_file(session, file_id)
                if audio_file is not None:
                    files.append(audio_file)
            scope = "selected"
        else:
            _ = _split_or_none(dataset_type)
            files = filter_by_dataset_type(await list_files(session), dataset_type)
            scope = dataset_type.lower() if dataset_type else None

    if not files:
        raise NotFoundException(detail="No files to download")

    async def fetch(audio_file: AudioFile) -> None:
        content = await asyncio.to_thread(state.storage.download, audio_file.file_path)
        _ = archive.add(audio_file.original_filename, content)

    report = await run_batch(files, fetch, describe=lambda f: f.original_filename)

    filename = dated_filename("audio_files", scope, "zip")
    return Response(
        archive.finish(),
        media_type="application/zip",
        headers={
            **_attachment(filename),
            "X-Batch-Succeeded": str(report.succeeded),
            "X-Batch-Failed": str(report.failed),
        },
    )
