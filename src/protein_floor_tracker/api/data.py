"""Data-safety endpoints: wipe, snapshots, backups and reports."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from protein_floor_tracker.api.responses import outcome_response
from protein_floor_tracker.domain.errors import (
    ImportRejectedError,
    SnapshotNotFoundError,
    StorageUnavailableError,
)
from protein_floor_tracker.services.backup import (
    BACKUP_MEDIA_TYPE,
    backup_filename,
    export_backup,
)
from protein_floor_tracker.services.report import (
    build_weekly_report,
    report_filename,
    report_to_csv,
)

if TYPE_CHECKING:
    from protein_floor_tracker.containers import AppContainer
    from protein_floor_tracker.domain.report import DayTotals

router = APIRouter(tags=["data"])

_logger = logging.getLogger(__name__)


@router.post("/state/authorize-destructive-save")
async def authorize_destructive_save(request: Request) -> dict[str, bool]:
    """Allow the next save to empty a non-empty log."""
    container: AppContainer = request.app.state.container
    container.persistence.authorize_destructive_save()
    return {"authorized": True}


@router.post("/wipe")
async def wipe_all(request: Request) -> JSONResponse:
    """Reset all data to defaults."""
    container: AppContainer = request.app.state.container
    return outcome_response(container.logbook.wipe_all())


@router.get("/snapshots")
async def list_snapshots(request: Request) -> dict[str, object]:
    """Return snapshot history, newest first."""
    container: AppContainer = request.app.state.container
    try:
        snapshots = container.logbook.list_snapshots()
    except StorageUnavailableError as exc:
        raise _storage_unavailable(exc) from exc
    return {
        "snapshots": [
            {
                "index": index,
                "taken_at": snapshot.taken_at.isoformat(),
                "entry_count": snapshot.state.entry_count,
            }
            for index, snapshot in enumerate(snapshots)
        ]
    }


@router.post("/snapshots/{index}/restore")
async def restore_snapshot(index: int, request: Request) -> JSONResponse:
    """Replace the current state with a snapshot."""
    container: AppContainer = request.app.state.container
    try:
        outcome = container.logbook.restore_snapshot(index)
    except SnapshotNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc
    except StorageUnavailableError as exc:
        raise _storage_unavailable(exc) from exc
    return outcome_response(outcome)


@router.get("/backup")
async def download_backup(request: Request) -> Response:
    """Download the current state as a JSON backup file."""
    container: AppContainer = request.app.state.container
    filename = backup_filename(datetime.now(tz=UTC).date())
    return Response(
        content=export_backup(container.logbook.state),
        media_type=BACKUP_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/backup/import")
async def upload_backup(request: Request, authorize: bool = False) -> JSONResponse:
    """Install a backup file sent as the raw request body."""
    container: AppContainer = request.app.state.container
    body = await request.body()
    try:
        outcome = container.logbook.import_backup(body, authorize=authorize)
    except ImportRejectedError as exc:
        raise HTTPException(
            status.HTTP_422_UNPROCESSABLE_ENTITY, f"Import failed: {exc.cause}"
        ) from exc
    return outcome_response(outcome)


@router.get("/report/weekly")
async def weekly_report(request: Request, day: date | None = None) -> dict[str, object]:
    """Return the Monday-start weekly report for ``day`` (default today)."""
    container: AppContainer = request.app.state.container
    report = build_weekly_report(
        container.logbook.state.entries,
        day or datetime.now(tz=UTC).date(),
        container.settings.timezone,
    )
    return {
        "start": report.start.isoformat(),
        "end": report.end.isoformat(),
        "days": [_totals_payload(row) for row in report.days],
        "totals": _totals_payload(report.totals, with_day=False),
        "averages": _totals_payload(report.averages, with_day=False),
        "entry_count": report.entry_count,
    }


@router.get("/report/weekly.csv")
async def weekly_report_csv(request: Request, day: date | None = None) -> Response:
    """Download the weekly report as CSV."""
    container: AppContainer = request.app.state.container
    report = build_weekly_report(
        container.logbook.state.entries,
        day or datetime.now(tz=UTC).date(),
        container.settings.timezone,
    )
    return Response(
        content=report_to_csv(report),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{report_filename(report)}"'
        },
    )


def _storage_unavailable(exc: StorageUnavailableError) -> HTTPException:
    _logger.warning("Snapshot history unavailable: %s", exc)
    return HTTPException(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Snapshot history could not be read from local storage.",
    )


def _totals_payload(row: DayTotals, with_day: bool = True) -> dict[str, object]:
    payload: dict[str, object] = {
        "calories": row.calories,
        "protein": row.protein,
        "carbs": row.carbs,
        "fat": row.fat,
    }
    if with_day:
        payload = {"date": row.day.isoformat(), **payload}
    return payload
