"""Offline queue endpoints: connectivity signals, drains and pending items."""

from fastapi import APIRouter, Depends, HTTPException

from scoutcrm.api.deps import get_board
from scoutcrm.core.offline_queue import DrainReport
from scoutcrm.core.pipeline_board import ProspectBoard
from scoutcrm.core.schemas_pipeline import (
    ConnectivityRequest,
    ConnectivityResponse,
    DrainResponse,
    PendingEntryResponse,
)

router = APIRouter(prefix="/sync")


def drain_response(report: DrainReport) -> DrainResponse:
    return DrainResponse(
        committed={local_id: prospect.id for local_id, prospect in report.committed},
        remaining=report.remaining,
        skipped=report.skipped,
        failed_local_id=report.failed.local_id if report.failed else None,
        failed_error=report.failed.last_error if report.failed else None,
    )


@router.post("/connectivity", response_model=ConnectivityResponse)
async def set_connectivity(
    request: ConnectivityRequest,
    board: ProspectBoard = Depends(get_board),
) -> ConnectivityResponse:
    """Report an online/offline signal; coming back online drains the queue."""
    report = await board.set_online(request.online)
    return ConnectivityResponse(
        online=board.online,
        drain=drain_response(report) if report is not None else None,
    )


@router.post("/drain", response_model=DrainResponse)
async def drain_queue(board: ProspectBoard = Depends(get_board)) -> DrainResponse:
    """Retry the offline queue now."""
    return drain_response(await board.drain())


@router.get("/pending", response_model=list[PendingEntryResponse])
async def list_pending(board: ProspectBoard = Depends(get_board)) -> list[PendingEntryResponse]:
    return [
        PendingEntryResponse(
            local_id=entry.local_id,
            name=entry.prospect.name,
            enqueued_at=entry.enqueued_at,
            attempts=entry.attempts,
            last_error=entry.last_error,
            needs_attention=entry.needs_attention,
        )
        for entry in board.queue.entries()
    ]


@router.delete("/pending/{local_id}")
async def discard_pending(local_id: str, board: ProspectBoard = Depends(get_board)):
    """Drop a queued creation the store keeps rejecting."""
    if not board.discard_pending(local_id):
        raise HTTPException(status_code=404, detail=f"No pending entry {local_id}")
    return {"ok": True}
