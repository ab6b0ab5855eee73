"""Prospect pipeline endpoints: board views, creation, status and outreach."""

from fastapi import APIRouter, Depends, HTTPException

from scoutcrm.api.deps import get_board, store_http_error
from scoutcrm.core.logging import get_logger
from scoutcrm.core.pipeline_board import ProspectBoard, ProspectNotFoundError
from scoutcrm.core.schemas_pipeline import (
    BoardResponse,
    CreateProspectRequest,
    NotesRequest,
    OutreachLogRequest,
    StatusChangeRequest,
    StatusChangeResponse,
)
from scoutcrm.core.schemas_prospects import STATUS_LABELS, OutreachLog, Prospect
from scoutcrm.core.status_policy import InvalidStatusError
from scoutcrm.db.store import StoreError

logger = get_logger(__name__)

router = APIRouter(prefix="/prospects")


def _not_found(e: ProspectNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@router.get("", response_model=BoardResponse)
async def get_pipeline(board: ProspectBoard = Depends(get_board)) -> BoardResponse:
    """Primary board: every prospect except those in the shadow status."""
    return BoardResponse(
        prospects=board.pipeline_view(),
        columns={STATUS_LABELS[status]: items for status, items in board.columns().items()},
        online=board.online,
        pending_sync=len(board.queue),
    )


@router.get("/outreach", response_model=list[Prospect])
async def get_outreach(board: ProspectBoard = Depends(get_board)) -> list[Prospect]:
    """Outreach and import review: every prospect, shadow ones included."""
    return board.outreach_view()


@router.post("", response_model=Prospect, status_code=201)
async def create_prospect(
    request: CreateProspectRequest,
    board: ProspectBoard = Depends(get_board),
) -> Prospect:
    """
    Create a prospect.

    Returns the committed prospect, or a pending copy (pending_sync=True,
    local id) when the store is unreachable.
    """
    return await board.add_prospect(request.to_prospect())


@router.patch("/{prospect_id}/status", response_model=StatusChangeResponse)
async def change_status(
    prospect_id: str,
    request: StatusChangeRequest,
    board: ProspectBoard = Depends(get_board),
) -> StatusChangeResponse:
    """
    Move a prospect to another pipeline status.

    Raises:
        HTTPException: 400 for an unknown status, 404 for an unknown prospect
    """
    try:
        change = await board.change_status(prospect_id, request.status, request.extra_data)
    except ProspectNotFoundError as e:
        raise _not_found(e) from e
    except InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return StatusChangeResponse(
        prospect=change.prospect,
        previous_status=change.previous_status,
        changed=change.changed,
        celebrate=change.celebrate,
    )


@router.patch("/{prospect_id}/notes", response_model=Prospect)
async def update_notes(
    prospect_id: str,
    request: NotesRequest,
    board: ProspectBoard = Depends(get_board),
) -> Prospect:
    try:
        return await board.update_notes(prospect_id, request.notes)
    except ProspectNotFoundError as e:
        raise _not_found(e) from e


@router.delete("/{prospect_id}")
async def delete_prospect(prospect_id: str, board: ProspectBoard = Depends(get_board)):
    try:
        await board.delete_prospect(prospect_id)
    except ProspectNotFoundError as e:
        raise _not_found(e) from e
    except StoreError as e:
        logger.warning(f"Delete failed: {e}", extra={"prospect_id": prospect_id})
        raise store_http_error(e) from e
    return {"ok": True}


@router.post("/{prospect_id}/outreach", response_model=OutreachLog, status_code=201)
async def log_outreach(
    prospect_id: str,
    request: OutreachLogRequest,
    board: ProspectBoard = Depends(get_board),
) -> OutreachLog:
    """Record an outreach attempt against a prospect."""
    try:
        return await board.log_outreach(
            prospect_id,
            method=request.method,
            template_name=request.template_name,
            note=request.note,
            message_content=request.message_content,
        )
    except ProspectNotFoundError as e:
        raise _not_found(e) from e
