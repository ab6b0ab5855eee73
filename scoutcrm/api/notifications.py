"""Notification API: messages produced by pipeline actions and sync."""

from fastapi import APIRouter, Depends

from scoutcrm.api.deps import get_board
from scoutcrm.core.pipeline_board import ProspectBoard
from scoutcrm.core.schemas_prospects import Notification

router = APIRouter(prefix="/notifications")


@router.get("", response_model=list[Notification])
async def list_notifications(
    clear: bool = False,
    board: ProspectBoard = Depends(get_board),
) -> list[Notification]:
    """List notifications, newest first. ``clear`` empties the list after reading."""
    notifications = list(reversed(board.notifications))
    if clear:
        board.clear_notifications()
    return notifications
