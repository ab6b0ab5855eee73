"""Sign-in session endpoints.

The store clients read the bearer token from local storage on every
request; signing in here is what makes queued work committable again.
"""

from fastapi import APIRouter, Depends

from scoutcrm.api.deps import get_board, get_local_store, get_session_key
from scoutcrm.api.sync import drain_response
from scoutcrm.core.local_storage import LocalStore
from scoutcrm.core.logging import get_logger
from scoutcrm.core.pipeline_board import ProspectBoard
from scoutcrm.core.schemas_auth import SessionRequest, SessionResponse
from scoutcrm.db.session import clear_session, get_access_token, save_session
from scoutcrm.db.store import StoreAuthError

logger = get_logger(__name__)

router = APIRouter(prefix="/auth")


@router.get("/session", response_model=SessionResponse)
async def get_session(
    local_store: LocalStore = Depends(get_local_store),
    session_key: str = Depends(get_session_key),
) -> SessionResponse:
    try:
        get_access_token(local_store, session_key)
    except StoreAuthError:
        return SessionResponse(signed_in=False)
    return SessionResponse(signed_in=True)


@router.put("/session", response_model=SessionResponse)
async def sign_in(
    request: SessionRequest,
    board: ProspectBoard = Depends(get_board),
    local_store: LocalStore = Depends(get_local_store),
    session_key: str = Depends(get_session_key),
) -> SessionResponse:
    """
    Store the session tokens and retry anything that failed while signed out.

    The drain only runs while the board is online.
    """
    extra = request.model_dump(exclude={"access_token"}, exclude_none=True)
    save_session(local_store, session_key, request.access_token, **extra)
    logger.info("Session saved", extra={"owner_id": board.owner_id})

    if not board.online:
        return SessionResponse(signed_in=True)
    return SessionResponse(signed_in=True, drain=drain_response(await board.drain()))


@router.delete("/session", response_model=SessionResponse)
async def sign_out(
    local_store: LocalStore = Depends(get_local_store),
    session_key: str = Depends(get_session_key),
) -> SessionResponse:
    clear_session(local_store, session_key)
    logger.info("Session cleared")
    return SessionResponse(signed_in=False)
