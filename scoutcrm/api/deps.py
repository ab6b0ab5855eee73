"""Shared dependencies for the v1 routers.

The board and its collaborators are built once in the app lifespan and kept
on ``app.state``; tests override these dependencies with their own fakes.
"""

from fastapi import HTTPException, Request

from scoutcrm.core.llm_usage import AIUsageTracker
from scoutcrm.core.local_storage import LocalStore
from scoutcrm.core.pipeline_board import ProspectBoard
from scoutcrm.core.rate_limiter import BulkImportLimiter
from scoutcrm.db.store import StoreAuthError, StoreError, StoreUnavailableError


def get_board(request: Request) -> ProspectBoard:
    return request.app.state.board


def get_bulk_limiter(request: Request) -> BulkImportLimiter:
    return request.app.state.bulk_limiter


def get_usage_tracker(request: Request) -> AIUsageTracker:
    return request.app.state.usage_tracker


def get_local_store(request: Request) -> LocalStore:
    return request.app.state.local_store


def get_session_key(request: Request) -> str:
    return request.app.state.session_key


def store_http_error(e: StoreError) -> HTTPException:
    """Map a store failure to the HTTP error the client should see."""
    if isinstance(e, StoreAuthError):
        return HTTPException(status_code=401, detail=f"Sync failed, please sign in again: {e}")
    if isinstance(e, StoreUnavailableError):
        return HTTPException(status_code=503, detail=f"Store unavailable: {e}")
    return HTTPException(status_code=502, detail=f"Store rejected the request: {e}")
