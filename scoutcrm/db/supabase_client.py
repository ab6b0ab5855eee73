"""Supabase client initialization and the supabase-py backed store."""

import asyncio
from typing import Any

import httpx
from supabase import Client, ClientOptions, create_client

from scoutcrm.core.config import Settings
from scoutcrm.core.local_storage import LocalStore
from scoutcrm.core.logging import get_logger
from scoutcrm.db.session import get_access_token
from scoutcrm.db.store import (
    Filters,
    StoreAuthError,
    StoreError,
    StoreRejectedError,
    StoreUnavailableError,
)

logger = get_logger(__name__)

# PostgREST / Postgres codes that mean the caller is not authorized
AUTH_ERROR_CODES = {"401", "403", "PGRST301", "PGRST302", "42501"}


def create_supabase(settings: Settings) -> Client:
    """
    Create a Supabase client for the configured project.

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        options = ClientOptions(
            postgrest_client_timeout=settings.STORE_TIMEOUT_SECONDS,
            headers={"x-client-info": "scoutcrm"},
        )
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, options=options)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


def _translate_error(e: Exception) -> StoreError:
    if isinstance(e, StoreError):
        return e
    if isinstance(e, (httpx.TimeoutException, httpx.TransportError)):
        return StoreUnavailableError(str(e) or type(e).__name__)
    code = str(getattr(e, "code", "") or "")
    message = getattr(e, "message", None) or str(e)
    if code in AUTH_ERROR_CODES:
        return StoreAuthError(message)
    return StoreRejectedError(message)


def _apply_filters(query: Any, filters: Filters | None) -> Any:
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple)):
            query = query.in_(column, list(value))
        else:
            query = query.eq(column, value)
    return query


class SupabaseStore:
    """StoreClient over the supabase-py row-level client.

    supabase-py is synchronous, so each call runs in a worker thread. The
    user's bearer token is read from the persisted session on every call.
    """

    def __init__(self, client: Client, local_store: LocalStore, session_key: str):
        self._client = client
        self._local_store = local_store
        self._session_key = session_key

    def _authorized(self) -> Client:
        token = get_access_token(self._local_store, self._session_key)
        self._client.postgrest.auth(token)
        return self._client

    async def _run(self, fn) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except StoreError as e:
            logger.warning(f"Supabase call failed: {type(e).__name__}: {e}")
            raise
        except Exception as e:
            error = _translate_error(e)
            logger.warning(f"Supabase call failed: {type(error).__name__}: {error}")
            raise error from e

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: str | None = None,
        desc: bool = False,
    ) -> list[dict]:
        def _q():
            query = _apply_filters(self._authorized().table(table).select("*"), filters)
            if order:
                query = query.order(order, desc=desc)
            return query.execute().data or []

        return await self._run(_q)

    async def insert(self, table: str, row: dict) -> dict:
        def _q():
            result = self._authorized().table(table).insert(row).execute()
            if not result.data:
                raise StoreRejectedError(f"No data returned from {table} insert")
            return result.data[0]

        return await self._run(_q)

    async def update(self, table: str, filters: Filters, patch: dict) -> dict | None:
        def _q():
            query = _apply_filters(self._authorized().table(table).update(patch), filters)
            result = query.execute()
            return result.data[0] if result.data else None

        return await self._run(_q)

    async def delete(self, table: str, filters: Filters) -> None:
        def _q():
            _apply_filters(self._authorized().table(table).delete(), filters).execute()

        await self._run(_q)
