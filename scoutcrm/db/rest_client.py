"""Direct PostgREST client.

Talks to the Supabase REST endpoint with plain httpx requests. Used instead
of the client library when its session handling gets in the way; every
request is bounded by an explicit timeout.
"""

from typing import Any

import httpx

from scoutcrm.core.local_storage import LocalStore
from scoutcrm.core.logging import get_logger
from scoutcrm.db.session import get_access_token
from scoutcrm.db.store import (
    Filters,
    StoreAuthError,
    StoreRejectedError,
    StoreUnavailableError,
)

logger = get_logger(__name__)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def build_query(
    filters: Filters | None = None,
    order: str | None = None,
    desc: bool = False,
) -> dict[str, str]:
    """Translate equality/in filters into PostgREST query parameters."""
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple)):
            params[column] = f"in.({','.join(_format_value(v) for v in value)})"
        elif value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{_format_value(value)}"
    if order:
        params["order"] = f"{order}.{'desc' if desc else 'asc'}"
    return params


class RestStore:
    """StoreClient over the PostgREST HTTP API."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        local_store: LocalStore,
        session_key: str,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self._local_store = local_store
        self._session_key = session_key
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        # Missing token fails here, before any request goes out
        token = get_access_token(self._local_store, self._session_key)
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json_body: dict | None = None,
    ) -> Any:
        headers = self._headers()
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, url, params=params, json=json_body, headers=headers
                )
        except httpx.TimeoutException as e:
            logger.warning(f"Store request timed out after {self.timeout}s: {method} {table}")
            raise StoreUnavailableError(f"Request timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            logger.warning(f"Store unreachable: {method} {table}: {e}")
            raise StoreUnavailableError(str(e) or type(e).__name__) from e

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        try:
            message = response.json().get("message") or f"HTTP {response.status_code}"
        except (ValueError, AttributeError):
            message = f"HTTP {response.status_code}"

        logger.warning(f"Store rejected {method} {table}: {response.status_code} {message}")
        if response.status_code in (401, 403):
            raise StoreAuthError(message)
        if response.status_code >= 500:
            raise StoreUnavailableError(message)
        raise StoreRejectedError(message, status_code=response.status_code)

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: str | None = None,
        desc: bool = False,
    ) -> list[dict]:
        data = await self._request("GET", table, params=build_query(filters, order, desc))
        return data or []

    async def insert(self, table: str, row: dict) -> dict:
        data = await self._request("POST", table, json_body=row)
        # Representation comes back as an array
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            raise StoreRejectedError(f"No data returned from {table} insert")
        return data

    async def update(self, table: str, filters: Filters, patch: dict) -> dict | None:
        data = await self._request("PATCH", table, params=build_query(filters), json_body=patch)
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def delete(self, table: str, filters: Filters) -> None:
        await self._request("DELETE", table, params=build_query(filters))
