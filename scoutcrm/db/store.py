"""Store client interface and error types for the hosted backend."""

from typing import Any, Protocol

# Equality filters; a list/tuple value means "column in (...)"
Filters = dict[str, Any]


class StoreError(Exception):
    """Base class for store failures."""


class StoreUnavailableError(StoreError):
    """Store unreachable: transport error, timeout or 5xx."""


class StoreAuthError(StoreError):
    """No bearer token available, or the store refused it (401/403)."""


class StoreRejectedError(StoreError):
    """Store rejected the request (constraint or validation failure)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreClient(Protocol):
    """Operations consumed from the hosted relational store."""

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: str | None = None,
        desc: bool = False,
    ) -> list[dict]: ...

    async def insert(self, table: str, row: dict) -> dict: ...

    async def update(self, table: str, filters: Filters, patch: dict) -> dict | None: ...

    async def delete(self, table: str, filters: Filters) -> None: ...
