"""Database operations for scout_prospects and scout_outreach_logs."""

from typing import Any

from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import OutreachLog, Prospect
from scoutcrm.db.prospect_rows import (
    OUTREACH_LOGS_TABLE,
    PROSPECTS_TABLE,
    from_row,
    log_from_row,
    log_to_row,
    to_row,
)
from scoutcrm.db.store import StoreClient

logger = get_logger(__name__)


async def list_prospects(store: StoreClient, owner_id: str) -> list[Prospect]:
    """
    Load an owner's prospects newest first, with their outreach logs.

    Logs are fetched in one batch for all loaded prospects.
    """
    rows = await store.select(
        PROSPECTS_TABLE, {"scout_id": owner_id}, order="created_at", desc=True
    )
    if not rows:
        return []

    ids = [str(row["id"]) for row in rows]
    log_rows = await store.select(
        OUTREACH_LOGS_TABLE, {"prospect_id": ids}, order="created_at", desc=True
    )

    logs_by_prospect: dict[str, list[OutreachLog]] = {}
    for log_row in log_rows:
        log = log_from_row(log_row)
        if log is not None:
            logs_by_prospect.setdefault(str(log_row["prospect_id"]), []).append(log)

    logger.debug(f"Loaded {len(rows)} prospects and {len(log_rows)} outreach logs")
    return [from_row(row, logs_by_prospect.get(str(row["id"]), [])) for row in rows]


async def create_prospect(store: StoreClient, prospect: Prospect, owner_id: str) -> Prospect:
    """Insert a prospect and return it with the store-assigned id."""
    row = await store.insert(PROSPECTS_TABLE, to_row(prospect, owner_id))
    committed = from_row(row, list(prospect.outreach_logs))
    logger.info(
        f"Created prospect {committed.name}",
        extra={"prospect_id": committed.id},
    )
    return committed


async def update_prospect(store: StoreClient, prospect_id: str, patch: dict[str, Any]) -> None:
    """
    Send a sparse patch for one prospect.

    The caller builds the patch (see prospect_rows.to_patch) so only changed
    columns travel; an empty patch sends nothing.
    """
    if not patch:
        return
    await store.update(PROSPECTS_TABLE, {"id": prospect_id}, patch)
    logger.debug(
        f"Patched columns {sorted(patch)}",
        extra={"prospect_id": prospect_id},
    )


async def delete_prospect(store: StoreClient, prospect_id: str) -> None:
    await store.delete(PROSPECTS_TABLE, {"id": prospect_id})
    logger.info("Deleted prospect", extra={"prospect_id": prospect_id})


async def insert_outreach_log(
    store: StoreClient,
    prospect_id: str,
    owner_id: str,
    log: OutreachLog,
) -> OutreachLog:
    """
    Persist an outreach log and stamp last_contacted_at on the prospect.

    The log keeps the time it was recorded, which may be well before it
    reaches the store when it was made offline.
    """
    row = await store.insert(OUTREACH_LOGS_TABLE, log_to_row(log, prospect_id, owner_id))
    await store.update(
        PROSPECTS_TABLE,
        {"id": prospect_id},
        {"last_contacted_at": log.timestamp.isoformat()},
    )
    return log_from_row(row) or log
