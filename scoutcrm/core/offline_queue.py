"""
Durable offline creation queue.

Prospects created while the store is unreachable are written to local
storage (key ``scout_offline_queue``) in creation order and drained to the
store once connectivity returns.

Drain rules:
  - one drain at a time; a drain requested while one runs is skipped
  - strictly FIFO, one entry at a time
  - an entry leaves the queue only after the store confirms the insert
  - the first failure ends the pass; later entries wait for the next pass
  - a rejected entry stays at the head flagged needs_attention until it
    succeeds or the user discards it

Remote ids whose delete could not be sent (key ``scout_pending_deletes``)
are kept alongside the queue and retried before the next pass.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError

from scoutcrm.core.local_storage import OFFLINE_QUEUE_KEY, PENDING_DELETES_KEY, LocalStore
from scoutcrm.core.logging import get_logger, log_with_context
from scoutcrm.core.schemas_prospects import Prospect, is_local_id, new_local_id, utcnow
from scoutcrm.db.store import StoreError, StoreUnavailableError

logger = get_logger(__name__)

CommitFn = Callable[[Prospect], Awaitable[Prospect]]
CommittedFn = Callable[[str, Prospect], Awaitable[None]]


class QueueEntry(BaseModel):
    """A prospect waiting for its first insert."""

    local_id: str
    prospect: Prospect
    enqueued_at: datetime = Field(default_factory=utcnow)
    attempts: int = 0
    last_error: str | None = None
    needs_attention: bool = False


@dataclass
class DrainReport:
    """What a drain pass did."""

    committed: list[tuple[str, Prospect]] = field(default_factory=list)
    failed: QueueEntry | None = None
    remaining: int = 0
    skipped: bool = False


class ConnectivityState:
    """Edge detector for online/offline signals.

    ``update`` reports a transition only when the state actually flips, so
    repeated signals of the same state do nothing.
    """

    def __init__(self, online: bool = True):
        self.online = online

    def update(self, online: bool) -> str | None:
        if online == self.online:
            return None
        self.online = online
        return "online" if online else "offline"


class OfflineQueue:
    """FIFO queue of pending creations persisted in a LocalStore.

    Local storage is the source of truth; every operation re-reads it, so a
    new process resumes exactly where the previous one stopped.
    """

    def __init__(
        self,
        local_store: LocalStore,
        key: str = OFFLINE_QUEUE_KEY,
        deletes_key: str = PENDING_DELETES_KEY,
    ):
        self._local_store = local_store
        self._key = key
        self._deletes_key = deletes_key
        self._drain_lock = asyncio.Lock()
        self._unreadable: list = []

    # ----- persistence -----

    def _load(self) -> list[QueueEntry]:
        raw = self._local_store.get(self._key) or []
        entries: list[QueueEntry] = []
        self._unreadable = []
        for item in raw:
            try:
                entries.append(QueueEntry.model_validate(item))
            except ValidationError as e:
                logger.error(f"Unreadable offline queue entry kept aside: {e}")
                self._unreadable.append(item)
        return entries

    def _save(self, entries: list[QueueEntry]) -> None:
        # Unreadable items are written back untouched, never dropped
        payload = [e.model_dump(mode="json") for e in entries] + self._unreadable
        self._local_store.set(self._key, payload)

    # ----- queue operations -----

    def entries(self) -> list[QueueEntry]:
        return self._load()

    def __len__(self) -> int:
        return len(self._load())

    @property
    def draining(self) -> bool:
        return self._drain_lock.locked()

    def enqueue(self, prospect: Prospect) -> QueueEntry:
        """
        Persist a locally created prospect.

        The stored copy carries a local id and pending_sync=True; that same
        tagged copy is returned for optimistic display.
        """
        local_id = prospect.id if is_local_id(prospect.id) else new_local_id()
        tagged = prospect.model_copy(update={"id": local_id, "pending_sync": True})
        entry = QueueEntry(local_id=local_id, prospect=tagged)

        entries = self._load()
        entries.append(entry)
        self._save(entries)

        log_with_context(
            logger, logging.INFO, "Queued offline creation", local_id=local_id, pending=len(entries)
        )
        return entry

    def update_pending(self, prospect: Prospect) -> bool:
        """Replace the queued payload of a still-pending prospect.

        Returns False when the prospect is no longer queued.
        """
        entries = self._load()
        for i, entry in enumerate(entries):
            if entry.local_id == prospect.id:
                entries[i] = entry.model_copy(update={"prospect": prospect})
                self._save(entries)
                return True
        return False

    def discard(self, local_id: str) -> bool:
        """Drop a queued entry on explicit user request."""
        entries = self._load()
        kept = [e for e in entries if e.local_id != local_id]
        if len(kept) == len(entries):
            return False
        self._save(kept)
        logger.warning("Discarded queued creation", extra={"local_id": local_id})
        return True

    # ----- remote deletes -----

    def pending_deletes(self) -> list[str]:
        raw = self._local_store.get(self._deletes_key)
        return [str(item) for item in raw] if isinstance(raw, list) else []

    def remember_delete(self, remote_id: str) -> None:
        """Keep a committed id whose remote delete still has to be sent."""
        ids = self.pending_deletes()
        if remote_id not in ids:
            ids.append(remote_id)
            self._local_store.set(self._deletes_key, ids)
            logger.warning("Remote delete deferred", extra={"prospect_id": remote_id})

    def forget_delete(self, remote_id: str) -> None:
        ids = self.pending_deletes()
        if remote_id in ids:
            ids.remove(remote_id)
            self._local_store.set(self._deletes_key, ids)

    def needing_attention(self) -> list[QueueEntry]:
        return [e for e in self._load() if e.needs_attention]

    def _remove(self, local_id: str) -> None:
        self._save([e for e in self._load() if e.local_id != local_id])

    def record_failure(self, local_id: str, error: StoreError) -> QueueEntry | None:
        """Count a failed commit; anything but a connectivity error needs the user."""
        entries = self._load()
        for i, entry in enumerate(entries):
            if entry.local_id == local_id:
                entries[i] = entry.model_copy(
                    update={
                        "attempts": entry.attempts + 1,
                        "last_error": str(error) or type(error).__name__,
                        # Connectivity failures clear up on their own
                        "needs_attention": not isinstance(error, StoreUnavailableError),
                    }
                )
                self._save(entries)
                return entries[i]
        return None

    # ----- drain -----

    async def drain(self, commit: CommitFn, on_committed: CommittedFn | None = None) -> DrainReport:
        """
        Push queued creations to the store in insertion order.

        Args:
            commit: Inserts one prospect remotely, returns the committed entity
            on_committed: Awaited after each entry is removed from the queue

        Returns:
            DrainReport; ``skipped`` is True when another drain was running
        """
        if self._drain_lock.locked():
            logger.debug("Drain already in progress, skipping")
            return DrainReport(skipped=True, remaining=len(self))

        async with self._drain_lock:
            report = DrainReport()
            while True:
                entries = self._load()
                if not entries:
                    break
                head = entries[0]
                try:
                    committed = await commit(head.prospect)
                except StoreError as e:
                    report.failed = self.record_failure(head.local_id, e)
                    log_with_context(
                        logger,
                        logging.WARNING,
                        f"Drain stopped: {e}",
                        local_id=head.local_id,
                        error_type=type(e).__name__,
                        attempts=report.failed.attempts if report.failed else None,
                    )
                    break

                self._remove(head.local_id)
                report.committed.append((head.local_id, committed))
                logger.info(
                    "Committed queued creation",
                    extra={"local_id": head.local_id, "prospect_id": committed.id},
                )
                if on_committed is not None:
                    await on_committed(head.local_id, committed)

            report.remaining = len(self)
            return report
