"""
Pipeline board: the in-memory prospect collection and its orchestration.

The board is the single owner of the collection. Every mutation goes
through the status policy first, replaces the entity in memory, dispatches
the policy's notifications/effects, and only then talks to the store with a
sparse patch. Creations made while the store is unreachable go through the
offline queue and are reconciled against their remote id after commit.
"""

import itertools
from collections.abc import Callable
from dataclasses import dataclass

from scoutcrm.core.logging import get_logger
from scoutcrm.core.offline_queue import ConnectivityState, DrainReport, OfflineQueue
from scoutcrm.core.schemas_prospects import (
    ActivityStatus,
    Evaluation,
    Notification,
    OutreachLog,
    OutreachMethod,
    Prospect,
    ProspectStatus,
)
from scoutcrm.core.status_policy import (
    PipelineEffect,
    StatusChange,
    apply_assessment_activity,
    apply_status_change,
)
from scoutcrm.core.visibility import group_by_status, pipeline_view
from scoutcrm.db import prospects as prospects_db
from scoutcrm.db.prospect_rows import diff_prospects, to_patch
from scoutcrm.db.store import StoreClient, StoreError, StoreUnavailableError

logger = get_logger(__name__)

BoardEvent = Notification | PipelineEffect
BoardListener = Callable[[BoardEvent], None]


class ProspectNotFoundError(LookupError):
    """No prospect with the given id is on the board."""


@dataclass(frozen=True)
class EvaluationTicket:
    """Issued when an AI evaluation starts; only the latest ticket may apply."""

    prospect_id: str
    serial: int


class ProspectBoard:
    def __init__(
        self,
        store: StoreClient,
        queue: OfflineQueue,
        owner_id: str,
        listener: BoardListener | None = None,
        online: bool = True,
    ):
        self._store = store
        self._queue = queue
        self.owner_id = owner_id
        self._listener = listener
        self._connectivity = ConnectivityState(online)

        self._prospects: list[Prospect] = []
        self._notifications: list[Notification] = []
        # local id -> remote id, for callers still holding a pre-commit id
        self._aliases: dict[str, str] = {}
        self._tickets: dict[str, int] = {}
        # Pending creations the user deleted; a late commit is removed remotely
        self._deleted_pending: set[str] = set()
        self._serials = itertools.count(1)

    # ----- state -----

    @property
    def online(self) -> bool:
        return self._connectivity.online

    @property
    def queue(self) -> OfflineQueue:
        return self._queue

    @property
    def prospects(self) -> list[Prospect]:
        return list(self._prospects)

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    def clear_notifications(self) -> None:
        self._notifications.clear()

    def _resolve(self, prospect_id: str) -> str:
        return self._aliases.get(prospect_id, prospect_id)

    def _index(self, prospect_id: str) -> int | None:
        target = self._resolve(prospect_id)
        for i, prospect in enumerate(self._prospects):
            if prospect.id == target:
                return i
        return None

    def find(self, prospect_id: str) -> Prospect | None:
        index = self._index(prospect_id)
        return None if index is None else self._prospects[index]

    def get(self, prospect_id: str) -> Prospect:
        """
        Raises:
            ProspectNotFoundError: If the id (or its pre-commit alias) is unknown
        """
        prospect = self.find(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect not found: {prospect_id}")
        return prospect

    def _replace(self, prospect: Prospect, old_id: str | None = None) -> None:
        index = self._index(old_id or prospect.id)
        if index is None:
            self._prospects.insert(0, prospect)
        else:
            self._prospects[index] = prospect

    # ----- events -----

    def _emit(self, event: BoardEvent) -> None:
        if isinstance(event, Notification):
            self._notifications.append(event)
        if self._listener is not None:
            self._listener(event)

    def _dispatch(self, change: StatusChange) -> None:
        for effect in change.effects:
            self._emit(effect)
        for notification in change.notifications:
            self._emit(notification)

    def _sync_failed(self, prospect: Prospect | None, error: StoreError | str, action: str = "saved") -> None:
        name = prospect.name if prospect else "A prospect"
        self._emit(
            Notification(
                kind="sync_failed",
                title="Sync Failed",
                message=f"{name} could not be {action}: {error}",
                prospect_id=prospect.id if prospect else None,
            )
        )

    def _went_offline(self) -> None:
        if self._connectivity.update(False) == "offline":
            logger.warning("Store unreachable, switching to offline mode")
            self._notify_offline()

    def _notify_offline(self) -> None:
        self._emit(
            Notification(
                kind="offline",
                title="Offline",
                message="You are offline. New prospects are saved locally and will sync when you reconnect.",
            )
        )

    # ----- loading and creation -----

    async def load(self) -> list[Prospect]:
        """
        Replace the collection with the owner's prospects from the store.

        Entries still waiting in the offline queue are kept in front. When
        the store is unreachable the board goes offline and shows what it has.
        """
        pending = [entry.prospect for entry in reversed(self._queue.entries())]
        try:
            remote = await prospects_db.list_prospects(self._store, self.owner_id)
        except StoreUnavailableError as e:
            logger.warning(f"Could not load prospects: {e}")
            self._went_offline()
            committed = [p for p in self._prospects if not p.pending_sync]
            self._prospects = pending + committed
            return self.prospects

        owed = set(self._queue.pending_deletes())
        self._prospects = pending + [p for p in remote if p.id not in owed]
        logger.info(
            f"Loaded {len(remote)} prospects ({len(pending)} pending sync)",
            extra={"owner_id": self.owner_id},
        )
        return self.prospects

    async def add_prospect(self, prospect: Prospect) -> Prospect:
        """
        Create a prospect.

        Offline, or while older creations are still queued, the prospect is
        queued and shown immediately as pending. Otherwise it is inserted
        directly; if the store turns out to be unreachable it is queued.

        Returns:
            The committed prospect, or the pending copy with a local id
        """
        if not self.online:
            return self._queue_creation(prospect)

        if len(self._queue):
            # Older creations must commit first
            pending = self._queue_creation(prospect)
            await self.drain()
            return self.find(pending.id) or pending

        try:
            committed = await prospects_db.create_prospect(self._store, prospect, self.owner_id)
        except StoreUnavailableError:
            self._went_offline()
            return self._queue_creation(prospect)
        except StoreError as e:
            entry = self._queue.enqueue(prospect)
            self._queue.record_failure(entry.local_id, e)
            self._replace(entry.prospect)
            self._sync_failed(entry.prospect, e)
            return entry.prospect

        self._prospects.insert(0, committed)
        if prospect.outreach_logs:
            try:
                await self._push_logs(committed.id, prospect.outreach_logs)
            except StoreError as e:
                logger.warning(f"Outreach logs not saved: {e}", extra={"prospect_id": committed.id})
                self._sync_failed(committed, e)
        return self.find(committed.id) or committed

    def _queue_creation(self, prospect: Prospect) -> Prospect:
        entry = self._queue.enqueue(prospect)
        self._prospects.insert(0, entry.prospect)
        return entry.prospect

    # ----- offline queue -----

    async def set_online(self, online: bool) -> DrainReport | None:
        """
        Report a connectivity signal.

        Only a real transition does anything: going offline notifies, coming
        back online starts a drain.
        """
        transition = self._connectivity.update(online)
        if transition == "offline":
            self._notify_offline()
        elif transition == "online":
            logger.info("Back online, draining offline queue")
            return await self.drain()
        return None

    async def drain(self) -> DrainReport:
        """Send owed deletes, then push queued creations, reconciling each commit."""
        await self._retry_deletes()
        report = await self._queue.drain(self._commit, self._reconcile)
        failed = report.failed
        if failed is not None:
            if failed.needs_attention:
                self._sync_failed(self.find(failed.local_id) or failed.prospect, failed.last_error or "")
            else:
                self._went_offline()
        return report

    async def _commit(self, prospect: Prospect) -> Prospect:
        return await prospects_db.create_prospect(self._store, prospect, self.owner_id)

    async def _reconcile(self, local_id: str, committed: Prospect) -> None:
        if local_id in self._deleted_pending:
            self._deleted_pending.discard(local_id)
            logger.info("Removing prospect deleted before commit", extra={"local_id": local_id})
            await self._remove_remote(committed.id, committed)
            return

        local = self.find(local_id)
        if local is None:
            # Not loaded on this board; show the committed copy
            self._aliases[local_id] = committed.id
            self._prospects.insert(0, committed)
            return

        current = local.model_copy(update={"id": committed.id, "pending_sync": False})
        self._replace(current, old_id=local_id)
        self._aliases[local_id] = committed.id
        if local_id in self._tickets:
            self._tickets[committed.id] = self._tickets.pop(local_id)

        # Edits made after the queued payload was taken
        patch = to_patch(diff_prospects(committed, current))
        try:
            await prospects_db.update_prospect(self._store, committed.id, patch)
            await self._push_logs(committed.id, local.outreach_logs)
        except StoreError as e:
            logger.warning(f"Reconciliation patch failed: {e}", extra={"prospect_id": committed.id})
            self._sync_failed(current, e)

    async def _remove_remote(self, remote_id: str, prospect: Prospect | None = None) -> bool:
        """Delete a committed row; on failure the id is kept for the next drain."""
        try:
            await prospects_db.delete_prospect(self._store, remote_id)
        except StoreUnavailableError as e:
            logger.warning(f"Delete not sent, store unreachable: {e}", extra={"prospect_id": remote_id})
            self._queue.remember_delete(remote_id)
            self._went_offline()
            return False
        except StoreError as e:
            logger.warning(f"Delete rejected: {e}", extra={"prospect_id": remote_id})
            self._queue.remember_delete(remote_id)
            self._sync_failed(prospect, e, action="deleted")
            return False
        self._queue.forget_delete(remote_id)
        return True

    async def _retry_deletes(self) -> None:
        for remote_id in self._queue.pending_deletes():
            if not await self._remove_remote(remote_id):
                break

    async def _push_logs(self, prospect_id: str, logs: list[OutreachLog]) -> None:
        # Stored newest first; insert oldest first
        stored: dict[str, OutreachLog] = {}
        for log in reversed(logs):
            stored[log.id] = await prospects_db.insert_outreach_log(
                self._store, prospect_id, self.owner_id, log
            )
        self._swap_logs(prospect_id, stored)

    def _swap_logs(self, prospect_id: str, stored: dict[str, OutreachLog]) -> None:
        # Local log copies take the ids the store assigned
        current = self.find(prospect_id)
        if current is None or not stored:
            return
        logs = [stored.get(log.id, log) for log in current.outreach_logs]
        self._replace(current.model_copy(update={"outreach_logs": logs}))

    def _forget_pending(self, local_id: str) -> None:
        # Its insert may already be in flight
        if self._queue.draining:
            self._deleted_pending.add(local_id)

    def discard_pending(self, local_id: str) -> bool:
        """Drop a queued creation and its optimistic copy."""
        discarded = self._queue.discard(local_id)
        if discarded:
            self._forget_pending(local_id)
            self._prospects = [p for p in self._prospects if p.id != local_id]
        return discarded

    # ----- mutations -----

    async def _persist(self, before: Prospect, after: Prospect) -> None:
        if after.pending_sync:
            self._queue.update_pending(after)
            return
        try:
            await prospects_db.update_prospect(self._store, after.id, to_patch(diff_prospects(before, after)))
        except StoreUnavailableError as e:
            logger.warning(f"Update not saved, store unreachable: {e}", extra={"prospect_id": after.id})
            self._went_offline()
        except StoreError as e:
            logger.warning(f"Update rejected: {e}", extra={"prospect_id": after.id})
            self._sync_failed(after, e)

    async def change_status(
        self,
        prospect_id: str,
        new_status: ProspectStatus | str,
        extra_data: str | None = None,
    ) -> StatusChange:
        """
        Move a prospect to a new status and persist the changed columns.

        Raises:
            ProspectNotFoundError: If the prospect is unknown
            InvalidStatusError: If new_status is not a status (nothing changes)
        """
        current = self.get(prospect_id)
        change = apply_status_change(current, new_status, extra_data)
        if not change.changed:
            return change

        self._replace(change.prospect)
        self._dispatch(change)
        await self._persist(current, change.prospect)
        return change

    async def record_assessment_activity(
        self,
        prospect_id: str,
        action: ActivityStatus | str,
    ) -> StatusChange:
        """Apply an assessment-link event (viewed/submitted) to a prospect."""
        current = self.get(prospect_id)
        change = apply_assessment_activity(current, action)
        self._replace(change.prospect)
        self._dispatch(change)
        await self._persist(current, change.prospect)
        return change

    async def update_notes(self, prospect_id: str, notes: str | None) -> Prospect:
        current = self.get(prospect_id)
        updated = current.model_copy(update={"notes": notes})
        self._replace(updated)
        await self._persist(current, updated)
        return updated

    def begin_evaluation(self, prospect_id: str) -> EvaluationTicket:
        prospect = self.get(prospect_id)
        ticket = EvaluationTicket(prospect_id=prospect.id, serial=next(self._serials))
        self._tickets[prospect.id] = ticket.serial
        return ticket

    async def attach_evaluation(self, ticket: EvaluationTicket, evaluation: Evaluation) -> bool:
        """
        Apply an evaluation result if it is still relevant.

        Returns:
            False when the prospect is gone or a newer evaluation was started
        """
        prospect_id = self._resolve(ticket.prospect_id)
        current = self.find(prospect_id)
        if current is None or self._tickets.get(prospect_id) != ticket.serial:
            logger.info("Discarding stale evaluation result", extra={"prospect_id": prospect_id})
            return False

        del self._tickets[prospect_id]
        updated = current.model_copy(update={"evaluation": evaluation})
        self._replace(updated)
        await self._persist(current, updated)
        return True

    async def log_outreach(
        self,
        prospect_id: str,
        method: OutreachMethod | str,
        template_name: str,
        note: str | None = None,
        message_content: str | None = None,
    ) -> OutreachLog:
        """Record an outreach attempt; logs are kept newest first."""
        current = self.get(prospect_id)
        log = OutreachLog(
            method=OutreachMethod(method),
            template_name=template_name,
            note=note,
            message_content=message_content,
        )
        updated = current.model_copy(
            update={
                "outreach_logs": [log, *current.outreach_logs],
                "last_contacted_at": log.timestamp,
            }
        )
        self._replace(updated)

        if updated.pending_sync:
            self._queue.update_pending(updated)
            return log
        try:
            stored = await prospects_db.insert_outreach_log(self._store, updated.id, self.owner_id, log)
        except StoreError as e:
            logger.warning(f"Outreach log not saved: {e}", extra={"prospect_id": updated.id})
            self._sync_failed(updated, e)
            return log
        self._swap_logs(updated.id, {log.id: stored})
        return stored

    async def delete_prospect(self, prospect_id: str) -> None:
        """
        Remove a prospect.

        A pending prospect is dropped from the queue; a committed one is
        deleted remotely first, so a failed delete leaves it on the board.
        """
        current = self.get(prospect_id)
        if current.pending_sync:
            self._queue.discard(current.id)
            self._forget_pending(current.id)
        else:
            await prospects_db.delete_prospect(self._store, current.id)
        self._prospects = [p for p in self._prospects if p.id != current.id]
        self._tickets.pop(current.id, None)

    # ----- views -----

    def pipeline_view(self) -> list[Prospect]:
        return pipeline_view(self._prospects)

    def columns(self) -> dict[ProspectStatus, list[Prospect]]:
        return group_by_status(self._prospects)

    def outreach_view(self) -> list[Prospect]:
        """Every prospect, shadow ones included, for outreach and import review."""
        return list(self._prospects)

