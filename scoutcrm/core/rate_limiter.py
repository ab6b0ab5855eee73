"""Daily bulk-import limit persisted in local storage."""

from collections.abc import Callable
from datetime import date

from fastapi import HTTPException

from scoutcrm.core.local_storage import BULK_LIMIT_KEY, LocalStore
from scoutcrm.core.logging import get_logger

logger = get_logger(__name__)


class BulkImportLimiter:
    """
    Caps how many prospects can be bulk-imported per calendar day.

    Usage is stored as ``{"date": "YYYY-MM-DD", "count": n}``; a stored date
    other than today means the counter starts over.
    """

    def __init__(
        self,
        local_store: LocalStore,
        daily_limit: int = 25,
        today: Callable[[], date] = date.today,
    ):
        self._local_store = local_store
        self.daily_limit = daily_limit
        self._today = today

    def _usage(self) -> dict:
        today = self._today().isoformat()
        usage = self._local_store.get(BULK_LIMIT_KEY)
        if not isinstance(usage, dict) or usage.get("date") != today:
            return {"date": today, "count": 0}
        return {"date": today, "count": int(usage.get("count") or 0)}

    def used(self) -> int:
        return self._usage()["count"]

    def remaining(self) -> int:
        return max(0, self.daily_limit - self.used())

    def check_limit(self) -> int:
        """
        Ensure the day's budget is not exhausted.

        Returns:
            Remaining imports before this request

        Raises:
            HTTPException: 429 if nothing remains today
        """
        remaining = self.remaining()
        if remaining <= 0:
            logger.warning(f"Bulk import limit reached: {self.daily_limit}/day")
            raise HTTPException(
                status_code=429,
                detail=(
                    f"Daily bulk import limit ({self.daily_limit}) reached. "
                    "Please try again tomorrow to ensure quality outreach."
                ),
            )
        return remaining

    def record(self, count: int) -> int:
        """Add imported prospects to today's usage; returns the new total."""
        usage = self._usage()
        usage["count"] += max(0, count)
        self._local_store.set(BULK_LIMIT_KEY, usage)
        return usage["count"]
