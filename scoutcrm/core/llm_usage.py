"""AI usage credit tracking.

Each AI operation costs credits according to the model and work involved.
Daily and monthly budgets are kept in local storage; the daily record resets
on a new day and the monthly record on a new month.
"""

from collections.abc import Callable
from datetime import date
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError

from scoutcrm.core.local_storage import AI_USAGE_KEY, LocalStore
from scoutcrm.core.logging import get_logger

logger = get_logger(__name__)

OPERATION_COSTS: dict[str, int] = {
    "player_evaluation": 5,
    "outreach_message": 2,
    "bulk_import": 2,
    "roster_extraction": 3,
    "player_parse": 1,
}


class UsageRecord(BaseModel):
    period: str
    operations: dict[str, int] = Field(default_factory=dict)
    total_credits: int = 0


class UsageWindow(BaseModel):
    used: int
    limit: int
    remaining: int
    percentage: int


class UsageStats(BaseModel):
    today: UsageWindow
    month: UsageWindow


def _window(used: int, limit: int) -> UsageWindow:
    return UsageWindow(
        used=used,
        limit=limit,
        remaining=max(0, limit - used),
        percentage=min(100, round(used / limit * 100)) if limit else 100,
    )


def _stored_record(value: Any, period: str) -> UsageRecord:
    """The stored record for this period, or a fresh one when it is stale or unreadable."""
    if not isinstance(value, dict) or value.get("period") != period:
        return UsageRecord(period=period)
    try:
        return UsageRecord.model_validate(value)
    except ValidationError as e:
        logger.warning(f"Ignoring unreadable AI usage record for {period}: {e}")
        return UsageRecord(period=period)


class AIUsageTracker:
    def __init__(
        self,
        local_store: LocalStore,
        daily_credits: int = 50,
        monthly_credits: int = 500,
        today: Callable[[], date] = date.today,
    ):
        self._local_store = local_store
        self.daily_credits = daily_credits
        self.monthly_credits = monthly_credits
        self._today = today

    def _load(self) -> tuple[UsageRecord, UsageRecord]:
        day = self._today()
        day_key, month_key = day.isoformat(), day.strftime("%Y-%m")
        stored = self._local_store.get(AI_USAGE_KEY) or {}

        if not isinstance(stored, dict):
            stored = {}
        return _stored_record(stored.get("daily"), day_key), _stored_record(stored.get("monthly"), month_key)

    def stats(self) -> UsageStats:
        daily, monthly = self._load()
        return UsageStats(
            today=_window(daily.total_credits, self.daily_credits),
            month=_window(monthly.total_credits, self.monthly_credits),
        )

    def can_use(self, operation: str) -> bool:
        cost = OPERATION_COSTS.get(operation, 1)
        daily, monthly = self._load()
        return (
            daily.total_credits + cost <= self.daily_credits
            and monthly.total_credits + cost <= self.monthly_credits
        )

    def check(self, operation: str) -> None:
        """
        Raises:
            HTTPException: 429 when the operation would exceed a budget
        """
        if not self.can_use(operation):
            stats = self.stats()
            window = "daily" if stats.today.remaining < OPERATION_COSTS.get(operation, 1) else "monthly"
            logger.warning(f"AI {window} credit budget exhausted for {operation}")
            raise HTTPException(
                status_code=429,
                detail=f"AI {window} credit limit reached. Try again later.",
            )

    def record(self, operation: str) -> UsageStats:
        cost = OPERATION_COSTS.get(operation, 1)
        daily, monthly = self._load()
        for record in (daily, monthly):
            record.operations[operation] = record.operations.get(operation, 0) + 1
            record.total_credits += cost
        self._local_store.set(
            AI_USAGE_KEY,
            {"daily": daily.model_dump(), "monthly": monthly.model_dump()},
        )
        return self.stats()
