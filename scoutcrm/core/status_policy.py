"""
Status transition policy for prospects.

Validates status changes, applies the field updates that go with a
transition and reports the side effects (celebration, notifications) the
caller must dispatch. Side effects are produced together with the new
entity, never separately, so they cannot be reordered relative to the
mutation.

Shadow promotion: an external assessment-link ``submitted`` event moves a
prospect sitting in Prospect or Lead straight to Interested. Nothing ever
moves a prospect back into the shadow state automatically.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import (
    ACTIVITY_RANK,
    ActivityStatus,
    Notification,
    Prospect,
    ProspectStatus,
    STATUS_LABELS,
    utcnow,
)

logger = get_logger(__name__)

PROMOTION_SENTINEL = "Assessment received - pending review"

# Statuses that an assessment submission promotes to Interested
PROMOTABLE_STATUSES = frozenset({ProspectStatus.PROSPECT, ProspectStatus.LEAD})


class InvalidStatusError(ValueError):
    """Raised when a status value is not a member of ProspectStatus."""


class InvalidActivityError(ValueError):
    """Raised when an assessment activity is neither viewed nor submitted."""


class PipelineEffect(str, Enum):
    CELEBRATION = "celebration"


@dataclass
class StatusChange:
    """Outcome of a policy call: the new entity plus effects to dispatch once."""

    prospect: Prospect
    previous_status: ProspectStatus
    changed: bool = False
    effects: list[PipelineEffect] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)

    @property
    def celebrate(self) -> bool:
        return PipelineEffect.CELEBRATION in self.effects


def coerce_status(value: ProspectStatus | str) -> ProspectStatus:
    """
    Resolve a status token, enum member name or display label.

    Raises:
        InvalidStatusError: If the value names no status
    """
    if isinstance(value, ProspectStatus):
        return value
    if isinstance(value, str):
        text = value.strip()
        for status in ProspectStatus:
            if text in (status.value, status.name, STATUS_LABELS[status]):
                return status
    raise InvalidStatusError(f"Invalid status: {value!r}")


def apply_status_change(
    prospect: Prospect,
    new_status: ProspectStatus | str,
    extra_data: str | None = None,
) -> StatusChange:
    """
    Move a prospect to a new status.

    Args:
        prospect: Current entity
        new_status: Target status (validated before anything changes)
        extra_data: Program name for Interested, location for Placed

    Returns:
        StatusChange; on a no-op (same status) the entity is returned untouched
        and no effects are reported

    Raises:
        InvalidStatusError: If new_status is not a valid status
    """
    target = coerce_status(new_status)
    previous = prospect.status

    if target == previous:
        return StatusChange(prospect=prospect, previous_status=previous)

    updates: dict = {"status": target}
    detail = extra_data.strip() if extra_data else None
    if detail and target == ProspectStatus.INTERESTED:
        updates["interested_program"] = detail
    elif detail and target == ProspectStatus.PLACED:
        updates["placed_location"] = detail

    result = StatusChange(
        prospect=prospect.model_copy(update=updates),
        previous_status=previous,
        changed=True,
    )

    if target == ProspectStatus.PLACED:
        result.effects.append(PipelineEffect.CELEBRATION)
        where = f" ({detail})" if detail else ""
        result.notifications.append(
            Notification(
                kind="placed",
                title="Player Placed",
                message=f"{prospect.name} has been placed{where}.",
                prospect_id=prospect.id,
            )
        )

    logger.info(
        f"Status change {previous.value} -> {target.value}",
        extra={"prospect_id": prospect.id},
    )
    return result


def apply_assessment_activity(
    prospect: Prospect,
    action: ActivityStatus | str,
    now: datetime | None = None,
) -> StatusChange:
    """
    Apply an assessment-link engagement event.

    ``viewed`` only records engagement. ``submitted`` additionally promotes a
    Prospect/Lead to Interested with the pending-review sentinel program.
    Activity status never regresses; repeated events never re-notify.

    Raises:
        InvalidActivityError: If action is not viewed or submitted
    """
    try:
        activity = ActivityStatus(action)
    except ValueError:
        raise InvalidActivityError(f"Invalid assessment action: {action!r}") from None
    if activity == ActivityStatus.NONE:
        raise InvalidActivityError("Assessment action must be viewed or submitted")

    now = now or utcnow()
    current = prospect.activity_status
    if ACTIVITY_RANK[activity] > ACTIVITY_RANK[current]:
        current = activity

    updates: dict = {"activity_status": current, "last_active": now}
    previous = prospect.status
    notifications: list[Notification] = []
    changed = False

    if activity == ActivityStatus.SUBMITTED and previous in PROMOTABLE_STATUSES:
        updates["status"] = ProspectStatus.INTERESTED
        updates["interested_program"] = PROMOTION_SENTINEL
        changed = True
        notifications.append(
            Notification(
                kind="promotion",
                title="Assessment Received",
                message=(
                    f"{prospect.name} completed the assessment and moved from "
                    f"{previous.value} to {ProspectStatus.INTERESTED.value}."
                ),
                prospect_id=prospect.id,
            )
        )
        logger.info(
            f"Promoted {previous.value} -> {ProspectStatus.INTERESTED.value} on assessment submit",
            extra={"prospect_id": prospect.id},
        )

    return StatusChange(
        prospect=prospect.model_copy(update=updates),
        previous_status=previous,
        changed=changed,
        notifications=notifications,
    )


def active_detail(prospect: Prospect) -> str | None:
    """The status detail that is meaningful for the current status, if any.

    interested_program / placed_location are kept when a prospect moves on
    but are stale outside their own status.
    """
    if prospect.status == ProspectStatus.INTERESTED:
        return prospect.interested_program
    if prospect.status == ProspectStatus.PLACED:
        return prospect.placed_location
    return None
