"""Mapping between Prospect entities and scout_prospects rows.

The status and activity tables below are the only place where store tokens
are defined. Reads tolerate tokens written by older schema versions.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import (
    ActivityStatus,
    Evaluation,
    OutreachLog,
    OutreachMethod,
    Prospect,
    ProspectStatus,
    utcnow,
)

logger = get_logger(__name__)

PROSPECTS_TABLE = "scout_prospects"
OUTREACH_LOGS_TABLE = "scout_outreach_logs"

STATUS_TO_ROW: dict[ProspectStatus, str] = {
    ProspectStatus.PROSPECT: "prospect",
    ProspectStatus.LEAD: "lead",
    ProspectStatus.CONTACTED: "contacted",
    ProspectStatus.INTERESTED: "interested",
    ProspectStatus.FINAL_REVIEW: "final_review",
    ProspectStatus.OFFERED: "offered",
    ProspectStatus.PLACED: "placed",
    ProspectStatus.ARCHIVED: "archived",
}
ROW_TO_STATUS: dict[str, ProspectStatus] = {token: status for status, token in STATUS_TO_ROW.items()}

ACTIVITY_TO_ROW: dict[ActivityStatus, str] = {
    ActivityStatus.NONE: "undiscovered",
    ActivityStatus.VIEWED: "signal",
    ActivityStatus.SUBMITTED: "spotlight",
}
ROW_TO_ACTIVITY: dict[str, ActivityStatus] = {
    token: activity for activity, token in ACTIVITY_TO_ROW.items()
}

# Entity field -> row column. Fields not listed (id, outreach_logs,
# pending_sync) never travel in a prospect row.
FIELD_TO_COLUMN: dict[str, str] = {
    "name": "name",
    "position": "position",
    "age": "age",
    "email": "email",
    "phone": "phone",
    "guardian_name": "parent_name",
    "guardian_email": "parent_email",
    "guardian_phone": "parent_phone",
    "club": "club",
    "team_level": "team_level",
    "nationality": "nationality",
    "date_of_birth": "date_of_birth",
    "grad_year": "grad_year",
    "gpa": "gpa",
    "video_link": "video_link",
    "notes": "notes",
    "status": "status",
    "evaluation": "evaluation",
    "interested_program": "interested_program",
    "offered_pathway": "offered_pathway",
    "placed_location": "placed_location",
    "submitted_at": "submitted_at",
    "activity_status": "activity_status",
    "last_active": "last_active",
    "last_contacted_at": "last_contacted_at",
}
LOCAL_ONLY_FIELDS = frozenset({"id", "outreach_logs", "pending_sync"})


def status_to_row(status: ProspectStatus) -> str:
    return STATUS_TO_ROW[status]


def status_from_row(token: str | None) -> ProspectStatus:
    """Stored token to status; unknown or legacy tokens read as Lead."""
    status = ROW_TO_STATUS.get((token or "").strip().lower())
    if status is None:
        logger.debug(f"Unknown stored status {token!r}, reading as Lead")
        return ProspectStatus.LEAD
    return status


def activity_from_row(token: str | None) -> ActivityStatus:
    return ROW_TO_ACTIVITY.get((token or "").strip().lower(), ActivityStatus.NONE)


def _text(value: Any) -> str | None:
    """Blank and missing text both become SQL null, never the string "null"."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def evaluation_to_column(evaluation: Evaluation | None) -> str | None:
    if evaluation is None:
        return None
    return json.dumps(evaluation.model_dump(by_alias=True, mode="json"))


def evaluation_from_column(value: Any) -> Evaluation | None:
    """Decode the evaluation column; anything invalid reads as pending."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Evaluation column is not valid JSON, treating as pending")
            return None
    if not isinstance(value, dict):
        return None
    try:
        return Evaluation.model_validate(value)
    except ValidationError as e:
        logger.warning(f"Evaluation column failed validation, treating as pending: {e.error_count()} errors")
        return None


def _column_value(field: str, value: Any) -> Any:
    if field == "status":
        return status_to_row(ProspectStatus(value))
    if field == "activity_status":
        return ACTIVITY_TO_ROW[ActivityStatus(value)]
    if field == "evaluation":
        return evaluation_to_column(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str) or field in ("name", "position", "notes"):
        return _text(value)
    return value


def to_patch(changes: dict[str, Any]) -> dict[str, Any]:
    """
    Map changed entity fields to a sparse row patch.

    Args:
        changes: {entity_field: new_value}; only these columns are sent

    Raises:
        ValueError: If a field has no column mapping
    """
    patch: dict[str, Any] = {}
    for field, value in changes.items():
        if field in LOCAL_ONLY_FIELDS:
            continue
        column = FIELD_TO_COLUMN.get(field)
        if column is None:
            raise ValueError(f"Field {field!r} has no column mapping")
        patch[column] = _column_value(field, value)
    return patch


def diff_prospects(before: Prospect, after: Prospect) -> dict[str, Any]:
    """Entity fields whose values differ between two versions."""
    return {
        field: getattr(after, field)
        for field in FIELD_TO_COLUMN
        if getattr(before, field) != getattr(after, field)
    }


def to_row(prospect: Prospect, owner_id: str) -> dict[str, Any]:
    """Full insert row for a prospect. The store assigns the id."""
    row = to_patch({field: getattr(prospect, field) for field in FIELD_TO_COLUMN})
    row["scout_id"] = owner_id
    return row


def from_row(row: dict[str, Any], outreach_logs: list[OutreachLog] | None = None) -> Prospect:
    """Build a Prospect from a scout_prospects row."""
    return Prospect(
        id=str(row["id"]),
        name=_text(row.get("name")) or "Unnamed Prospect",
        position=_text(row.get("position")) or "Unknown",
        age=row.get("age") or None,
        email=_text(row.get("email")),
        phone=_text(row.get("phone")),
        guardian_name=_text(row.get("parent_name")),
        guardian_email=_text(row.get("parent_email")),
        guardian_phone=_text(row.get("parent_phone")),
        club=_text(row.get("club")),
        team_level=_text(row.get("team_level")),
        nationality=_text(row.get("nationality")),
        date_of_birth=_text(row.get("date_of_birth")),
        grad_year=_text(row.get("grad_year")),
        gpa=_text(row.get("gpa")),
        video_link=_text(row.get("video_link")),
        notes=_text(row.get("notes")),
        status=status_from_row(row.get("status")),
        evaluation=evaluation_from_column(row.get("evaluation")),
        outreach_logs=outreach_logs or [],
        interested_program=_text(row.get("interested_program")),
        offered_pathway=_text(row.get("offered_pathway")),
        placed_location=_text(row.get("placed_location")),
        submitted_at=row.get("submitted_at") or row.get("created_at") or utcnow(),
        activity_status=activity_from_row(row.get("activity_status")),
        last_active=row.get("last_active") or None,
        last_contacted_at=row.get("last_contacted_at") or None,
    )


def log_from_row(row: dict[str, Any]) -> OutreachLog | None:
    try:
        method = OutreachMethod(row.get("method"))
    except ValueError:
        logger.warning(f"Skipping outreach log {row.get('id')} with unknown method {row.get('method')!r}")
        return None
    return OutreachLog(
        id=str(row["id"]),
        timestamp=row.get("created_at") or utcnow(),
        method=method,
        template_name=row.get("template_name") or "",
        note=_text(row.get("note")),
        message_content=_text(row.get("message_content")),
    )


def log_to_row(log: OutreachLog, prospect_id: str, owner_id: str) -> dict[str, Any]:
    return {
        "prospect_id": prospect_id,
        "scout_id": owner_id,
        "method": log.method.value,
        "template_name": log.template_name,
        "message_content": _text(log.message_content),
        "note": _text(log.note),
        "created_at": log.timestamp.isoformat(),
    }
