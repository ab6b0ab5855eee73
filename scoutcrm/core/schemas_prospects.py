"""Pydantic schemas for prospects, evaluations and outreach logs."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LOCAL_ID_PREFIX = "local-"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_local_id() -> str:
    """Id for an entity that has not been committed to the store yet."""
    return f"{LOCAL_ID_PREFIX}{uuid4()}"


def is_local_id(prospect_id: str) -> bool:
    return prospect_id.startswith(LOCAL_ID_PREFIX)


# =======================
# Enumerations
# =======================


class ProspectStatus(str, Enum):
    """Pipeline state. Declaration order is pipeline order."""

    PROSPECT = "Prospect"
    LEAD = "Lead"
    CONTACTED = "Contacted"
    INTERESTED = "Interested"
    FINAL_REVIEW = "Final-Review"
    OFFERED = "Offered"
    PLACED = "Placed"
    ARCHIVED = "Archived"


PIPELINE_ORDER: list[ProspectStatus] = list(ProspectStatus)

# User-facing labels, kept apart from the state-machine tokens
STATUS_LABELS: dict[ProspectStatus, str] = {
    ProspectStatus.PROSPECT: "Undiscovered",
    ProspectStatus.LEAD: "Lead",
    ProspectStatus.CONTACTED: "Contacted",
    ProspectStatus.INTERESTED: "Interested",
    ProspectStatus.FINAL_REVIEW: "Final Review",
    ProspectStatus.OFFERED: "Offered",
    ProspectStatus.PLACED: "Placed",
    ProspectStatus.ARCHIVED: "Archived",
}


class ScholarshipTier(str, Enum):
    TIER_1 = "Tier 1"
    TIER_2 = "Tier 2"
    TIER_3 = "Tier 3"


class ActivityStatus(str, Enum):
    """Engagement with a shared assessment link. Only ever advances."""

    NONE = "none"
    VIEWED = "viewed"
    SUBMITTED = "submitted"


ACTIVITY_RANK: dict[ActivityStatus, int] = {
    ActivityStatus.NONE: 0,
    ActivityStatus.VIEWED: 1,
    ActivityStatus.SUBMITTED: 2,
}


class OutreachMethod(str, Enum):
    EMAIL = "Email"
    WHATSAPP = "WhatsApp"
    CLIPBOARD = "Clipboard"


# =======================
# Entity models
# =======================


class Evaluation(BaseModel):
    """Scouting evaluation attached to a prospect.

    Serialized with camelCase keys (``scholarshipTier``, ``nextAction``) which
    is the shape stored in the evaluation JSON column and produced by the AI
    service.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    score: int = Field(..., ge=0, le=100, description="Overall score 0-100")
    college_level: str = Field(default="Unknown", description="Projected college level")
    scholarship_tier: ScholarshipTier = Field(default=ScholarshipTier.TIER_3)
    recommended_pathways: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    next_action: str = Field(default="")
    summary: str = Field(default="")


class OutreachLog(BaseModel):
    """A single outreach attempt. Never modified once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"log-{uuid4()}")
    timestamp: datetime = Field(default_factory=utcnow)
    method: OutreachMethod
    template_name: str
    note: str | None = None
    message_content: str | None = None


class Prospect(BaseModel):
    """The central recruit record tracked through the pipeline.

    Instances are immutable; every change produces a new copy via
    ``model_copy(update=...)`` so a status change is never half-applied.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_local_id)
    name: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    age: int | None = None

    # Contact
    email: str | None = None
    phone: str | None = None
    guardian_name: str | None = None
    guardian_email: str | None = None
    guardian_phone: str | None = None

    # Background
    club: str | None = None
    team_level: str | None = None
    nationality: str | None = None
    date_of_birth: str | None = None
    grad_year: str | None = None
    gpa: str | None = None
    video_link: str | None = None
    notes: str | None = None

    # Pipeline
    status: ProspectStatus = ProspectStatus.LEAD
    evaluation: Evaluation | None = None
    outreach_logs: list[OutreachLog] = Field(default_factory=list)
    interested_program: str | None = None
    offered_pathway: str | None = None
    placed_location: str | None = None

    # Activity
    submitted_at: datetime = Field(default_factory=utcnow)
    activity_status: ActivityStatus = ActivityStatus.NONE
    last_active: datetime | None = None
    last_contacted_at: datetime | None = None

    # Set while the record only exists locally (created offline)
    pending_sync: bool = False


class Notification(BaseModel):
    """User-visible message produced by a pipeline action."""

    kind: str = Field(..., description="promotion | placed | sync_failed | offline | info")
    title: str
    message: str
    prospect_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
