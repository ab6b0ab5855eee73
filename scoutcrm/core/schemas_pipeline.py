"""Pydantic schemas for the pipeline, sync and AI endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from scoutcrm.core.schemas_prospects import (
    ActivityStatus,
    Evaluation,
    OutreachMethod,
    Prospect,
    ProspectStatus,
)


class CreateProspectRequest(BaseModel):
    """Manual entry or a single imported candidate."""

    name: str = Field(..., min_length=1)
    position: str = Field(default="Unknown", min_length=1)
    age: int | None = None
    email: str | None = None
    phone: str | None = None
    guardian_name: str | None = None
    guardian_email: str | None = None
    guardian_phone: str | None = None
    club: str | None = None
    team_level: str | None = None
    nationality: str | None = None
    date_of_birth: str | None = None
    grad_year: str | None = None
    gpa: str | None = None
    video_link: str | None = None
    notes: str | None = None
    status: ProspectStatus = ProspectStatus.LEAD
    evaluation: Evaluation | None = None

    def to_prospect(self) -> Prospect:
        return Prospect(**self.model_dump(exclude_none=True))


class StatusChangeRequest(BaseModel):
    # Plain string so an unknown status reaches the policy and fails there
    status: str = Field(..., description="Target status token, e.g. Final-Review")
    extra_data: str | None = Field(default=None, description="Program for Interested, location for Placed")


class StatusChangeResponse(BaseModel):
    prospect: Prospect
    previous_status: ProspectStatus
    changed: bool
    celebrate: bool = False


class NotesRequest(BaseModel):
    notes: str | None = None


class OutreachLogRequest(BaseModel):
    method: OutreachMethod
    template_name: str = Field(..., min_length=1)
    note: str | None = None
    message_content: str | None = None


class AssessmentActivityRequest(BaseModel):
    action: ActivityStatus = Field(..., description="viewed | submitted")


class BoardResponse(BaseModel):
    """Primary pipeline view; shadow prospects are never included."""

    prospects: list[Prospect]
    columns: dict[str, list[Prospect]]
    online: bool
    pending_sync: int


class ConnectivityRequest(BaseModel):
    online: bool


class PendingEntryResponse(BaseModel):
    local_id: str
    name: str
    enqueued_at: datetime
    attempts: int
    last_error: str | None = None
    needs_attention: bool


class DrainResponse(BaseModel):
    committed: dict[str, str] = Field(default_factory=dict, description="local id -> remote id")
    remaining: int
    skipped: bool = False
    failed_local_id: str | None = None
    failed_error: str | None = None


class ConnectivityResponse(BaseModel):
    online: bool
    drain: DrainResponse | None = None


class EvaluateRequest(BaseModel):
    input_data: str = Field(..., min_length=1, description="Player info text or base64 image")
    is_image: bool = False
    mime_type: str = "image/jpeg"
    prospect_id: str | None = Field(default=None, description="Attach the result to this prospect")


class EvaluateResponse(BaseModel):
    evaluation: Evaluation
    fallback: bool
    attached: bool = False


class BulkExtractRequest(BaseModel):
    input_data: str = Field(..., min_length=1)
    is_image: bool = False
    mime_type: str = "image/jpeg"
    import_candidates: bool = Field(default=True, description="Add candidates to the board as shadow prospects")


class BulkExtractResponse(BaseModel):
    candidates: list[Prospect]
    imported: int
    remaining_today: int


class OutreachMessageRequest(BaseModel):
    prospect_id: str
    template: str = "First Spark"
    scout_name: str = "Your Scout"
    assessment_link: str | None = None


class OutreachMessageResponse(BaseModel):
    message: str


class ParseDetailsRequest(BaseModel):
    text: str = Field(..., min_length=1)
