"""Pydantic schemas for the persisted sign-in session."""

from pydantic import BaseModel, Field

from scoutcrm.core.schemas_pipeline import DrainResponse


class SessionRequest(BaseModel):
    """Tokens handed over by the hosted auth service after sign-in."""

    access_token: str = Field(..., min_length=1, description="Bearer token for store requests")
    refresh_token: str | None = None
    user_id: str | None = None


class SessionResponse(BaseModel):
    signed_in: bool
    drain: DrainResponse | None = None
