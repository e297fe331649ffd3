"""Sales call schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OutcomeUpdate(BaseModel):
    """
    PATCH /calls/{id}/outcome body.

    Fields are deliberately untyped: bad values are dropped by the
    outcome recorder instead of failing the whole request. Accepts
    snake_case or camelCase keys.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    result: Any = None
    qualified: Any = None
    cash_collected: Any = None
    revenue_generated: Any = None
    reason_for_outcome: Any = None
    call_date: Any = None
    offer_id: Any = None
    prospect_name: Any = None
    call_type: Any = None
    commission_rate_pct: Any = None

    def to_patch(self) -> dict[str, Any]:
        """Only the keys the client actually sent (explicit nulls included)."""
        return self.model_dump(exclude_unset=True)


class OutcomeUpdateResponse(BaseModel):
    ok: bool


class ManualCallCreate(OutcomeUpdate):
    """POST /calls/manual body. Same keys as an outcome edit; required fields are checked by the service."""


class ManualCallCreated(BaseModel):
    call_id: UUID
    status: str
    message: str = "Call logged successfully (figures updated)"


class TranscriptCallCreate(BaseModel):
    transcript: str = Field(..., max_length=500_000)
    file_name: str | None = Field(None, max_length=500)


class TranscriptCallCreated(BaseModel):
    call_id: UUID
    status: str
    message: str = "Transcript saved. Analysis pending."


class AnalysisQueuedResponse(BaseModel):
    call_id: UUID
    status: str


class CallAnalysisRead(BaseModel):
    overall_score: int | None
    value_score: int | None
    trust_score: int | None
    fit_score: int | None
    logistics_score: int | None
    skill_scores: str | None
    coaching_recommendations: str | None
    timestamped_feedback: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CallRead(BaseModel):
    id: UUID
    organization_id: UUID
    user_id: UUID
    file_name: str
    status: str
    transcript: str | None
    result: str | None
    qualified: bool | None
    cash_collected: int | None
    revenue_generated: int | None
    reason_for_outcome: str | None
    call_date: datetime | None
    offer_id: str | None
    prospect_name: str | None
    call_type: str | None
    commission_rate_pct: int | None
    created_at: datetime
    completed_at: datetime | None
    analysis: CallAnalysisRead | None = None

    model_config = {"from_attributes": True}
