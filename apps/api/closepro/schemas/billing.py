"""Billing, subscription, and usage schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from closepro.db.enums import MeteredAction, UsageType


class UsageCheckRequest(BaseModel):
    action: MeteredAction


class UsageCheckResponse(BaseModel):
    allowed: bool
    reason: str | None = None


class UsageTrackRequest(BaseModel):
    type: UsageType


class UsageTrackResponse(BaseModel):
    success: bool


class SubscriptionSummary(BaseModel):
    id: UUID
    plan_tier: str
    status: str
    seats: int
    calls_per_month: int
    roleplay_sessions_per_month: int
    current_period_end: datetime | None
    cancel_at_period_end: bool


class UsageSummary(BaseModel):
    month: str
    calls_used: int
    roleplay_sessions_used: int
    calls_percentage: float
    roleplay_percentage: float


class OrganizationBilling(BaseModel):
    name: str
    plan_tier: str
    max_seats: int
    current_seats: int
    can_add_seat: bool


class BillingResponse(BaseModel):
    """Response schema for GET /billing."""
    subscription: SubscriptionSummary | None
    usage: UsageSummary
    organization: OrganizationBilling


class SubscriptionStatusView(BaseModel):
    plan_tier: str
    status: str


class SubscriptionCheckResponse(BaseModel):
    has_active_subscription: bool
    is_dev_mode: bool
    subscription: SubscriptionStatusView | None
