"""Pydantic schemas for API request/response models."""

from closepro.schemas.auth import TokenPayload, UserSession
from closepro.schemas.billing import (
    BillingResponse,
    SubscriptionCheckResponse,
    UsageCheckRequest,
    UsageCheckResponse,
    UsageTrackRequest,
    UsageTrackResponse,
)
from closepro.schemas.call import (
    AnalysisQueuedResponse,
    CallAnalysisRead,
    CallRead,
    ManualCallCreate,
    ManualCallCreated,
    OutcomeUpdate,
    OutcomeUpdateResponse,
    TranscriptCallCreate,
    TranscriptCallCreated,
)

__all__ = [
    # Auth
    "TokenPayload",
    "UserSession",
    # Billing & usage
    "BillingResponse",
    "SubscriptionCheckResponse",
    "UsageCheckRequest",
    "UsageCheckResponse",
    "UsageTrackRequest",
    "UsageTrackResponse",
    # Calls
    "AnalysisQueuedResponse",
    "CallAnalysisRead",
    "CallRead",
    "ManualCallCreate",
    "ManualCallCreated",
    "OutcomeUpdate",
    "OutcomeUpdateResponse",
    "TranscriptCallCreate",
    "TranscriptCallCreated",
]
