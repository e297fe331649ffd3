"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    Member roles within an organization.

    - REP: Logs and uploads their own calls, runs roleplay sessions
    - MANAGER: Team dashboards and rep insights
    - ADMIN: Billing, seats, org settings
    """
    ADMIN = "admin"
    MANAGER = "manager"
    REP = "rep"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class PlanTier(str, Enum):
    """Subscription plan tiers."""
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """
    Subscription lifecycle status mirrored from the billing provider.

    Only ACTIVE and TRIALING grant entitlements.
    """
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    PAUSED = "paused"

    @classmethod
    def entitled(cls) -> list[str]:
        """Statuses that grant access to metered actions."""
        return [cls.ACTIVE.value, cls.TRIALING.value]


class UsageType(str, Enum):
    """Metered counters tracked per organization per month."""
    CALLS = "calls"
    ROLEPLAY = "roleplay"


class MeteredAction(str, Enum):
    """Actions checked by the entitlement gate."""
    UPLOAD_CALL = "upload_call"
    START_ROLEPLAY = "start_roleplay"

    @property
    def usage_type(self) -> UsageType:
        if self is MeteredAction.UPLOAD_CALL:
            return UsageType.CALLS
        return UsageType.ROLEPLAY


class CallStatus(str, Enum):
    """Processing status of a sales call."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    MANUAL = "manual"  # Outcome logged by hand, no recording


class CallResult(str, Enum):
    """Business outcome of a sales call (closed set)."""
    NO_SHOW = "no_show"
    CLOSED = "closed"
    LOST = "lost"
    UNQUALIFIED = "unqualified"
    DEPOSIT = "deposit"
    FOLLOW_UP = "follow_up"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class CallType(str, Enum):
    """Kind of call the outcome belongs to."""
    CLOSING_CALL = "closing_call"
    FOLLOW_UP = "follow_up"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_ROLE = Role.REP
DEFAULT_PLAN_TIER = PlanTier.STARTER
DEFAULT_SUBSCRIPTION_STATUS = SubscriptionStatus.INCOMPLETE
DEFAULT_CALL_STATUS = CallStatus.PENDING

