"""
Entitlement gate - decides whether an organization may perform a metered action.

The gate is a pure decision: it never increments usage. Callers run the
gated action first and only then call ``usage_service.increment_usage``
so failed attempts are not charged. Database errors propagate (fail
closed); nothing here defaults to "allowed".
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from closepro.core.errors import OrganizationNotFoundError, QuotaExceededError
from closepro.core.structured_logging import build_log_context
from closepro.db.enums import MeteredAction, UsageType
from closepro.db.models import Membership, Organization
from closepro.services import plan_catalog, subscription_service, usage_service

logger = logging.getLogger(__name__)

# Reason codes (stable, machine-readable)
REASON_NO_SUBSCRIPTION = "no_subscription"
REASON_LIMIT_REACHED = "limit_reached"
REASON_NOT_IN_PLAN = "not_in_plan"
REASON_ORG_INACTIVE = "organization_inactive"


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    reason: str | None = None
    reason_code: str | None = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise QuotaExceededError(
                self.reason or "Action not allowed", reason_code=self.reason_code
            )


ALLOWED = EntitlementDecision(allowed=True)


def _limit_reached_message(usage_type: UsageType, limit: int) -> str:
    if usage_type == UsageType.CALLS:
        return f"Monthly call limit reached ({limit})"
    return f"Monthly roleplay limit reached ({limit})"


def _not_in_plan_message(usage_type: UsageType) -> str:
    if usage_type == UsageType.ROLEPLAY:
        return "AI Roleplay not available in your plan. Upgrade to Pro or Enterprise."
    return "Call uploads not available in your plan. Upgrade to continue."


def count_seats(db: Session, organization_id: UUID) -> int:
    """Number of seats in use (one per membership)."""
    return db.execute(
        select(func.count(Membership.id)).where(
            Membership.organization_id == organization_id
        )
    ).scalar_one()


class EntitlementGate:
    """
    Entitlement checks for metered actions and seats.

    ``bypass`` is the operator/dev override; it is decided once from
    configuration and passed in, never read from the environment here.
    """

    def __init__(self, bypass: bool = False):
        self.bypass = bypass

    def can_perform_action(
        self,
        db: Session,
        organization_id: UUID,
        action: MeteredAction | str,
        now: datetime | None = None,
    ) -> EntitlementDecision:
        """
        Decide whether ``action`` is allowed at ``now`` (default: current time).

        Raises:
            OrganizationNotFoundError: organization does not exist
        """
        action = MeteredAction(action)
        if self.bypass:
            return ALLOWED

        org = db.get(Organization, organization_id)
        if not org:
            raise OrganizationNotFoundError()
        if not org.is_active:
            return self._deny(
                organization_id, action, "Organization is not active", REASON_ORG_INACTIVE
            )

        subscription = subscription_service.get_active_subscription(db, organization_id, now)
        if not subscription:
            return self._deny(
                organization_id, action, "No active subscription", REASON_NO_SUBSCRIPTION
            )

        usage_type = action.usage_type
        usage = usage_service.get_current_usage(db, organization_id, now)
        limit = subscription_service.effective_limits(subscription).quota_for(usage_type)

        if limit == plan_catalog.UNLIMITED:
            return ALLOWED
        if limit <= 0:
            return self._deny(
                organization_id, action, _not_in_plan_message(usage_type), REASON_NOT_IN_PLAN
            )
        if not plan_catalog.is_within_limit(limit, usage.used_for(usage_type)):
            return self._deny(
                organization_id,
                action,
                _limit_reached_message(usage_type, limit),
                REASON_LIMIT_REACHED,
            )
        return ALLOWED

    def can_add_seat(self, db: Session, organization_id: UUID) -> bool:
        """
        Check if the organization can add another member.

        Uses the active subscription's seat count, else the organization's
        own max_seats (new orgs before their first subscription).
        """
        if self.bypass:
            return True

        org = db.get(Organization, organization_id)
        if not org:
            raise OrganizationNotFoundError()

        current_seats = count_seats(db, organization_id)
        subscription = subscription_service.get_active_subscription(db, organization_id)
        if subscription:
            return current_seats < subscription.seats
        return current_seats < org.max_seats

    def _deny(
        self,
        organization_id: UUID,
        action: MeteredAction,
        reason: str,
        reason_code: str,
    ) -> EntitlementDecision:
        logger.info(
            "entitlement denied: %s",
            reason_code,
            extra=build_log_context(org_id=str(organization_id), action=action.value),
        )
        return EntitlementDecision(allowed=False, reason=reason, reason_code=reason_code)
