"""Billing overview - subscription, usage, and seats for the billing page."""

from uuid import UUID

from sqlalchemy.orm import Session

from closepro.core.errors import OrganizationNotFoundError
from closepro.db.enums import UsageType
from closepro.db.models import Organization
from closepro.services import plan_catalog, subscription_service, usage_service
from closepro.services.entitlement_service import EntitlementGate, count_seats
from closepro.types import JsonObject


def get_billing_overview(
    db: Session,
    organization_id: UUID,
    gate: EntitlementGate,
) -> JsonObject:
    """
    Assemble billing data for an organization.

    Reads only; this month's usage is reported as zero when no row exists.

    Raises:
        OrganizationNotFoundError: organization does not exist
    """
    org = db.get(Organization, organization_id)
    if not org:
        raise OrganizationNotFoundError()

    subscription = subscription_service.get_active_subscription(db, organization_id)
    usage = usage_service.get_current_usage(db, organization_id)

    subscription_data = None
    calls_pct = roleplay_pct = 0.0
    if subscription:
        limits = subscription_service.effective_limits(subscription)
        calls_pct = plan_catalog.usage_percentage(
            limits.quota_for(UsageType.CALLS), usage.calls_used
        )
        roleplay_pct = plan_catalog.usage_percentage(
            limits.quota_for(UsageType.ROLEPLAY), usage.roleplay_sessions_used
        )
        subscription_data = {
            "id": subscription.id,
            "plan_tier": subscription.plan_tier,
            "status": subscription.status,
            "seats": subscription.seats,
            "calls_per_month": limits.calls_per_month,
            "roleplay_sessions_per_month": limits.roleplay_sessions_per_month,
            "current_period_end": subscription.current_period_end,
            "cancel_at_period_end": subscription.cancel_at_period_end,
        }

    return {
        "subscription": subscription_data,
        "usage": {
            "month": usage.month,
            "calls_used": usage.calls_used,
            "roleplay_sessions_used": usage.roleplay_sessions_used,
            "calls_percentage": calls_pct,
            "roleplay_percentage": roleplay_pct,
        },
        "organization": {
            "name": org.name,
            "plan_tier": org.plan_tier,
            "max_seats": org.max_seats,
            "current_seats": count_seats(db, organization_id),
            "can_add_seat": gate.can_add_seat(db, organization_id),
        },
    }
