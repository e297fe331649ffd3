"""Subscription resolver - finds an organization's entitling subscription."""

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from closepro.db.enums import PlanTier, SubscriptionStatus, UsageType
from closepro.db.models import Organization, Subscription
from closepro.services import plan_catalog
from closepro.types import JsonObject


@dataclass(frozen=True)
class EffectiveLimits:
    """Quotas after merging subscription overrides over catalog defaults."""

    seats: int
    calls_per_month: int
    roleplay_sessions_per_month: int

    def quota_for(self, usage_type: UsageType) -> int:
        if usage_type == UsageType.CALLS:
            return self.calls_per_month
        return self.roleplay_sessions_per_month


def get_active_subscription(
    db: Session,
    organization_id: UUID,
    now: datetime | None = None,
) -> Subscription | None:
    """
    Get the subscription that currently entitles an organization.

    Status must be active or trialing and the current period (when tracked)
    must not have ended. Newest row wins if several qualify. None means
    "no paid entitlement", never unlimited.
    """
    now = now or datetime.now(timezone.utc)
    return db.execute(
        select(Subscription)
        .where(
            Subscription.organization_id == organization_id,
            Subscription.status.in_(SubscriptionStatus.entitled()),
            or_(
                Subscription.current_period_end.is_(None),
                Subscription.current_period_end > now,
            ),
        )
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def effective_limits(subscription: Subscription) -> EffectiveLimits:
    """Subscription-level quotas take precedence; NULL falls back to the plan tier."""
    plan = plan_catalog.get_plan(subscription.plan_tier)
    calls = subscription.calls_per_month
    roleplay = subscription.roleplay_sessions_per_month
    return EffectiveLimits(
        seats=subscription.seats,
        calls_per_month=plan.calls_per_month if calls is None else calls,
        roleplay_sessions_per_month=(
            plan.roleplay_sessions_per_month if roleplay is None else roleplay
        ),
    )


def get_subscription_status(
    db: Session,
    organization_id: UUID,
    bypass: bool = False,
) -> JsonObject:
    """Subscription status for UI display (paywalls, upgrade banners)."""
    if bypass:
        return {
            "has_active_subscription": True,
            "is_dev_mode": True,
            "subscription": {
                "plan_tier": PlanTier.ENTERPRISE.value,
                "status": SubscriptionStatus.ACTIVE.value,
            },
        }

    subscription = get_active_subscription(db, organization_id)
    return {
        "has_active_subscription": subscription is not None,
        "is_dev_mode": False,
        "subscription": {
            "plan_tier": subscription.plan_tier,
            "status": subscription.status,
        } if subscription else None,
    }


def create_subscription(
    db: Session,
    organization_id: UUID,
    plan_tier: str | PlanTier,
    status: str | SubscriptionStatus = SubscriptionStatus.ACTIVE,
    seats: int | None = None,
    calls_per_month: int | None = None,
    roleplay_sessions_per_month: int | None = None,
    current_period_end: datetime | None = None,
    provider_subscription_id: str | None = None,
    provider_plan_id: str | None = None,
) -> Subscription:
    """
    Record a subscription for an organization.

    Seats default to the plan's max_seats; quotas left as None follow the
    plan catalog. The organization's plan_tier and max_seats are kept in
    sync so seat checks work the same before and after a subscription.
    """
    plan = plan_catalog.get_plan(plan_tier)
    subscription = Subscription(
        organization_id=organization_id,
        plan_tier=plan.tier.value,
        status=SubscriptionStatus(status).value,
        seats=plan.max_seats if seats is None else seats,
        calls_per_month=calls_per_month,
        roleplay_sessions_per_month=roleplay_sessions_per_month,
        current_period_start=datetime.now(timezone.utc),
        current_period_end=current_period_end,
        provider_subscription_id=provider_subscription_id,
        provider_plan_id=provider_plan_id,
    )
    db.add(subscription)

    org = db.get(Organization, organization_id)
    if org:
        org.plan_tier = plan.tier.value
        org.max_seats = subscription.seats

    db.flush()
    return subscription
