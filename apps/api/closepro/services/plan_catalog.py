"""Plan catalog - static plan tiers with seat and quota limits."""

from dataclasses import dataclass, field
from types import MappingProxyType

from closepro.core.config import settings
from closepro.db.enums import PlanTier, UsageType

# Quota sentinel for "no limit"
UNLIMITED = -1

FEATURES = (
    "ai_analysis",
    "manager_dashboard",
    "ai_roleplay",
    "priority_support",
    "custom_integrations",
)


class UnknownPlanError(KeyError):
    """Plan tier is not in the catalog."""


@dataclass(frozen=True)
class Plan:
    name: str
    tier: PlanTier
    price_usd: int  # 0 = custom pricing
    max_seats: int
    calls_per_month: int
    roleplay_sessions_per_month: int
    features: frozenset[str] = field(default_factory=frozenset)

    def quota_for(self, usage_type: UsageType) -> int:
        if usage_type == UsageType.CALLS:
            return self.calls_per_month
        return self.roleplay_sessions_per_month


PLANS: MappingProxyType[PlanTier, Plan] = MappingProxyType({
    PlanTier.STARTER: Plan(
        name="Starter",
        tier=PlanTier.STARTER,
        price_usd=99,
        max_seats=5,
        calls_per_month=50,
        roleplay_sessions_per_month=0,
        features=frozenset({"ai_analysis", "manager_dashboard"}),
    ),
    PlanTier.PRO: Plan(
        name="Pro",
        tier=PlanTier.PRO,
        price_usd=399,
        max_seats=20,
        calls_per_month=200,
        roleplay_sessions_per_month=50,
        features=frozenset({
            "ai_analysis", "manager_dashboard", "ai_roleplay", "priority_support",
        }),
    ),
    PlanTier.ENTERPRISE: Plan(
        name="Enterprise",
        tier=PlanTier.ENTERPRISE,
        price_usd=0,
        max_seats=999,
        calls_per_month=UNLIMITED,
        roleplay_sessions_per_month=UNLIMITED,
        features=frozenset(FEATURES),
    ),
})


def get_plan(tier: str | PlanTier) -> Plan:
    """Get plan configuration by tier."""
    try:
        return PLANS[PlanTier(tier)]
    except ValueError:
        raise UnknownPlanError(tier) from None


def has_feature(tier: str | PlanTier, feature: str) -> bool:
    """Check if a feature is available for a plan tier."""
    return feature in get_plan(tier).features


def tier_for_provider_plan(provider_plan_id: str) -> PlanTier | None:
    """Map a billing-provider plan id (from PROVIDER_PLAN_IDS) back to a tier."""
    for tier, plan_id in settings.provider_plan_ids.items():
        if plan_id == provider_plan_id and tier in PlanTier._value2member_map_:
            return PlanTier(tier)
    return None


def is_within_limit(limit: int, used: int) -> bool:
    """
    Check whether one more action fits under ``limit``.

    UNLIMITED always fits; zero or any other negative limit never does.
    """
    if limit == UNLIMITED:
        return True
    if limit <= 0:
        return False
    return used < limit


def usage_percentage(limit: int, used: int) -> float:
    """Usage as a percentage of the limit for display (0 for unlimited, capped at 100)."""
    if limit == UNLIMITED:
        return 0.0
    if limit <= 0:
        return 100.0 if used > 0 else 0.0
    return min(used / limit * 100, 100.0)
