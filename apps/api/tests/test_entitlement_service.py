"""Entitlement gate: subscription, quota, and seat decisions."""

import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from closepro.core.errors import OrganizationNotFoundError, QuotaExceededError
from closepro.db.enums import MeteredAction, PlanTier, Role, UsageType
from closepro.services import org_service, usage_service
from closepro.services.entitlement_service import (
    REASON_LIMIT_REACHED,
    REASON_NO_SUBSCRIPTION,
    REASON_NOT_IN_PLAN,
    REASON_ORG_INACTIVE,
    EntitlementGate,
)

gate = EntitlementGate()


def _use(db, org_id, usage_type, times, now=None):
    for _ in range(times):
        usage_service.increment_usage(db, org_id, usage_type, now=now)


def test_no_subscription_denies(db, test_org):
    decision = gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL)

    assert decision.allowed is False
    assert decision.reason == "No active subscription"
    assert decision.reason_code == REASON_NO_SUBSCRIPTION


def test_no_subscription_logs_denial(db, test_org, caplog):
    with caplog.at_level(logging.INFO, logger="closepro.services.entitlement_service"):
        gate.can_perform_action(db, test_org.id, "upload_call")

    record = next(r for r in caplog.records if r.getMessage() == "entitlement denied: no_subscription")
    assert record.org_id == str(test_org.id)
    assert record.action == "upload_call"


def test_bypass_allows_without_subscription(db, test_org):
    decision = EntitlementGate(bypass=True).can_perform_action(
        db, test_org.id, MeteredAction.START_ROLEPLAY
    )
    assert decision.allowed is True


def test_under_limit_allowed_at_limit_denied(db, test_org, subscribe):
    subscribe(PlanTier.STARTER, calls_per_month=3)

    _use(db, test_org.id, UsageType.CALLS, 2)
    assert gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL).allowed

    _use(db, test_org.id, UsageType.CALLS, 1)
    decision = gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL)
    assert decision.allowed is False
    assert decision.reason == "Monthly call limit reached (3)"
    assert decision.reason_code == REASON_LIMIT_REACHED


def test_roleplay_not_in_starter_plan(db, test_org, subscribe):
    subscribe(PlanTier.STARTER)

    decision = gate.can_perform_action(db, test_org.id, MeteredAction.START_ROLEPLAY)
    assert decision.allowed is False
    assert decision.reason == "AI Roleplay not available in your plan. Upgrade to Pro or Enterprise."
    assert decision.reason_code == REASON_NOT_IN_PLAN


def test_roleplay_limit_on_pro(db, test_org, subscribe):
    subscribe(PlanTier.PRO, roleplay_sessions_per_month=1)
    _use(db, test_org.id, UsageType.ROLEPLAY, 1)

    decision = gate.can_perform_action(db, test_org.id, MeteredAction.START_ROLEPLAY)
    assert decision.reason == "Monthly roleplay limit reached (1)"
    # Separate counter: calls are unaffected
    assert gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL).allowed


def test_unlimited_always_allowed(db, test_org, subscribe):
    subscribe(PlanTier.ENTERPRISE)
    _use(db, test_org.id, UsageType.CALLS, 25)

    assert gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL).allowed
    assert gate.can_perform_action(db, test_org.id, MeteredAction.START_ROLEPLAY).allowed


def test_month_rollover_resets_quota(db, test_org, subscribe):
    subscribe(PlanTier.STARTER, calls_per_month=10)
    end_of_march = datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc)
    start_of_april = datetime(2026, 4, 1, 0, 0, 1, tzinfo=timezone.utc)
    _use(db, test_org.id, UsageType.CALLS, 10, now=end_of_march)

    denied = gate.can_perform_action(db, test_org.id, "upload_call", now=end_of_march)
    assert denied.allowed is False

    allowed = gate.can_perform_action(db, test_org.id, "upload_call", now=start_of_april)
    assert allowed.allowed is True
    assert usage_service.get_current_usage(db, test_org.id, now=start_of_april).calls_used == 0


def test_inactive_org_denied(db, test_org, subscribe):
    subscribe(PlanTier.ENTERPRISE)
    test_org.is_active = False
    db.flush()

    decision = gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL)
    assert decision.allowed is False
    assert decision.reason_code == REASON_ORG_INACTIVE


def test_unknown_org_raises(db):
    with pytest.raises(OrganizationNotFoundError):
        gate.can_perform_action(db, uuid.uuid4(), MeteredAction.UPLOAD_CALL)


def test_unknown_action_rejected(db, test_org):
    with pytest.raises(ValueError):
        gate.can_perform_action(db, test_org.id, "export_pdf")


def test_gate_does_not_increment(db, test_org, subscribe):
    subscribe(PlanTier.PRO)
    for _ in range(3):
        gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL)

    assert usage_service.get_current_usage(db, test_org.id).calls_used == 0


def test_raise_if_denied(db, test_org):
    decision = gate.can_perform_action(db, test_org.id, MeteredAction.UPLOAD_CALL)
    with pytest.raises(QuotaExceededError) as exc_info:
        decision.raise_if_denied()

    assert exc_info.value.message == "No active subscription"
    assert exc_info.value.reason_code == REASON_NO_SUBSCRIPTION


# =============================================================================
# Seats
# =============================================================================

def test_seat_cap_from_org_without_subscription(db, test_org, test_user):
    test_org.max_seats = 2
    db.flush()
    assert gate.can_add_seat(db, test_org.id) is True

    org_service.add_member(db, test_org.id, f"second-{uuid.uuid4().hex[:6]}@test.com", "Second")
    assert gate.can_add_seat(db, test_org.id) is False


def test_seat_cap_from_subscription(db, test_org, test_user, subscribe):
    first = subscribe(PlanTier.PRO, seats=1)
    assert gate.can_add_seat(db, test_org.id) is False

    first.created_at = datetime.now(timezone.utc) - timedelta(days=30)
    subscribe(PlanTier.PRO, seats=5)
    assert gate.can_add_seat(db, test_org.id) is True


def test_bypass_can_always_add_seat(db, test_org, test_user, subscribe):
    subscribe(PlanTier.PRO, seats=1)
    assert EntitlementGate(bypass=True).can_add_seat(db, test_org.id) is True


def test_add_member_role(db, test_org):
    membership = org_service.add_member(
        db, test_org.id, "Manager@Test.com", "Manager", role=Role.MANAGER
    )
    assert membership.role == "manager"
    assert membership.user.email == "manager@test.com"
