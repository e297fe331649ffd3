"""Outcome recorder: normalization, ownership, and schema drift handling."""

import sqlite3
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from closepro.core.errors import (
    CallAccessDeniedError,
    CallNotFoundError,
    NothingToUpdateError,
    SchemaDriftError,
)
from closepro.db.enums import CallStatus
from closepro.db.models import SalesCall
from closepro.services import call_service
from closepro.services.call_service import build_outcome_update


@pytest.fixture
def call(db, test_org, test_user) -> SalesCall:
    call = SalesCall(
        organization_id=test_org.id,
        user_id=test_user.id,
        file_name="discovery.mp3",
        status=CallStatus.COMPLETED.value,
        transcript="Speaker A: hello",
    )
    db.add(call)
    db.flush()
    return call


# =============================================================================
# Normalization
# =============================================================================

def test_result_derives_qualified():
    assert build_outcome_update({"result": "closed"}) == {"result": "closed", "qualified": True}
    assert build_outcome_update({"result": "unqualified"}) == {
        "result": "unqualified",
        "qualified": False,
    }


def test_derived_qualified_wins_over_explicit():
    updates = build_outcome_update({"result": "no_show", "qualified": False})
    assert updates["qualified"] is True


def test_explicit_qualified_without_result():
    assert build_outcome_update({"qualified": False}) == {"qualified": False}
    assert build_outcome_update({"qualified": "yes"}) == {}


def test_unknown_result_dropped_other_fields_kept():
    updates = build_outcome_update({"result": "won", "cash_collected": 1500})
    assert updates == {"cash_collected": 1500}


def test_money_rounded_half_up_and_negative_dropped():
    updates = build_outcome_update({"cash_collected": 10.5, "revenue_generated": -1})
    assert updates == {"cash_collected": 11}

    assert build_outcome_update({"revenue_generated": 2.4}) == {"revenue_generated": 2}
    assert build_outcome_update({"cash_collected": float("inf")}) == {}
    assert build_outcome_update({"cash_collected": "100"}) == {}
    assert build_outcome_update({"cash_collected": True}) == {}


def test_money_above_ceiling_dropped():
    assert build_outcome_update({"cash_collected": 10**400}) == {}
    assert build_outcome_update({"revenue_generated": 10**20}) == {}
    assert build_outcome_update({"cash_collected": 1e300}) == {}
    assert build_outcome_update({"commission_rate_pct": 10**400}) == {}

    ceiling = call_service.MAX_MONEY_CENTS
    assert build_outcome_update({"revenue_generated": ceiling}) == {"revenue_generated": ceiling}
    assert build_outcome_update({"revenue_generated": ceiling + 1}) == {}


def test_reason_trimmed_capped_and_cleared():
    long_reason = "  " + "x" * 2500 + "  "
    assert len(build_outcome_update({"reason_for_outcome": long_reason})["reason_for_outcome"]) == 2000
    assert build_outcome_update({"reason_for_outcome": "   "}) == {"reason_for_outcome": None}
    assert build_outcome_update({"reason_for_outcome": 42}) == {}


def test_supplementary_fields():
    updates = build_outcome_update({
        "call_date": "2026-02-03T10:00:00",
        "offer_id": "  offer-1 ",
        "prospect_name": " Dana ",
        "call_type": "follow_up",
        "commission_rate_pct": 12.5,
    })
    assert updates == {
        "call_date": datetime(2026, 2, 3, 10, 0, tzinfo=timezone.utc),
        "offer_id": "offer-1",
        "prospect_name": "Dana",
        "call_type": "follow_up",
        "commission_rate_pct": 13,
    }


def test_supplementary_fields_invalid_values():
    assert build_outcome_update({"call_type": "cold_call"}) == {}
    assert build_outcome_update({"commission_rate_pct": 101}) == {}
    assert build_outcome_update({"commission_rate_pct": None}) == {"commission_rate_pct": None}
    assert build_outcome_update({"call_date": "not a date"}) == {"call_date": None}


# =============================================================================
# update_outcome
# =============================================================================

def test_update_outcome_applies_valid_fields(db, call, test_user):
    updated = call_service.update_outcome(
        db,
        call.id,
        test_user.id,
        {"result": "bogus", "cash_collected": 2500, "reason_for_outcome": " Budget approved "},
    )

    assert updated.result is None
    assert updated.cash_collected == 2500
    assert updated.reason_for_outcome == "Budget approved"


def test_negative_cash_alone_is_nothing_to_update(db, call, test_user):
    with pytest.raises(NothingToUpdateError) as exc_info:
        call_service.update_outcome(db, call.id, test_user.id, {"cash_collected": -5})

    assert exc_info.value.message.startswith("Provide at least one of: result, qualified")
    db.refresh(call)
    assert call.cash_collected is None


def test_update_outcome_stores_large_amount(db, call, test_user):
    # Over the 32-bit integer range
    amount = 5_000_000_000
    updated = call_service.update_outcome(db, call.id, test_user.id, {"revenue_generated": amount})
    assert updated.revenue_generated == amount


def test_update_outcome_oversized_amount_is_nothing_to_update(db, call, test_user):
    with pytest.raises(NothingToUpdateError):
        call_service.update_outcome(db, call.id, test_user.id, {"cash_collected": 10**20})

    db.refresh(call)
    assert call.cash_collected is None


def test_nothing_to_update_issues_no_query(db, test_user, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("database touched")

    monkeypatch.setattr(db, "get", fail)
    monkeypatch.setattr(db, "execute", fail)
    monkeypatch.setattr(db, "commit", fail)

    with pytest.raises(NothingToUpdateError):
        call_service.update_outcome(db, uuid.uuid4(), test_user.id, {"result": "won"})


def test_missing_call(db, test_user):
    with pytest.raises(CallNotFoundError):
        call_service.update_outcome(db, uuid.uuid4(), test_user.id, {"result": "closed"})


def test_only_owner_may_update(db, call, other_rep):
    with pytest.raises(CallAccessDeniedError):
        call_service.update_outcome(db, call.id, other_rep.id, {"result": "closed"})

    db.refresh(call)
    assert call.result is None


def _missing_column_error():
    return OperationalError(
        "UPDATE sales_calls SET offer_id=?",
        {},
        sqlite3.OperationalError("no such column: offer_id"),
    )


def test_missing_column_reported_as_schema_drift(db, call, test_user, monkeypatch):
    def broken_commit():
        raise _missing_column_error()

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(SchemaDriftError) as exc_info:
        call_service.update_outcome(db, call.id, test_user.id, {"offer_id": "offer-1"})

    assert "Run pending migrations" in exc_info.value.message
    assert exc_info.value.status_code == 500


def test_other_database_errors_propagate(db, call, test_user, monkeypatch):
    def broken_commit():
        raise OperationalError("UPDATE", {}, sqlite3.OperationalError("database is locked"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(OperationalError):
        call_service.update_outcome(db, call.id, test_user.id, {"result": "closed"})
