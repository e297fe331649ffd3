"""Call service - call intake, outcome recording, and analysis bookkeeping."""

import json
import logging
import math
import re
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from closepro.core.errors import (
    CallAccessDeniedError,
    CallNotAnalyzableError,
    CallNotFoundError,
    NothingToUpdateError,
    SchemaDriftError,
    ValidationError,
)
from closepro.core.structured_logging import build_log_context
from closepro.db.enums import CallResult, CallStatus, CallType, MeteredAction, UsageType
from closepro.db.models import CallAnalysis, SalesCall
from closepro.services import usage_service
from closepro.services.entitlement_service import EntitlementGate
from closepro.types import JsonObject, RawPatch

logger = logging.getLogger(__name__)

REASON_MAX_LENGTH = 2000
# Upper bound for money figures (ten billion, in cents)
MAX_MONEY_CENTS = 1_000_000_000_000
PROSPECT_NAME_MAX_LENGTH = 500
DEFAULT_TRANSCRIPT_FILE_NAME = "pasted-transcript.txt"
MANUAL_CALL_FILE_NAME = "manual"
MANUAL_CALL_REQUIRED_FIELDS = ("offer_id", "result", "reason_for_outcome")

OUTCOME_FIELDS = (
    "result",
    "qualified",
    "cash_collected",
    "revenue_generated",
    "reason_for_outcome",
    "call_date",
    "offer_id",
    "prospect_name",
    "call_type",
    "commission_rate_pct",
)

# PostgreSQL undefined_column
PG_UNDEFINED_COLUMN = "42703"

_SPEAKER_LINE = re.compile(r"^(\s*\[?\s*Speaker\s+\w+\s*\]?\s*:?\s*)(.*)$", re.IGNORECASE)


# =============================================================================
# Outcome normalization
# =============================================================================

def _is_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clean_text(value: str, max_length: int | None = None) -> str | None:
    value = value.strip()
    if max_length is not None:
        value = value[:max_length]
    return value or None


def _parse_call_date(value: object) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_outcome_update(patch: RawPatch) -> JsonObject:
    """
    Turn an untrusted outcome patch into column updates.

    Invalid values are dropped rather than rejected. A recognized ``result``
    also sets ``qualified`` (only "unqualified" marks a call not qualified),
    which wins over an explicit ``qualified`` in the same patch.
    """
    updates: JsonObject = {}

    result = patch.get("result")
    if isinstance(result, str) and CallResult.has_value(result):
        updates["result"] = result
        updates["qualified"] = result != CallResult.UNQUALIFIED.value
    elif isinstance(patch.get("qualified"), bool):
        updates["qualified"] = patch["qualified"]

    for money_field in ("cash_collected", "revenue_generated"):
        amount = patch.get(money_field)
        if _is_number(amount) and 0 <= amount <= MAX_MONEY_CENTS:
            updates[money_field] = _round_half_up(amount)

    reason = patch.get("reason_for_outcome")
    if isinstance(reason, str):
        updates["reason_for_outcome"] = _clean_text(reason, REASON_MAX_LENGTH)

    if "call_date" in patch:
        updates["call_date"] = _parse_call_date(patch["call_date"])

    offer_id = patch.get("offer_id")
    if isinstance(offer_id, str):
        updates["offer_id"] = _clean_text(offer_id)

    prospect_name = patch.get("prospect_name")
    if isinstance(prospect_name, str):
        updates["prospect_name"] = _clean_text(prospect_name, PROSPECT_NAME_MAX_LENGTH)

    call_type = patch.get("call_type")
    if isinstance(call_type, str) and CallType.has_value(call_type):
        updates["call_type"] = call_type

    if "commission_rate_pct" in patch:
        pct = patch["commission_rate_pct"]
        if pct is None:
            updates["commission_rate_pct"] = None
        elif _is_number(pct) and 0 <= pct <= 100:
            updates["commission_rate_pct"] = _round_half_up(pct)

    return updates


def _is_missing_column(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == PG_UNDEFINED_COLUMN:
        return True
    message = str(orig).lower()
    if "no such column" in message or "has no column named" in message:
        return True
    return "column" in message and "does not exist" in message


# =============================================================================
# Queries
# =============================================================================

def get_call(db: Session, org_id: UUID, call_id: UUID) -> SalesCall | None:
    """Get a call scoped to an organization."""
    return db.execute(
        select(SalesCall).where(
            SalesCall.id == call_id,
            SalesCall.organization_id == org_id,
        )
    ).scalar_one_or_none()


def _get_owned_call(db: Session, call_id: UUID, requester_id: UUID) -> SalesCall:
    call = db.get(SalesCall, call_id)
    if not call:
        raise CallNotFoundError()
    if call.user_id != requester_id:
        raise CallAccessDeniedError()
    return call


# =============================================================================
# Outcome recorder
# =============================================================================

def update_outcome(
    db: Session,
    call_id: UUID,
    requester_id: UUID,
    patch: RawPatch,
) -> SalesCall:
    """
    Apply a validated outcome patch to a call owned by ``requester_id``.

    Raises:
        NothingToUpdateError: patch had no valid fields (nothing is queried or written)
        CallNotFoundError: call does not exist
        CallAccessDeniedError: call belongs to another user
        SchemaDriftError: database is missing outcome columns
    """
    updates = build_outcome_update(patch)
    if not updates:
        raise NothingToUpdateError(
            "Provide at least one of: " + ", ".join(OUTCOME_FIELDS)
        )

    try:
        call = _get_owned_call(db, call_id, requester_id)
        for field, value in updates.items():
            setattr(call, field, value)
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        if _is_missing_column(exc):
            logger.error(
                "outcome columns missing, migrations pending",
                extra=build_log_context(call_id=str(call_id), user_id=str(requester_id)),
            )
            raise SchemaDriftError() from exc
        raise

    db.refresh(call)
    logger.info(
        "call outcome updated: %s",
        ", ".join(sorted(updates)),
        extra=build_log_context(call_id=str(call_id), user_id=str(requester_id)),
    )
    return call


# =============================================================================
# Intake
# =============================================================================

def transcript_text_to_json(transcript: str) -> JsonObject:
    """
    Build a minimal utterance list from pasted transcript text.

    Lines shaped like "[Speaker A] ..." or "Speaker 1: ..." start a new
    speaker turn; anything else is attributed to "Speaker A". Timestamps
    are synthetic (1s utterances, 2s apart).
    """
    trimmed = transcript.strip()
    if not trimmed:
        return {"utterances": []}

    utterances = []
    time_ms = 0
    for line in re.split(r"\n+", trimmed):
        match = _SPEAKER_LINE.match(line)
        text = match.group(2).strip() if match else line.strip()
        if not text:
            continue
        speaker = "Speaker A"
        if match:
            speaker = re.sub(r"[\[\]:]", "", match.group(1)).strip() or "Speaker A"
        utterances.append(
            {"speaker": speaker, "start": time_ms, "end": time_ms + 1000, "text": text}
        )
        time_ms += 2000

    if not utterances:
        utterances.append({"speaker": "Speaker A", "start": 0, "end": 1000, "text": trimmed})
    return {"utterances": utterances}


def create_call_from_transcript(
    db: Session,
    gate: EntitlementGate,
    organization_id: UUID,
    user_id: UUID,
    transcript: str,
    file_name: str | None = None,
) -> SalesCall:
    """
    Create a call from pasted transcript text.

    The upload is gated first and counted only once the call row exists,
    in the same transaction.

    Raises:
        QuotaExceededError: organization may not upload more calls
        ValidationError: transcript is empty
    """
    gate.can_perform_action(db, organization_id, MeteredAction.UPLOAD_CALL).raise_if_denied()

    if not isinstance(transcript, str) or not transcript.strip():
        raise ValidationError("transcript (string) is required")

    call = SalesCall(
        organization_id=organization_id,
        user_id=user_id,
        file_name=(file_name or "").strip()[:500] or DEFAULT_TRANSCRIPT_FILE_NAME,
        status=CallStatus.PENDING.value,
        transcript=transcript.strip(),
        transcript_json=json.dumps(transcript_text_to_json(transcript)),
    )
    db.add(call)
    db.flush()

    if not gate.bypass:
        usage_service.increment_usage(db, organization_id, UsageType.CALLS)

    db.commit()
    db.refresh(call)
    return call


def create_manual_call(
    db: Session,
    organization_id: UUID,
    user_id: UUID,
    fields: RawPatch,
) -> SalesCall:
    """
    Log a call outcome by hand (no recording, not metered).

    ``offer_id``, ``result`` and ``reason_for_outcome`` are required and an
    unknown ``result`` is rejected. The remaining figures go through the same
    normalization as outcome edits.

    Raises:
        ValidationError: missing required field, unknown result/call type, bad date
    """
    missing = [
        name for name in MANUAL_CALL_REQUIRED_FIELDS
        if not isinstance(fields.get(name), str) or not fields[name].strip()
    ]
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing))

    if not CallResult.has_value(fields["result"]):
        raise ValidationError(
            "Invalid result. Must be one of: " + ", ".join(r.value for r in CallResult)
        )

    call_type = fields.get("call_type")
    if call_type not in (None, "") and not (
        isinstance(call_type, str) and CallType.has_value(call_type)
    ):
        raise ValidationError(
            "Invalid call type. Must be one of: " + ", ".join(t.value for t in CallType)
        )

    call_date = datetime.now(timezone.utc)
    if fields.get("call_date") not in (None, ""):
        call_date = _parse_call_date(fields["call_date"])
        if call_date is None:
            raise ValidationError("Invalid date")

    updates = build_outcome_update(fields)
    updates["call_date"] = call_date
    updates.setdefault("call_type", CallType.CLOSING_CALL.value)

    call = SalesCall(
        organization_id=organization_id,
        user_id=user_id,
        file_name=MANUAL_CALL_FILE_NAME,
        status=CallStatus.MANUAL.value,
        **updates,
    )
    db.add(call)
    db.commit()
    db.refresh(call)
    logger.info(
        "manual call logged: %s",
        call.result,
        extra=build_log_context(call_id=str(call.id), user_id=str(user_id)),
    )
    return call


# =============================================================================
# Analysis bookkeeping
# =============================================================================

def _json_text(value: object) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


def request_analysis(db: Session, call_id: UUID, requester_id: UUID) -> SalesCall:
    """
    Queue a call for (re-)analysis.

    A call is analyzable only once it has a transcript. Any previous
    analysis is discarded so the next result replaces it.
    """
    call = _get_owned_call(db, call_id, requester_id)
    if not call.transcript or not call.transcript.strip():
        raise CallNotAnalyzableError()

    call.analysis = None
    call.status = CallStatus.PENDING.value
    call.completed_at = None
    db.commit()
    db.refresh(call)
    return call


def save_analysis(db: Session, call_id: UUID, scores: JsonObject) -> CallAnalysis:
    """Store the analysis result for a call (replacing any earlier one) and mark it completed."""
    call = db.get(SalesCall, call_id)
    if not call:
        raise CallNotFoundError()
    if not call.transcript:
        raise CallNotAnalyzableError()

    # Old row must be gone before the insert (call_id is unique)
    call.analysis = None
    db.flush()

    analysis = CallAnalysis(
        overall_score=scores.get("overall_score"),
        value_score=scores.get("value_score"),
        trust_score=scores.get("trust_score"),
        fit_score=scores.get("fit_score"),
        logistics_score=scores.get("logistics_score"),
        skill_scores=_json_text(scores.get("skill_scores")),
        coaching_recommendations=_json_text(scores.get("coaching_recommendations")),
        timestamped_feedback=_json_text(scores.get("timestamped_feedback")),
    )
    call.analysis = analysis
    call.status = CallStatus.COMPLETED.value
    call.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(call)
    return analysis
