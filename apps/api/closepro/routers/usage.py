"""Usage metering endpoints - entitlement checks and usage tracking."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from closepro.core.deps import (
    get_current_session,
    get_db,
    get_entitlement_gate,
    require_csrf_header,
)
from closepro.db.enums import MeteredAction, UsageType
from closepro.schemas.auth import UserSession
from closepro.schemas.billing import (
    UsageCheckRequest,
    UsageCheckResponse,
    UsageTrackRequest,
    UsageTrackResponse,
)
from closepro.services import usage_service
from closepro.services.entitlement_service import EntitlementGate

router = APIRouter()

_ACTION_FOR_USAGE_TYPE = {
    UsageType.CALLS: MeteredAction.UPLOAD_CALL,
    UsageType.ROLEPLAY: MeteredAction.START_ROLEPLAY,
}


@router.post(
    "/check",
    response_model=UsageCheckResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_csrf_header)],
)
def check_usage(
    data: UsageCheckRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """Check whether the caller's organization may perform a metered action."""
    decision = gate.can_perform_action(db, session.org_id, data.action)
    return UsageCheckResponse(allowed=decision.allowed, reason=decision.reason)


@router.post(
    "/track",
    response_model=UsageTrackResponse,
    dependencies=[Depends(require_csrf_header)],
)
def track_usage(
    data: UsageTrackRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """
    Record one unit of usage.

    Gated first; a denied action returns 403 and is not counted.
    """
    action = _ACTION_FOR_USAGE_TYPE[data.type]
    gate.can_perform_action(db, session.org_id, action).raise_if_denied()

    usage_service.increment_usage(db, session.org_id, data.type)
    db.commit()
    return UsageTrackResponse(success=True)
