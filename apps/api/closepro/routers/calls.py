"""Sales call endpoints - transcript intake, manual logging, outcomes, and analysis requests."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from closepro.core.deps import (
    get_current_session,
    get_db,
    get_entitlement_gate,
    require_csrf_header,
)
from closepro.core.errors import CallAccessDeniedError, CallNotFoundError
from closepro.db.enums import Role
from closepro.schemas.auth import UserSession
from closepro.schemas.call import (
    AnalysisQueuedResponse,
    CallRead,
    ManualCallCreate,
    ManualCallCreated,
    OutcomeUpdate,
    OutcomeUpdateResponse,
    TranscriptCallCreate,
    TranscriptCallCreated,
)
from closepro.services import call_service
from closepro.services.entitlement_service import EntitlementGate

router = APIRouter()

ROLES_CAN_VIEW_TEAM_CALLS = {Role.ADMIN, Role.MANAGER}


@router.post(
    "/transcript",
    response_model=TranscriptCallCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_transcript_call(
    data: TranscriptCallCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """Create a call from pasted transcript text (counts against the call quota)."""
    call = call_service.create_call_from_transcript(
        db,
        gate,
        organization_id=session.org_id,
        user_id=session.user_id,
        transcript=data.transcript,
        file_name=data.file_name,
    )
    return TranscriptCallCreated(call_id=call.id, status=call.status)


@router.post(
    "/manual",
    response_model=ManualCallCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_manual_call(
    data: ManualCallCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Log a call outcome by hand. Not counted against the call quota."""
    call = call_service.create_manual_call(
        db,
        organization_id=session.org_id,
        user_id=session.user_id,
        fields=data.to_patch(),
    )
    return ManualCallCreated(call_id=call.id, status=call.status)


@router.get("/{call_id}", response_model=CallRead)
def get_call(
    call_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Get a call with its outcome and analysis.

    Reps see their own calls; managers and admins see the whole organization.
    """
    call = call_service.get_call(db, session.org_id, call_id)
    if not call:
        raise CallNotFoundError()
    if call.user_id != session.user_id and session.role not in ROLES_CAN_VIEW_TEAM_CALLS:
        raise CallAccessDeniedError("Not allowed to view this call")
    return call


@router.patch(
    "/{call_id}/outcome",
    response_model=OutcomeUpdateResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_outcome(
    call_id: UUID,
    data: OutcomeUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Record the result and figures of a call. Only the owning rep may edit."""
    call_service.update_outcome(db, call_id, session.user_id, data.to_patch())
    return OutcomeUpdateResponse(ok=True)


@router.post(
    "/{call_id}/analyze",
    response_model=AnalysisQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_csrf_header)],
)
def analyze_call(
    call_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Queue a call for (re-)analysis. Any previous analysis is discarded."""
    call = call_service.request_analysis(db, call_id, session.user_id)
    return AnalysisQueuedResponse(call_id=call.id, status=call.status)
