"""Billing and subscription status endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from closepro.core.deps import get_current_session, get_db, get_entitlement_gate
from closepro.schemas.auth import UserSession
from closepro.schemas.billing import BillingResponse, SubscriptionCheckResponse
from closepro.services import billing_service, subscription_service
from closepro.services.entitlement_service import EntitlementGate

router = APIRouter()


@router.get("/billing", response_model=BillingResponse)
def get_billing(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """Subscription, this month's usage, and seat usage for the caller's organization."""
    return billing_service.get_billing_overview(db, session.org_id, gate)


@router.get("/subscription/check", response_model=SubscriptionCheckResponse)
def check_subscription(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    return subscription_service.get_subscription_status(
        db, session.org_id, bypass=gate.bypass
    )
