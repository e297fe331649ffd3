"""FastAPI dependencies for authentication, database access, and billing."""

from typing import Generator

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from closepro.core.config import settings
from closepro.core.security import decode_session_token
from closepro.db.enums import Role
from closepro.db.models import Membership, User
from closepro.db.session import SessionLocal
from closepro.schemas.auth import TokenPayload, UserSession
from closepro.services.entitlement_service import EntitlementGate


# Cookie and header names
COOKIE_NAME = "closepro_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, PydanticValidationError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == payload.sub).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.token_version:
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def get_current_session(
    request: Request,
    db: Session = Depends(get_db)
) -> UserSession:
    """
    Get full session context: user_id, org_id, role.

    This is the PRIMARY auth dependency for every endpoint.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: No membership or unknown role
    """
    user = get_current_user(request, db)

    membership = db.query(Membership).filter(
        Membership.user_id == user.id
    ).first()

    if not membership:
        raise HTTPException(status_code=403, detail="No organization membership")

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(membership.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{membership.role}'. Contact administrator."
        )

    return UserSession(
        user_id=user.id,
        org_id=membership.organization_id,
        role=Role(membership.role),
        email=user.email,
        display_name=user.display_name,
    )


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )


def get_entitlement_gate() -> EntitlementGate:
    """Entitlement gate configured from settings (tests override this)."""
    return EntitlementGate(bypass=settings.billing_bypass_enabled)
