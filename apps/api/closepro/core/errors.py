"""
Domain error taxonomy shared by the billing gate and the outcome recorder.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API surfaces it with. Routers never build these responses by hand; the
exception handler registered in ``closepro.main`` does it.
"""

from fastapi import Request
from fastapi.responses import JSONResponse


class CloseProError(Exception):
    """Base exception for ClosePro domain errors."""

    code = "error"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.__doc__ or self.code
        super().__init__(self.message)


class NotFoundError(CloseProError):
    """Resource not found."""

    code = "not_found"
    status_code = 404


class OrganizationNotFoundError(NotFoundError):
    """Organization not found."""


class CallNotFoundError(NotFoundError):
    """Call not found."""


class AccessDeniedError(CloseProError):
    """Access denied."""

    code = "access_denied"
    status_code = 403


class CallAccessDeniedError(AccessDeniedError):
    """Only the rep who owns this call can change it."""


class QuotaExceededError(CloseProError):
    """
    Entitlement gate denial.

    ``reason_code`` lets the frontend pick the right upgrade prompt
    (``no_subscription`` vs ``limit_reached`` etc).
    """

    code = "quota_exceeded"
    status_code = 403

    def __init__(self, message: str, reason_code: str | None = None):
        super().__init__(message)
        self.reason_code = reason_code


class ValidationError(CloseProError):
    """Invalid request payload."""

    code = "validation_error"
    status_code = 400


class NothingToUpdateError(ValidationError):
    """Patch contained no valid fields."""


class CallNotAnalyzableError(ValidationError):
    """Call has no transcript to analyze."""


class SchemaDriftError(CloseProError):
    """Database schema is out of date. Run pending migrations (alembic upgrade head)."""

    code = "schema_drift"
    status_code = 500


def error_payload(exc: CloseProError) -> dict:
    payload = {"detail": exc.message, "code": exc.code}
    reason_code = getattr(exc, "reason_code", None)
    if reason_code:
        payload["reason"] = reason_code
    return payload


async def closepro_exception_handler(request: Request, exc: CloseProError) -> JSONResponse:
    """Map domain errors to JSON responses."""
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))
