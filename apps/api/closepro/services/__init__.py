"""Service layer modules."""

from closepro.services.org_service import (
    add_member,
    create_org,
    get_org_by_slug,
)

# Import service modules (not individual functions) for cleaner access
from closepro.services import (  # noqa: F401
    billing_service,
    call_service,
    entitlement_service,
    plan_catalog,
    subscription_service,
    usage_service,
)

__all__ = [
    # Org service
    "add_member",
    "create_org",
    "get_org_by_slug",
    # Service modules
    "billing_service",
    "call_service",
    "entitlement_service",
    "plan_catalog",
    "subscription_service",
    "usage_service",
]
