"""API routers."""

from closepro.routers.billing import router as billing_router
from closepro.routers.calls import router as calls_router
from closepro.routers.usage import router as usage_router

__all__ = [
    "billing_router",
    "calls_router",
    "usage_router",
]
