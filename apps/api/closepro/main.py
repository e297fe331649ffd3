"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from closepro.core.config import settings
from closepro.core.errors import CloseProError, closepro_exception_handler
from closepro.core.migrations import ensure_migrations
from closepro.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from closepro.core.rate_limit import limiter


# ============================================================================
# Startup
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_migrations(engine, auto_migrate=settings.DB_AUTO_MIGRATE)
    yield


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="ClosePro API",
    description="Sales call coaching API: subscriptions, usage metering, and call outcomes",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Domain errors -> {"detail", "code"} with the error's status
app.add_exception_handler(CloseProError, closepro_exception_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

# ============================================================================
# Routers
# ============================================================================

from closepro.routers import billing, calls, usage

app.include_router(usage.router, prefix="/usage", tags=["usage"])
app.include_router(billing.router, tags=["billing"])  # /billing and /subscription/check
app.include_router(calls.router, prefix="/calls", tags=["calls"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
