"""Application configuration with environment variables."""

from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict


LOCAL_HOSTNAMES = ("localhost", "127.0.0.1")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    # Database
    DATABASE_URL: str
    DB_AUTO_MIGRATE: bool = False

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (bypass is only honored when this points at a local host)
    FRONTEND_URL: str = "http://localhost:3000"

    # Billing
    # Dev-only override that lets every metered action through. Ignored unless
    # ENV=dev and FRONTEND_URL is local.
    BILLING_BYPASS: bool = False
    # Comma-separated "tier:provider_plan_id" pairs, e.g. "starter:plan_abc,pro:plan_def"
    PROVIDER_PLAN_IDS: str = ""

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute, per session)
    RATE_LIMIT_API: int = 60
    REDIS_URL: str = "redis://localhost:6379/0"

    # Set by the test suite (in-memory limiter, no default limits)
    TESTING: bool = False

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def provider_plan_ids(self) -> dict[str, str]:
        """Parse PROVIDER_PLAN_IDS into a {tier: plan_id} mapping."""
        mapping: dict[str, str] = {}
        for pair in self.PROVIDER_PLAN_IDS.split(","):
            tier, sep, plan_id = pair.partition(":")
            if sep and tier.strip() and plan_id.strip():
                mapping[tier.strip().lower()] = plan_id.strip()
        return mapping

    @property
    def billing_bypass_enabled(self) -> bool:
        """
        Whether subscription checks are bypassed.

        Requires dev mode AND a local frontend so that a stray flag on a
        staging/production deployment never unlocks metered actions.
        """
        if not self.BILLING_BYPASS or self.ENV != "dev":
            return False
        hostname = urlparse(self.FRONTEND_URL).hostname or ""
        return hostname in LOCAL_HOSTNAMES


settings = Settings()
