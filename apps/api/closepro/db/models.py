"""SQLAlchemy ORM models for tenants, billing, usage metering, and sales calls."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid, func, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from closepro.db.base import Base
from closepro.db.enums import (
    DEFAULT_CALL_STATUS, DEFAULT_PLAN_TIER, DEFAULT_ROLE,
    DEFAULT_SUBSCRIPTION_STATUS,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Auth & Tenant Models
# =============================================================================

class Organization(Base):
    """
    A tenant/company in the multi-tenant system.

    All domain entities belong to an organization
    and must be scoped by organization_id in all queries.
    """
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    plan_tier: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_PLAN_TIER.value,
        server_default=text(f"'{DEFAULT_PLAN_TIER.value}'"),
        nullable=False
    )
    # Seat cap used when no subscription overrides it (new/trial orgs)
    max_seats: Mapped[int] = mapped_column(
        Integer,
        default=5,
        server_default=text("5"),
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=text("true"),
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )

    # Relationships
    memberships: Mapped[list["Membership"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan"
    )
    subscriptions: Mapped[list["Subscription"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan"
    )


class User(Base):
    """
    Application user.

    Authentication is delegated to the identity provider; the API only
    trusts the signed session token that references this row.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    token_version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        server_default=text("1"),
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=text("true"),
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )

    membership: Mapped["Membership | None"] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False
    )


class Membership(Base):
    """
    Links a user to an organization with a role.

    Constraint: UNIQUE(user_id) enforces ONE organization per user.
    Each membership occupies one seat.
    """
    __tablename__ = "memberships"
    __table_args__ = (
        Index("idx_memberships_org_id", "organization_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_ROLE.value,
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="membership")
    organization: Mapped["Organization"] = relationship(back_populates="memberships")


# =============================================================================
# Billing
# =============================================================================

class Subscription(Base):
    """
    Billing-provider subscription for an organization.

    Quota columns override the plan catalog when set; NULL means
    "use the catalog default for plan_tier" and -1 means unlimited.
    At most one row is expected to be active per org; the resolver picks
    the newest entitled row rather than relying on a DB constraint.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("idx_subscriptions_org_status", "organization_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    provider_subscription_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True
    )
    provider_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_plan_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_SUBSCRIPTION_STATUS.value,
        server_default=text(f"'{DEFAULT_SUBSCRIPTION_STATUS.value}'"),
        nullable=False
    )
    plan_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    seats: Mapped[int] = mapped_column(
        Integer,
        default=5,
        server_default=text("5"),
        nullable=False
    )
    calls_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    roleplay_sessions_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=text("false"),
        nullable=False
    )
    canceled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )

    organization: Mapped["Organization"] = relationship(back_populates="subscriptions")


class UsageRecord(Base):
    """
    Per-organization, per-month consumption of metered actions.

    Rows are created by the first increment of a month (never by reads)
    and are kept as history. Counters only change through the atomic
    upsert-increment in usage_service.
    """
    __tablename__ = "usage_tracking"
    __table_args__ = (
        UniqueConstraint("organization_id", "month", name="uq_usage_tracking_org_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM (UTC)
    calls_used: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default=text("0"),
        nullable=False
    )
    roleplay_sessions_used: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default=text("0"),
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )


# =============================================================================
# Sales Calls
# =============================================================================

class SalesCall(Base):
    """
    One sales call: an uploaded recording, a pasted transcript, or a
    manually logged outcome.

    Owned by exactly one rep (user_id) within one organization. Outcome
    columns are edited after the fact by the owning rep only.
    Money columns are integer cents.
    """
    __tablename__ = "sales_calls"
    __table_args__ = (
        Index("idx_sales_calls_org_user", "organization_id", "user_id"),
        CheckConstraint("cash_collected >= 0", name="cash_collected_non_negative"),
        CheckConstraint("revenue_generated >= 0", name="revenue_generated_non_negative"),
        CheckConstraint(
            "commission_rate_pct >= 0 AND commission_rate_pct <= 100",
            name="commission_rate_pct_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_CALL_STATUS.value,
        server_default=text(f"'{DEFAULT_CALL_STATUS.value}'"),
        nullable=False
    )
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Outcome / figures
    result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    qualified: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    cash_collected: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    revenue_generated: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reason_for_outcome: Mapped[str | None] = mapped_column(Text, nullable=True)
    call_date: Mapped[datetime | None] = mapped_column(nullable=True)
    offer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    prospect_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    call_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    commission_rate_pct: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    analysis: Mapped["CallAnalysis | None"] = relationship(
        back_populates="call",
        cascade="all, delete-orphan",
        uselist=False
    )


class CallAnalysis(Base):
    """
    AI scoring for a completed call (four pillars + overall).

    1:1 with SalesCall. Replaced wholesale on re-analysis, never edited.
    Detail columns hold JSON text produced by the analysis pipeline.
    """
    __tablename__ = "call_analysis"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    call_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sales_calls.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    overall_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    value_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trust_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fit_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    logistics_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    skill_scores: Mapped[str | None] = mapped_column(Text, nullable=True)
    coaching_recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamped_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    call: Mapped["SalesCall"] = relationship(back_populates="analysis")
