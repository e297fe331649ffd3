"""
Usage counter - per-organization monthly consumption of metered actions.

Months are UTC calendar months keyed as ``YYYY-MM``. Reads never write:
an organization that has not acted this month simply has zero usage and
no row. The row is created by the first increment via an atomic
upsert-increment, so concurrent requests from the same organization
cannot lose updates.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from closepro.core.structured_logging import build_log_context
from closepro.db.enums import UsageType
from closepro.db.models import UsageRecord

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class UsageSnapshot:
    month: str
    calls_used: int = 0
    roleplay_sessions_used: int = 0

    def used_for(self, usage_type: UsageType) -> int:
        if usage_type == UsageType.CALLS:
            return self.calls_used
        return self.roleplay_sessions_used


def current_month(now: datetime | None = None) -> str:
    """Usage period key for ``now`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m")


def get_current_usage(
    db: Session,
    organization_id: UUID,
    now: datetime | None = None,
) -> UsageSnapshot:
    """Get this month's usage for an organization without creating a row."""
    month = current_month(now)
    record = db.execute(
        select(UsageRecord).where(
            UsageRecord.organization_id == organization_id,
            UsageRecord.month == month,
        )
    ).scalar_one_or_none()

    if not record:
        return UsageSnapshot(month=month)
    return UsageSnapshot(
        month=month,
        calls_used=record.calls_used,
        roleplay_sessions_used=record.roleplay_sessions_used,
    )


def _counter_column(usage_type: UsageType):
    if usage_type == UsageType.CALLS:
        return UsageRecord.calls_used
    return UsageRecord.roleplay_sessions_used


def increment_usage(
    db: Session,
    organization_id: UUID,
    usage_type: UsageType | str,
    now: datetime | None = None,
) -> None:
    """
    Atomically add one to this month's counter, creating the row if absent.

    Single INSERT ... ON CONFLICT DO UPDATE statement; the caller owns the
    transaction and commits it together with the action being metered.
    """
    usage_type = UsageType(usage_type)
    now = now or datetime.now(timezone.utc)
    month = current_month(now)
    column = _counter_column(usage_type)

    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Atomic usage increment not supported on {dialect}")

    stmt = insert(UsageRecord).values(
        organization_id=organization_id,
        month=month,
        calls_used=1 if usage_type == UsageType.CALLS else 0,
        roleplay_sessions_used=1 if usage_type == UsageType.ROLEPLAY else 0,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UsageRecord.organization_id, UsageRecord.month],
        set_={
            column.key: column + 1,
            "updated_at": now,
        },
    )
    db.execute(stmt)

    logger.debug(
        "usage incremented",
        extra=build_log_context(org_id=str(organization_id), action=usage_type.value),
    )
