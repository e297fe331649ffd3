"""
Alembic checks run at startup.

The API refuses nothing when the schema is behind; it logs which revisions
are pending so a deploy without ``alembic upgrade head`` is visible. With
``DB_AUTO_MIGRATE`` the upgrade runs in-process, serialized across workers
by a PostgreSQL advisory lock.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

API_ROOT = Path(__file__).resolve().parents[2]
VERSION_TABLE = "alembic_version"
# Shared by every ClosePro worker that may auto-migrate
ADVISORY_LOCK_KEY = 7340211


class MigrationError(RuntimeError):
    """Auto-upgrade finished but the database is still not at head."""


@dataclass(frozen=True)
class MigrationStatus:
    current_heads: tuple[str, ...]
    head_revisions: tuple[str, ...]
    pending: tuple[str, ...]

    @property
    def is_up_to_date(self) -> bool:
        return set(self.current_heads) == set(self.head_revisions)

    def describe(self) -> str:
        current = ",".join(self.current_heads) or "empty"
        if self.is_up_to_date:
            return f"schema at {current}"
        return f"schema at {current}, pending: {', '.join(self.pending)}"


def alembic_config(engine: Engine) -> Config:
    ini_path = API_ROOT / "alembic.ini"
    if not ini_path.is_file():
        raise FileNotFoundError(f"Alembic config not found at {ini_path}")
    config = Config(str(ini_path))
    config.set_main_option("script_location", str(API_ROOT / "alembic"))
    # ConfigParser interpolation treats % specially
    url = engine.url.render_as_string(hide_password=False)
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def _applied_heads(connection: Connection) -> tuple[str, ...]:
    if not inspect(connection).has_table(VERSION_TABLE):
        return ()
    return tuple(MigrationContext.configure(connection).get_current_heads())


def get_migration_status(engine: Engine) -> MigrationStatus:
    script = ScriptDirectory.from_config(alembic_config(engine))
    with engine.connect() as connection:
        current = _applied_heads(connection)

    heads = tuple(script.get_heads())
    # Oldest first; iterate_revisions walks from head down to the current revision
    pending = tuple(
        rev.revision
        for rev in reversed(list(script.iterate_revisions(heads, current or "base")))
        if rev.revision not in current
    )
    return MigrationStatus(current_heads=current, head_revisions=heads, pending=pending)


def ensure_migrations(engine: Engine, auto_migrate: bool) -> MigrationStatus:
    """Report schema status, upgrading to head first when ``auto_migrate`` is set."""
    status = get_migration_status(engine)
    if status.is_up_to_date:
        logger.info("database %s", status.describe())
        return status
    if not auto_migrate:
        logger.warning("database %s. Run: alembic upgrade head", status.describe())
        return status

    logger.info("auto-migrating database: %s", ", ".join(status.pending))
    _upgrade_to_head(engine)
    status = get_migration_status(engine)
    if not status.is_up_to_date:
        raise MigrationError(f"Database migrations did not reach head ({status.describe()})")
    return status


@contextmanager
def _migration_lock(connection: Connection) -> Iterator[None]:
    if connection.dialect.name != "postgresql":
        yield
        return

    connection.execute(text("SELECT pg_advisory_lock(:key)"), {"key": ADVISORY_LOCK_KEY})
    connection.commit()
    try:
        yield
    finally:
        connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": ADVISORY_LOCK_KEY})
        connection.commit()


def _upgrade_to_head(engine: Engine) -> None:
    config = alembic_config(engine)
    with engine.connect() as connection, _migration_lock(connection):
        # env.py runs on this connection instead of opening its own
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
        if connection.in_transaction():
            connection.commit()
