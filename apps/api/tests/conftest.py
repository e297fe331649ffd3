"""
Test configuration and fixtures.

Provides:
- Database session with savepoint (rollback after each test)
- Organization/user/subscription fixtures
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers

Runs against a throwaway SQLite file unless DATABASE_URL points elsewhere
(PostgreSQL is supported).
"""
import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

_TEST_DB_DIR = tempfile.mkdtemp(prefix="closepro-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(_TEST_DB_DIR) / 'closepro.db'}")
os.environ["TESTING"] = "1"
os.environ["BILLING_BYPASS"] = "false"

from closepro.main import app
from closepro.db.base import Base
from closepro.db.session import engine, SessionLocal
from closepro.core.deps import get_db, get_entitlement_gate, COOKIE_NAME
from closepro.core.security import create_session_token
from closepro.db.models import Organization, User, Membership, Subscription
from closepro.db.enums import PlanTier, Role
from closepro.services import subscription_service
from closepro.services.entitlement_service import EntitlementGate


# =============================================================================
# Database Fixtures (Savepoint pattern)
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _create_schema() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    if engine.dialect.name == "sqlite":
        Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def connection() -> Generator[Connection, None, None]:
    """Connection holding the outer transaction that is rolled back after each test."""
    connection = engine.connect()
    transaction = connection.begin()
    yield connection
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def db(connection: Connection) -> Generator[Session, None, None]:
    """
    Creates a database session with savepoint for test isolation.

    App code can call commit() (releases the savepoint) and rollback()
    (rolls back to it) without ending the test transaction.
    """
    session = SessionLocal(bind=connection, join_transaction_mode="create_savepoint")
    yield session
    session.close()


@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    """Create a test organization (starter seat cap, no subscription)."""
    org = Organization(
        id=uuid.uuid4(),
        name="Test Organization",
        slug=f"test-org-{uuid.uuid4().hex[:8]}",
        plan_tier=PlanTier.STARTER.value,
        max_seats=5,
    )
    db.add(org)
    db.flush()
    return org


def _make_member(db: Session, org: Organization, role: Role, name: str) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"{name}-{uuid.uuid4().hex[:8]}@test.com",
        display_name=name.title(),
    )
    db.add(user)
    db.flush()

    membership = Membership(
        id=uuid.uuid4(),
        user_id=user.id,
        organization_id=org.id,
        role=role.value,
    )
    db.add(membership)
    db.flush()
    return user


@pytest.fixture(scope="function")
def test_user(db: Session, test_org: Organization) -> User:
    """Create a rep with membership in test_org."""
    return _make_member(db, test_org, Role.REP, "rep")


@pytest.fixture(scope="function")
def other_rep(db: Session, test_org: Organization) -> User:
    """A second rep in the same organization."""
    return _make_member(db, test_org, Role.REP, "other")


@pytest.fixture(scope="function")
def manager_user(db: Session, test_org: Organization) -> User:
    return _make_member(db, test_org, Role.MANAGER, "manager")


@pytest.fixture(scope="function")
def subscribe(db: Session, test_org: Organization) -> Callable[..., Subscription]:
    """Factory: give test_org an active subscription on a plan tier."""
    def _subscribe(plan_tier: PlanTier | str = PlanTier.STARTER, **overrides) -> Subscription:
        subscription = subscription_service.create_subscription(
            db, test_org.id, plan_tier, **overrides
        )
        db.flush()
        return subscription

    return _subscribe


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    org: Organization
    token: str
    cookie_name: str = COOKIE_NAME


def _mint(user: User, org: Organization, role: Role) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        org_id=org.id,
        role=role.value,
        token_version=user.token_version,
    )
    return TestAuth(user=user, org=org, token=token)


@pytest.fixture(scope="function")
def test_auth(test_user: User, test_org: Organization) -> TestAuth:
    """Create JWT token for test user."""
    return _mint(test_user, test_org, Role.REP)


@pytest.fixture(scope="function")
def manager_auth(manager_user: User, test_org: Organization) -> TestAuth:
    return _mint(manager_user, test_org, Role.MANAGER)


# =============================================================================
# Client Fixtures
# =============================================================================

def _override_db(db: Session) -> None:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def bypass_billing() -> Generator[None, None, None]:
    """Run requests with the dev billing bypass switched on."""
    app.dependency_overrides[get_entitlement_gate] = lambda: EntitlementGate(bypass=True)
    yield
    app.dependency_overrides.pop(get_entitlement_gate, None)


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    _override_db(db)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated AsyncClient with JWT cookie and CSRF header.
    """
    async for c in _session_client(db, test_auth):
        yield c


async def _session_client(db: Session, auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    _override_db(db)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={auth.cookie_name: auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def manager_client(
    db: Session,
    manager_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    async for c in _session_client(db, manager_auth):
        yield c


@pytest.fixture(scope="function")
async def other_rep_client(
    db: Session,
    other_rep: User,
    test_org: Organization,
) -> AsyncGenerator[AsyncClient, None]:
    """Client for a second rep in the same organization."""
    async for c in _session_client(db, _mint(other_rep, test_org, Role.REP)):
        yield c
