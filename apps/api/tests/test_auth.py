import uuid

import jwt
import pytest

from closepro.core.config import settings
from closepro.core.deps import COOKIE_NAME
from closepro.core.security import create_session_token, decode_session_token
from closepro.db.models import Membership


@pytest.mark.asyncio
async def test_missing_cookie_is_401(client):
    resp = await client.get("/billing")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    client.cookies.set(COOKIE_NAME, "not-a-jwt")
    resp = await client.get("/billing")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid session"


@pytest.mark.asyncio
async def test_revoked_session_is_401(authed_client, db, test_user):
    test_user.token_version += 1
    db.flush()

    resp = await authed_client.get("/billing")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Session revoked"


@pytest.mark.asyncio
async def test_user_without_membership_is_403(authed_client, db, test_user):
    db.query(Membership).filter(Membership.user_id == test_user.id).delete()
    db.flush()

    resp = await authed_client.get("/billing")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "No organization membership"


@pytest.mark.asyncio
async def test_unknown_role_is_403(authed_client, db, test_user):
    membership = db.query(Membership).filter(Membership.user_id == test_user.id).one()
    membership.role = "owner"
    db.flush()

    resp = await authed_client.get("/billing")
    assert resp.status_code == 403
    assert "Unknown role" in resp.json()["detail"]


def test_token_signed_with_previous_secret_still_valid(monkeypatch):
    user_id, org_id = uuid.uuid4(), uuid.uuid4()
    token = create_session_token(user_id, org_id, "rep", 1)

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    payload = decode_session_token(token)
    assert payload["sub"] == str(user_id)
    assert payload["org_id"] == str(org_id)


def test_token_with_unknown_secret_rejected(monkeypatch):
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "rep", 1)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)
