"""Rate limiter configuration."""

from starlette.requests import Request

from closepro.core.rate_limit import (
    MEMORY_STORAGE,
    default_limits,
    rate_limit_key,
    resolve_storage_uri,
)


def _request(cookie: str | None = None) -> Request:
    headers = [(b"cookie", f"closepro_session={cookie}".encode())] if cookie else []
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/billing",
        "headers": headers,
        "client": ("203.0.113.7", 51000),
    })


def test_key_uses_session_cookie():
    key = rate_limit_key(_request("token-a"))

    assert key.startswith("session:")
    assert "token-a" not in key
    assert key == rate_limit_key(_request("token-a"))
    assert key != rate_limit_key(_request("token-b"))


def test_key_falls_back_to_client_address():
    assert rate_limit_key(_request()) == "ip:203.0.113.7"


def test_default_limits():
    assert default_limits(60) == ["60/minute"]
    assert default_limits(0) == []
    assert default_limits(60, testing=True) == []


def test_storage_is_memory_when_testing_or_unreachable():
    assert resolve_storage_uri("redis://localhost:6379/0", testing=True) == MEMORY_STORAGE
    assert resolve_storage_uri("") == MEMORY_STORAGE
    assert resolve_storage_uri("redis://127.0.0.1:1/0") == MEMORY_STORAGE
