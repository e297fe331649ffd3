"""Request rate limiting (slowapi), keyed per session where one exists."""

import hashlib
import logging

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from closepro.core.config import settings
from closepro.core.deps import COOKIE_NAME

logger = logging.getLogger(__name__)

MEMORY_STORAGE = "memory://"


def rate_limit_key(request: Request) -> str:
    """Bucket by session cookie, falling back to client address."""
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return "session:" + hashlib.sha256(token.encode()).hexdigest()[:32]
    return "ip:" + get_remote_address(request)


def default_limits(per_minute: int, testing: bool = False) -> list[str]:
    if testing or per_minute <= 0:
        return []
    return [f"{per_minute}/minute"]


def resolve_storage_uri(redis_url: str, testing: bool = False) -> str:
    """Redis when reachable; in-memory for tests or when Redis is down."""
    if testing or not redis_url:
        return MEMORY_STORAGE
    try:
        redis.from_url(redis_url, socket_connect_timeout=1).ping()
    except (redis.RedisError, ValueError) as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return MEMORY_STORAGE
    return redis_url


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=resolve_storage_uri(settings.REDIS_URL, settings.TESTING),
    default_limits=default_limits(settings.RATE_LIMIT_API, settings.TESTING),
)
