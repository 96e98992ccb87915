"""Shared FastAPI dependencies."""

from redis.asyncio import Redis

from orbit.redis_client import get_redis_or_none


def get_redis_dep() -> Redis | None:
    """The Redis client for notification fan-out, or None when Redis is not initialised."""
    return get_redis_or_none()
