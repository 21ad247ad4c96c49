"""Shared Redis connection for the status-polling rate limiter.

Orders, stock and payments live in PostgreSQL and the payment status cache
is in-process, so Redis holds nothing but short-lived counters. Short socket
timeouts keep the limiter's fail-open path fast when Redis is down.
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings

logger = logging.getLogger(__name__)

_SOCKET_TIMEOUT_SECONDS = 0.5

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Lazily build the process-wide client; the pool connects on first command."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=_SOCKET_TIMEOUT_SECONDS,
        )
    return _client


async def ping_redis() -> bool:
    """Startup probe. Redis is optional, so failure is reported, not raised."""
    try:
        client = await get_redis()
        return bool(await client.ping())
    except (aioredis.RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
