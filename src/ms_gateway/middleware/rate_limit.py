"""Fixed-window rate limiting for payment status polling.

Clients poll /payments/status/{ref} after the gateway redirect; this caps
how hard one client can hit the reconciliation engine.

Redis logic per request:
    count = INCR ratelimit:{group}:{client_ip}:{window}
    EXPIRE on first hit
    count > limit -> 429 (RateLimitError, code 9001) with Retry-After

Redis being down must not take the store down, so errors fail open.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from src.ms_common.errors import RateLimitError
from src.ms_common.redis_client import get_redis
from src.ms_common.response import error_response

logger = logging.getLogger(__name__)

RedisFactory = Callable[[], Awaitable[aioredis.Redis]]


def client_ip(request: Request) -> str:
    """Real client IP, honouring the first X-Forwarded-For hop from the proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limit: int,
        path_prefix: str,
        group: str = "status",
        window_seconds: int = 60,
        redis_factory: RedisFactory = get_redis,
    ) -> None:
        super().__init__(app)
        self._limit = limit
        self._path_prefix = path_prefix
        self._group = group
        self._window = window_seconds
        self._redis_factory = redis_factory

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._limit <= 0 or not request.url.path.startswith(self._path_prefix):
            return await call_next(request)

        window = int(time.time()) // self._window
        key = f"ratelimit:{self._group}:{client_ip(request)}:{window}"
        try:
            redis = await self._redis_factory()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, self._window)
        except (aioredis.RedisError, OSError):
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path)
            return await call_next(request)

        if count > self._limit:
            exc = RateLimitError()
            body = error_response(
                exc.code, exc.message, getattr(request.state, "request_id", None)
            )
            retry_after = self._window - int(time.time()) % self._window
            return JSONResponse(
                status_code=exc.http_status,
                content=body.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
