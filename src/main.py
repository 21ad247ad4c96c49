"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.ms_catalog.api.router import router as catalog_router
from src.ms_common.database import engine, ping_database
from src.ms_common.errors import AppError
from src.ms_common.redis_client import close_redis, ping_redis
from src.ms_common.response import error_response
from src.ms_gateway.api.router import router as auth_router
from src.ms_gateway.middleware.rate_limit import RateLimitMiddleware
from src.ms_gateway.middleware.request_log import RequestLogMiddleware
from src.ms_order.api.router import router as order_router
from src.ms_payment.api.router import router as payment_router
from src.ms_payment.application.service import close_reconciliation_service
from src.ms_payment.application.worker import get_notification_worker

API_PREFIX = "/api/v1"

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, probe Redis, start the webhook worker. Shutdown: reverse."""
    await ping_database()
    if not await ping_redis():
        logger.warning("Redis unreachable, status polling will not be rate limited")
    worker = get_notification_worker()
    await worker.start()
    yield
    await worker.stop()
    await close_reconciliation_service()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Added first so it runs inside RequestLogMiddleware and sees the request_id
app.add_middleware(
    RateLimitMiddleware,
    limit=settings.STATUS_POLL_RATE_LIMIT_PER_MINUTE,
    path_prefix=f"{API_PREFIX}/payments/status/",
)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, getattr(request.state, "request_id", None))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(catalog_router, prefix=API_PREFIX)
app.include_router(order_router, prefix=API_PREFIX)
app.include_router(payment_router, prefix=API_PREFIX)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
