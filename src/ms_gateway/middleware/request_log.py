"""Request logging middleware.

One line per request on the `ms.request` logger:
    INFO [POST] /api/v1/orders → 201 (23ms) req_a1b2c3d4e5f6

The request id is taken from an inbound X-Request-ID header when a proxy or
the storefront already set one, otherwise generated. It is stored on
request.state for ApiResponse envelopes and echoed in the response header.
Server errors log at WARNING; health probes at DEBUG.
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ms.request")

_QUIET_PATHS = frozenset({"/health"})
_INBOUND_ID = re.compile(r"^[A-Za-z0-9_.\-]{1,64}$")


def resolve_request_id(header_value: str | None) -> str:
    if header_value and _INBOUND_ID.match(header_value):
        return header_value
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        if response.status_code >= 500:
            level = logging.WARNING
        elif request.url.path in _QUIET_PATHS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response
