"""
Request middleware: request id, access log line, timing header.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from station_queue.core.logging import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind request id, staff id and path to every log line of the request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            staff_id=request.headers.get("X-Staff-Id"),
            method=request.method,
            path=request.url.path,
        )
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error("request_failed", error=str(e), duration_ms=_elapsed_ms(started))
                raise

            duration_ms = _elapsed_ms(started)
            logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "staff_id", "method", "path")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
