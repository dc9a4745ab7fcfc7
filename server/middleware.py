"""HTTP middleware for request/response logging."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.models import gen_id

logger = logging.getLogger(__name__)

# Slow request threshold in milliseconds
SLOW_REQUEST_THRESHOLD_MS = 1000

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its status, duration and request id.

    Streamed responses (SSE) are timed up to the first byte, so they are
    never reported as slow.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or gen_id("req")
        start_time = time.perf_counter()
        logger.debug("[%s] %s %s", request_id, request.method, request.url.path)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        duration_ms = (time.perf_counter() - start_time) * 1000
        streaming = response.headers.get("content-type", "").startswith("text/event-stream")
        self._log_response(request, response, duration_ms, request_id, streaming)
        return response

    def _log_response(
        self, request: Request, response: Response, duration_ms: float, request_id: str, streaming: bool
    ) -> None:
        method = request.method
        path = request.url.path
        status = response.status_code

        if status >= 500:
            logger.error("[%s] %s %s -> %d (%.1fms)", request_id, method, path, status, duration_ms)
        elif status >= 400:
            logger.warning("[%s] %s %s -> %d (%.1fms)", request_id, method, path, status, duration_ms)
        elif duration_ms > SLOW_REQUEST_THRESHOLD_MS and not streaming:
            logger.warning("[%s] %s %s -> %d (%.1fms) SLOW", request_id, method, path, status, duration_ms)
        else:
            logger.info("[%s] %s %s -> %d (%.1fms)", request_id, method, path, status, duration_ms)
