import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vaultnet.metrics import http_requests, http_request_duration
from vaultnet.middleware.rate_limiter import client_ip

log = structlog.get_logger()

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def normalize_path(path: str) -> str:
    """Collapse numeric item ids so metric labels stay low-cardinality."""
    return _NUMERIC_SEGMENT.sub("/{id}", path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

        # Clear and bind per-request context
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
            client_ip=client_ip(request),
        )

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.monotonic() - start
            log.exception("request_failed", duration_ms=round(duration * 1000, 2))
            raise

        duration = time.monotonic() - start
        status_code = response.status_code

        normalized_path = normalize_path(request.url.path)
        http_requests.labels(
            method=request.method, path=normalized_path, status_code=str(status_code)
        ).inc()
        http_request_duration.labels(method=request.method, path=normalized_path).observe(duration)

        log.info(
            "request_completed",
            status_code=status_code,
            duration_ms=round(duration * 1000, 2),
        )

        # Echo the request ID for traceability
        response.headers["X-Request-ID"] = request_id
        return response
