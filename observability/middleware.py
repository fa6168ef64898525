"""
Request instrumentation middleware.

Binds the correlation id for the request, records the HTTP RED metrics under a
low-cardinality endpoint label and logs one line per request.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import correlation_id_context, get_logger
from .metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

logger = get_logger(__name__)

SLOW_REQUEST_SECONDS = 2.0
REQUEST_ID_HEADERS = ("X-Request-ID", "X-Correlation-ID")
QUIET_PREFIXES = ("/health", "/metrics")

# Project, slug and version segments are unbounded; provider ids are not
_ID_SEGMENT = re.compile(r"/(projects|slug|versions)/[^/]+")


def sanitize_path(path: str) -> str:
    """Replace project, slug and version identifiers with ``{id}``."""
    return _ID_SEGMENT.sub(lambda m: f"/{m.group(1)}/{{id}}", path)


def endpoint_label(request: Request) -> str:
    """The matched route template, or the sanitized path for unmatched requests."""
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    return sanitize_path(request.url.path)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Correlation id, metrics and access logging for every request.

    The id comes from ``X-Request-ID`` or ``X-Correlation-ID`` when the caller
    sends one and is echoed back as ``X-Request-ID``.
    """

    def __init__(self, app: ASGIApp, enable_request_logging: bool = True):
        super().__init__(app)
        self.enable_request_logging = enable_request_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = next((request.headers[h] for h in REQUEST_ID_HEADERS if request.headers.get(h)), None)

        with correlation_id_context(incoming) as req_id:
            request.state.correlation_id = req_id
            method = request.method
            quiet = request.url.path.startswith(QUIET_PREFIXES)
            in_progress = http_requests_in_progress.labels(method=method, endpoint=sanitize_path(request.url.path))

            in_progress.inc()
            started = time.perf_counter()
            status = 500
            try:
                response = await call_next(request)
                status = response.status_code
                response.headers["X-Request-ID"] = req_id
                return response
            except Exception as exc:
                logger.error(
                    f"[ObservabilityMiddleware] {method} {request.url.path} failed: {type(exc).__name__}",
                    exc_info=True,
                )
                raise
            finally:
                in_progress.dec()
                duration = time.perf_counter() - started
                endpoint = endpoint_label(request)
                http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
                http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
                if not quiet:
                    self._log_request(method, endpoint, status, duration)

    def _log_request(self, method: str, endpoint: str, status: int, duration: float) -> None:
        fields = {
            "method": method,
            "endpoint": endpoint,
            "status_code": status,
            "duration_seconds": round(duration, 3),
        }
        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request: {method} {endpoint}", extra=fields)
        elif self.enable_request_logging:
            logger.info(f"{method} {endpoint} {status}", extra=fields)
