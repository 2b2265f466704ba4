"""Request middleware for correlation IDs, logging, headers and size limits."""

import logging
import re
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Context variable for correlation ID - accessible throughout the request lifecycle
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Alphanumeric, hyphens, underscores only, max 64 chars
_CORRELATION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


def is_valid_correlation_id(value: str | None) -> bool:
    """Check a client-supplied correlation ID is safe to log."""
    return bool(value and _CORRELATION_ID_PATTERN.match(value))


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware that manages correlation IDs for request tracing.

    Readiness pollers send one correlation ID per wait run, so every attempt
    of a run shows up under the same ID in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Extract or generate correlation ID and add to response headers."""
        client_correlation_id = request.headers.get(CORRELATION_ID_HEADER)
        if client_correlation_id and is_valid_correlation_id(client_correlation_id):
            correlation_id = client_correlation_id
        else:
            correlation_id = str(uuid4())

        correlation_id_var.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs request details and timing.

    Probe paths are hit every few seconds by pollers and orchestrators, so
    they are logged at DEBUG instead of INFO.
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: logging.Logger | None = None,
        expose_timing: bool = True,
        quiet_paths: frozenset[str] = frozenset(),
    ) -> None:
        super().__init__(app)
        self.logger = logger or logging.getLogger("agileflow.requests")
        self.expose_timing = expose_timing
        self.quiet_paths = quiet_paths

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Log request details and processing time."""
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time_ms = (time.perf_counter() - start_time) * 1000

        level = logging.DEBUG if request.url.path in self.quiet_paths else logging.INFO
        self.logger.log(
            level,
            "Request completed | method=%s | path=%s | status=%d | time=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            process_time_ms,
        )

        if self.expose_timing:
            response.headers["X-Process-Time"] = f"{process_time_ms:.2f}ms"
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Probe and info bodies must never be cached by proxies
        response.headers.setdefault("Cache-Control", "no-store")
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to limit request body size."""

    def __init__(self, app: ASGIApp, max_size: int) -> None:
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Check declared request size before processing."""
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > self.max_size:
                    return JSONResponse(
                        status_code=413,
                        content={"detail": "Request body too large"},
                    )
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"detail": "Invalid Content-Length header"},
                )
        return await call_next(request)
