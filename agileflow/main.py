"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agileflow.config.settings import get_app_version, get_settings
from agileflow.core.exceptions import APIError
from agileflow.core.logging import setup_logging
from agileflow.core.middleware import (
    CORRELATION_ID_HEADER,
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
    correlation_id_var,
)
from agileflow.db.session import get_engine
from agileflow.health.router import router as health_router
from agileflow.health.schemas import ApiInfo

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation
OPENAPI_TAGS = [
    {
        "name": "app",
        "description": "API information",
    },
    {
        "name": "health",
        "description": "Health check endpoints for liveness and readiness probes",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown.

    Startup does not block on the database; ``/ready`` reports 503 until it
    is reachable so pollers can tell "up" apart from "ready".
    """
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info(
        "AgileFlow API starting | prefix=%s | docs=%s",
        settings.api_prefix or "/",
        f"{settings.api_prefix}/docs" if settings.debug else "disabled",
    )

    yield

    logger.info("Application shutting down")
    try:
        await get_engine().dispose()
        logger.info("Database engine disposed successfully")
    except Exception as e:
        logger.error("Error disposing database engine: %s", e)


def _error_headers(correlation_id: str) -> dict[str, str] | None:
    return {CORRELATION_ID_HEADER: correlation_id} if correlation_id else None


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors with correlation ID for debugging."""
    correlation_id = correlation_id_var.get()
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error": type(exc).__name__,
            "correlation_id": correlation_id,
            **exc.details,
        },
        headers=_error_headers(correlation_id),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with correlation ID."""
    correlation_id = correlation_id_var.get()
    # ctx may contain non-serializable objects
    errors = [
        {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "detail": errors,
            "error": "ValidationError",
            "correlation_id": correlation_id,
        },
        headers=_error_headers(correlation_id),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions with correlation ID for debugging."""
    correlation_id = correlation_id_var.get()
    logger.exception(
        "Unhandled exception",
        extra={"correlation_id": correlation_id, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": "InternalServerError",
            "correlation_id": correlation_id,
        },
        headers=_error_headers(correlation_id),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    prefix = settings.api_prefix

    # OpenAPI docs only in debug mode
    app = FastAPI(
        title="AgileFlow API",
        description="The AgileFlow project management API",
        version=get_app_version(),
        debug=settings.debug,
        lifespan=lifespan,
        docs_url=f"{prefix}/docs" if settings.debug else None,
        redoc_url=f"{prefix}/redoc" if settings.debug else None,
        openapi_url=f"{prefix}/openapi.json" if settings.debug else None,
        openapi_tags=OPENAPI_TAGS,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", CORRELATION_ID_HEADER],
            expose_headers=[CORRELATION_ID_HEADER, "X-Process-Time"],
        )

    # Order matters - first added = innermost
    app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.max_request_size)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RequestLoggingMiddleware,
        expose_timing=settings.expose_timing_header,
        quiet_paths=frozenset({f"{prefix}/health", f"{prefix}/ready"}),
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.add_exception_handler(APIError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        validation_error_handler,  # pyright: ignore[reportArgumentType]
    )
    app.add_exception_handler(
        Exception,
        generic_exception_handler,  # pyright: ignore[reportArgumentType]
    )

    @app.get(prefix or "/", response_model=ApiInfo, tags=["app"])
    async def api_info() -> ApiInfo:
        """Describe the API and where its docs and probes live."""
        return ApiInfo(
            name="AgileFlow API",
            version=get_app_version(),
            description="Backend API for AgileFlow project management application",
            documentation=f"{prefix}/docs",
            health=f"{prefix}/health",
        )

    app.include_router(health_router, prefix=prefix)

    return app


app = create_app()

