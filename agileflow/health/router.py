"""Health check endpoints.

``/health`` answers "is the process up" and always returns 200, reporting
``degraded`` when a dependency is unreachable. ``/ready`` answers "can it
serve traffic" and returns 503 until every dependency check passes.
"""

import logging
import time
from datetime import UTC, datetime
from typing import Annotated

import psutil
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agileflow.config.settings import get_settings
from agileflow.core.exceptions import ServiceUnavailableError
from agileflow.db.session import get_db_no_commit, ping_database
from agileflow.health.schemas import (
    HEALTH_DEGRADED,
    HEALTH_OK,
    NOT_READY,
    READY,
    HealthResponse,
    MemoryUsage,
    ReadinessResponse,
    ServiceStatus,
)

_MB = 1024 * 1024
_PROCESS_STARTED = time.monotonic()

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def memory_usage() -> MemoryUsage:
    """Current process memory, rounded to whole megabytes."""
    info = psutil.Process().memory_info()
    return MemoryUsage(used=round(info.rss / _MB), total=round(info.vms / _MB))


async def check_database(db: AsyncSession, timeout: float) -> tuple[str, str | None]:
    """Probe the database and classify the outcome.

    Returns:
        ``(result, error)`` where result is ``ok``, ``timeout`` or ``error``.
    """
    try:
        await ping_database(db, timeout=timeout)
    except TimeoutError:
        logger.warning(
            "Database health check timed out",
            extra={"timeout_seconds": timeout},
        )
        return "timeout", f"Database check timed out after {timeout}s"
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return "error", str(e)
    return "ok", None


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Check if the application is running",
)
async def health(
    db: Annotated[AsyncSession, Depends(get_db_no_commit)],
) -> HealthResponse:
    """Liveness probe - is the application running?"""
    started = time.perf_counter()
    result, error = await check_database(db, get_settings().health_check_timeout)
    response_time = f"{round((time.perf_counter() - started) * 1000)}ms"

    if result == "ok":
        services = ServiceStatus(database="connected", memory=memory_usage())
    else:
        services = ServiceStatus(database="error", error=error)

    return HealthResponse(
        status=HEALTH_OK if result == "ok" else HEALTH_DEGRADED,
        timestamp=datetime.now(UTC),
        uptime=round(time.monotonic() - _PROCESS_STARTED, 3),
        response_time=response_time,
        services=services,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Check if the application is ready to serve traffic",
    responses={
        status.HTTP_200_OK: {"description": "Service is ready"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is not ready"},
    },
)
async def readiness(
    db: Annotated[AsyncSession, Depends(get_db_no_commit)],
) -> ReadinessResponse:
    """Readiness probe - is the application ready to serve traffic?

    Returns 503 if any check fails (for Kubernetes compatibility).
    """
    checks: dict[str, str] = {}
    checks["database"], _ = await check_database(
        db, get_settings().health_check_timeout
    )

    now = datetime.now(UTC)
    if any(v != "ok" for v in checks.values()):
        raise ServiceUnavailableError(
            details={
                "status": NOT_READY,
                "timestamp": now.isoformat(),
                "checks": checks,
            }
        )

    return ReadinessResponse(
        status=READY,
        timestamp=now,
        services=sorted(checks),
        checks=checks,
    )
