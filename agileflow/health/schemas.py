"""Probe and API information response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

HEALTH_OK = "ok"
HEALTH_DEGRADED = "degraded"
READY = "ready"
NOT_READY = "not_ready"


class MemoryUsage(BaseModel):
    """Process memory in megabytes."""

    used: int = Field(..., description="Resident set size (MB)")
    total: int = Field(..., description="Virtual memory size (MB)")


class ServiceStatus(BaseModel):
    """Status of the services behind the liveness probe."""

    database: Literal["connected", "error"]
    memory: MemoryUsage | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Response for the liveness probe."""

    status: Literal["ok", "degraded"] = Field(..., description="Health status")
    timestamp: datetime
    uptime: float = Field(..., description="Seconds since the process started")
    response_time: str = Field(..., description="Time spent on checks, e.g. '3ms'")
    services: ServiceStatus


class ReadinessResponse(BaseModel):
    """Response for the readiness probe with dependency checks."""

    status: Literal["ready", "not_ready"] = Field(..., description="Overall status")
    timestamp: datetime
    services: list[str] = Field(
        default_factory=list,
        description="Dependencies that were verified",
    )
    checks: dict[str, str] = Field(
        default_factory=dict,
        description="Individual dependency check results (ok, timeout, error)",
    )


class ApiInfo(BaseModel):
    """API self-description served at the prefix root."""

    name: str
    version: str
    description: str
    documentation: str
    health: str
