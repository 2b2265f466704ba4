"""Tests for health check endpoints."""

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from agileflow.config.settings import Settings
from agileflow.db.session import get_db_no_commit
from agileflow.main import app

SessionClient = Callable[[Any], AbstractAsyncContextManager[AsyncClient]]


@pytest.fixture
def client_with_session() -> SessionClient:
    """Client whose database dependency yields the given session object."""

    @asynccontextmanager
    async def _client(session: Any) -> AsyncGenerator[AsyncClient]:
        async def override_get_db() -> AsyncGenerator[Any]:
            yield session

        app.dependency_overrides[get_db_no_commit] = override_get_db
        try:
            async with AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test",
            ) as ac:
                yield ac
        finally:
            app.dependency_overrides.clear()

    return _client


def unreachable_session() -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.execute.side_effect = OperationalError(
        "SELECT 1", {}, ConnectionRefusedError("connection refused")
    )
    return session


def slow_session() -> AsyncMock:
    async def hang(*args: Any, **kwargs: Any) -> None:
        await asyncio.sleep(5)

    session = AsyncMock(spec=AsyncSession)
    session.execute.side_effect = hang
    return session


@pytest.mark.asyncio
async def test_api_info(client: AsyncClient) -> None:
    """Test the prefix root describes the API."""
    response = await client.get("/api")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "AgileFlow API"
    assert data["documentation"] == "/api/docs"
    assert data["health"] == "/api/health"
    assert data["version"]


@pytest.mark.asyncio
async def test_liveness_probe(client: AsyncClient) -> None:
    """Test liveness endpoint returns ok with service details."""
    response = await client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["services"]["database"] == "connected"
    assert data["services"]["memory"]["used"] > 0
    assert data["uptime"] >= 0
    assert data["response_time"].endswith("ms")
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_readiness_probe(client: AsyncClient) -> None:
    """Test readiness endpoint returns ready with checks."""
    response = await client.get("/api/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok"}
    assert data["services"] == ["database"]


@pytest.mark.asyncio
async def test_liveness_degraded_when_database_down(
    client_with_session: SessionClient,
) -> None:
    """Test liveness stays 200 but reports degraded when the database fails."""
    async with client_with_session(unreachable_session()) as ac:
        response = await ac.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["services"]["database"] == "error"
    assert "connection refused" in data["services"]["error"]
    assert data["services"]["memory"] is None


@pytest.mark.asyncio
async def test_readiness_unavailable_when_database_down(
    client_with_session: SessionClient,
) -> None:
    """Test readiness returns 503 not_ready when the database fails."""
    async with client_with_session(unreachable_session()) as ac:
        response = await ac.get("/api/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"] == {"database": "error"}
    assert data["error"] == "ServiceUnavailableError"
    assert data["detail"] == "Service not ready"
    assert data["correlation_id"] == response.headers["X-Correlation-ID"]


@pytest.mark.asyncio
async def test_readiness_times_out_slow_database(
    client_with_session: SessionClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test a hanging database query is cut off by the probe timeout."""
    monkeypatch.setattr(
        "agileflow.health.router.get_settings",
        lambda: Settings(health_check_timeout=0.05),
    )
    async with client_with_session(slow_session()) as ac:
        response = await ac.get("/api/ready")

    assert response.status_code == 503
    assert response.json()["checks"] == {"database": "timeout"}


@pytest.mark.asyncio
async def test_probe_responses_not_cacheable(client: AsyncClient) -> None:
    """Test probe responses tell proxies not to cache them."""
    response = await client.get("/api/ready")

    assert response.headers.get("Cache-Control") == "no-store"


def test_server_entry_point_is_cli_serve() -> None:
    """Test the app module exposes no second uvicorn launcher."""
    import agileflow.main

    assert not hasattr(agileflow.main, "main")
