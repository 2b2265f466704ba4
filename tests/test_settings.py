"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from agileflow.config.settings import Settings


def test_defaults() -> None:
    """Test readiness defaults match the polling contract."""
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:")

    assert settings.api_prefix == "/api"
    assert settings.backend_url == "http://localhost:3001"
    assert settings.readiness_max_wait_ms == 60000
    assert settings.readiness_poll_interval_ms == 2000
    assert settings.is_sqlite


@pytest.mark.parametrize(
    ("value", "expected"),
    [("api", "/api"), ("/api/", "/api"), ("/v1/api", "/v1/api"), ("/", "")],
)
def test_api_prefix_normalized(value: str, expected: str) -> None:
    """Test the API prefix is normalized."""
    assert Settings(api_prefix=value).api_prefix == expected


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgresql://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
        ("postgres://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
        ("sqlite+aiosqlite:///x.db", "sqlite+aiosqlite:///x.db"),
    ],
)
def test_async_database_url(url: str, expected: str) -> None:
    """Test database URLs are rewritten for async drivers."""
    settings = Settings(database_url=url)

    assert settings.async_database_url == expected
    assert settings.is_sqlite is expected.startswith("sqlite")


def test_log_level_uppercased() -> None:
    """Test log level is normalized."""
    assert Settings(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"log_level": "LOUD"},
        {"health_check_timeout": 0},
        {"health_check_timeout": 61},
        {"readiness_max_wait_ms": -1},
        {"readiness_poll_interval_ms": -1},
        {"database_pool_timeout": 0},
        {"database_statement_timeout": 10},
    ],
)
def test_invalid_values_rejected(overrides: dict[str, object]) -> None:
    """Test out-of-range settings fail validation."""
    with pytest.raises(ValidationError):
        Settings(**overrides)  # type: ignore[arg-type]


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings are read from the environment."""
    monkeypatch.setenv("BACKEND_URL", "http://backend:3001")
    monkeypatch.setenv("READINESS_MAX_WAIT_MS", "5000")

    settings = Settings()

    assert settings.backend_url == "http://backend:3001"
    assert settings.readiness_max_wait_ms == 5000


def test_only_used_settings_declared() -> None:
    """Test template leftovers are not part of the settings surface."""
    assert "app_name" not in Settings.model_fields
