"""Application settings using Pydantic Settings."""

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version as get_version

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Validation constants
POOL_TIMEOUT_MIN = 1  # Minimum 1 second
POOL_TIMEOUT_MAX = 300  # Maximum 5 minutes
STATEMENT_TIMEOUT_MIN = 1000  # Minimum 1 second (in ms)
STATEMENT_TIMEOUT_MAX = 300000  # Maximum 5 minutes (in ms)
HEALTH_CHECK_TIMEOUT_MAX = 60.0  # Seconds


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api"

    # Database
    database_url: str = "sqlite+aiosqlite:///./agileflow.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_echo: bool = False
    database_pool_timeout: int = 30  # Connection pool timeout in seconds
    database_statement_timeout: int = 30000  # Statement timeout in milliseconds

    # CORS settings
    # WARNING: Do not use ["*"] with allow_credentials=True (browsers reject this)
    cors_origins: list[str] = ["http://localhost:3000"]

    # Request size limits
    max_request_size: int = 10 * 1024 * 1024  # 10MB default

    # Timing/debug headers (disable in production to prevent timing attacks)
    expose_timing_header: bool = True

    # Server-side probe timeout in seconds
    health_check_timeout: float = 5.0

    # Readiness polling (client side)
    backend_url: str = "http://localhost:3001"
    readiness_max_wait_ms: int = 60000
    readiness_poll_interval_ms: int = 2000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            msg = f"Invalid log level: {v}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return upper_v

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, v: str) -> str:
        """Ensure the prefix has a leading slash and no trailing slash."""
        stripped = v.strip().strip("/")
        return f"/{stripped}" if stripped else ""

    @field_validator("database_pool_timeout")
    @classmethod
    def validate_pool_timeout(cls, v: int) -> int:
        """Validate database pool timeout is within reasonable bounds."""
        if v < POOL_TIMEOUT_MIN:
            msg = f"database_pool_timeout must be at least {POOL_TIMEOUT_MIN} second"
            raise ValueError(msg)
        if v > POOL_TIMEOUT_MAX:
            msg = f"database_pool_timeout must be at most {POOL_TIMEOUT_MAX} seconds"
            raise ValueError(msg)
        return v

    @field_validator("database_statement_timeout")
    @classmethod
    def validate_statement_timeout(cls, v: int) -> int:
        """Validate database statement timeout is within reasonable bounds."""
        if v < STATEMENT_TIMEOUT_MIN:
            msg = f"database_statement_timeout must be at least {STATEMENT_TIMEOUT_MIN}ms (1 second)"
            raise ValueError(msg)
        if v > STATEMENT_TIMEOUT_MAX:
            msg = f"database_statement_timeout must be at most {STATEMENT_TIMEOUT_MAX}ms (5 minutes)"
            raise ValueError(msg)
        return v

    @field_validator("health_check_timeout")
    @classmethod
    def validate_health_check_timeout(cls, v: float) -> float:
        """Validate the probe timeout is positive and bounded."""
        if v <= 0 or v > HEALTH_CHECK_TIMEOUT_MAX:
            msg = (
                f"health_check_timeout must be greater than 0 and at most "
                f"{HEALTH_CHECK_TIMEOUT_MAX} seconds"
            )
            raise ValueError(msg)
        return v

    @field_validator("readiness_max_wait_ms", "readiness_poll_interval_ms")
    @classmethod
    def validate_non_negative_ms(cls, v: int) -> int:
        """Readiness durations cannot be negative."""
        if v < 0:
            msg = "readiness durations must be non-negative milliseconds"
            raise ValueError(msg)
        return v

    @property
    def async_database_url(self) -> str:
        """Get async database URL for psycopg3."""
        url = self.database_url
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+psycopg://", 1)
        return url

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.async_database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def get_app_version() -> str:
    """Get application version from package metadata."""
    try:
        return get_version("agileflow")
    except PackageNotFoundError:
        return "0.0.0-dev"
