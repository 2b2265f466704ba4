"""Custom exception classes for the API."""

from typing import Any


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ServiceUnavailableError(APIError):
    """Raised when a dependency the service needs is not available."""

    def __init__(
        self,
        message: str = "Service not ready",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, status_code=503, details=details)
