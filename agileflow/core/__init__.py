"""Core utilities and middleware."""

from agileflow.core.exceptions import APIError, ServiceUnavailableError
from agileflow.core.middleware import correlation_id_var

__all__ = [
    "APIError",
    "ServiceUnavailableError",
    "correlation_id_var",
]
