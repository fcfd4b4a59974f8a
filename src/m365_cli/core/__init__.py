"""Core functionality for the Microsoft 365 CLI."""

from .client import ApiClient, RequestOptions
from .config import Config
from .exceptions import (
    M365CliError,
    AuthenticationError,
    ConfigurationError,
    ValidationError,
    APIError,
)

__all__ = [
    "ApiClient",
    "RequestOptions",
    "Config",
    "M365CliError",
    "AuthenticationError",
    "ConfigurationError",
    "ValidationError",
    "APIError",
]
