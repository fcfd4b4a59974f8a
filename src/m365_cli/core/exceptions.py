"""Exception classes for the Microsoft 365 CLI."""

from typing import Optional, Dict, Any


class M365CliError(Exception):
    """Base exception for all CLI errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(M365CliError):
    """Raised when configuration is invalid or missing."""
    pass


class AuthenticationError(M365CliError):
    """Raised when no usable access token can be obtained."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ValidationError(M365CliError):
    """Raised when command options fail validation.

    Always raised before any request is issued.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        """Initialize validation error.

        Args:
            message: Human-readable validation message
            field: Option that failed validation (optional)
        """
        details = {'option': field} if field else {}
        super().__init__(message, details)
        self.field = field


class APIError(M365CliError):
    """Raised when a Graph or SharePoint request fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize API error with HTTP details.

        Args:
            message: Error message extracted from the response
            status_code: HTTP status code if available
            response_text: Response body text if available
            details: Additional error details
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_text = response_text

        if status_code:
            self.details['status_code'] = status_code


class RateLimitError(APIError):
    """Raised when the service throttles the request."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        if retry_after:
            message += f". Retry after {retry_after} seconds"
        super().__init__(message, status_code=429, details={'retry_after': retry_after})
        self.retry_after = retry_after


class TimeoutError(M365CliError):
    """Raised when a request times out."""

    def __init__(self, operation: str, timeout: float):
        message = f"Operation '{operation}' timed out after {timeout} seconds"
        super().__init__(message, {'operation': operation, 'timeout': timeout})


class ConnectionError(M365CliError):
    """Raised when connection to the service fails."""

    def __init__(self, url: str, reason: Optional[str] = None):
        message = f"Failed to connect to {url}"
        if reason:
            message += f": {reason}"
        super().__init__(message, {'url': url})
