"""m365-cli - Microsoft Graph and SharePoint Online from the command line.

Each command validates its options, acquires an access token for the target
resource and prints the JSON returned by the service.
"""

__version__ = "0.1.0"

from m365_cli.core.client import ApiClient
from m365_cli.core.config import Config
from m365_cli.core.exceptions import (
    M365CliError,
    AuthenticationError,
    ConfigurationError,
    ValidationError,
    APIError,
)

__all__ = [
    "ApiClient",
    "Config",
    "M365CliError",
    "AuthenticationError",
    "ConfigurationError",
    "ValidationError",
    "APIError",
    "__version__",
]
