"""Configuration management for the Microsoft 365 CLI.

Values come from, in priority order: command-line options, environment
variables, the .env file, the YAML profile file (~/.m365-cli.yml) and
finally the defaults below.
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from dotenv import dotenv_values, load_dotenv

from .exceptions import ConfigurationError

VERSION = '0.1.0'

# Azure AD application registered for the CLI (public client)
DEFAULT_CLIENT_ID = '31359c7f-bcdd-4edd-a3ab-8d6bd3d5f3b1'


@dataclass
class Config:
    """Configuration for the Microsoft 365 CLI."""

    # Azure AD
    tenant: str = field(default_factory=lambda: os.getenv('M365_TENANT', 'common'))
    client_id: str = field(default_factory=lambda: os.getenv('M365_CLIENT_ID', DEFAULT_CLIENT_ID))
    authority_url: str = field(
        default_factory=lambda: os.getenv('M365_AUTHORITY_URL', 'https://login.microsoftonline.com')
    )

    # Microsoft Graph
    graph_resource: str = field(
        default_factory=lambda: os.getenv('M365_GRAPH_RESOURCE', 'https://graph.microsoft.com')
    )

    # Persisted login state (written by the login commands)
    graph_refresh_token: Optional[str] = field(default_factory=lambda: os.getenv('M365_GRAPH_REFRESH_TOKEN') or None)
    spo_refresh_token: Optional[str] = field(default_factory=lambda: os.getenv('M365_SPO_REFRESH_TOKEN') or None)
    spo_site_url: Optional[str] = field(default_factory=lambda: os.getenv('M365_SPO_SITE_URL') or None)
    token_file: Path = field(default_factory=lambda: Path(os.getenv('M365_TOKEN_FILE', '.env')))

    # Timeouts
    request_timeout: int = field(default_factory=lambda: int(os.getenv('M365_REQUEST_TIMEOUT', '120')))
    connect_timeout: int = field(default_factory=lambda: int(os.getenv('M365_CONNECT_TIMEOUT', '30')))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv('LOG_LEVEL', 'WARNING'))

    # Output formatting
    output_format: str = field(default='json')  # json, table, yaml, auto

    # Profile management
    profile: str = field(default='default')
    config_file: Optional[Path] = field(default=None)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> 'Config':
        """Create config from environment variables and optional .env file.

        Args:
            env_file: Path to .env file (default: M365_TOKEN_FILE or .env in current dir)

        Returns:
            Config instance with loaded values
        """
        env_file = env_file or Path(os.getenv('M365_TOKEN_FILE', '.env'))
        if env_file.exists():
            load_dotenv(env_file)

        return cls()

    @classmethod
    def from_file(cls, config_file: Path, profile: str = 'default') -> 'Config':
        """Load configuration from YAML file.

        Args:
            config_file: Path to YAML configuration file
            profile: Profile name to load

        Returns:
            Config instance with loaded values

        Raises:
            ConfigurationError: If file doesn't exist or is invalid
        """
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_file}")

        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {config_file}")

        profiles = data.get('profiles', {})
        if profile != 'default' and profile not in profiles:
            raise ConfigurationError(f"Profile '{profile}' not found in {config_file}")

        config_data = {**data.get('defaults', {}), **profiles.get(profile, {})}

        # The profile's token file holds its login state
        token_file = os.getenv('M365_TOKEN_FILE') or config_data.get('token_file') or '.env'
        token_file = Path(os.path.expandvars(str(token_file))).expanduser()
        stored = dotenv_values(token_file) if token_file.exists() else {}

        config = cls()

        # Environment variables win over the token file, which wins over file values
        env_names = config.env_names()
        for key, value in config_data.items():
            if not hasattr(config, key):
                continue
            env_name = env_names.get(key)
            if env_name and (os.getenv(env_name) or stored.get(env_name)):
                continue
            if isinstance(value, str) and '${' in value:
                value = os.path.expandvars(value)
            setattr(config, key, value)

        for key, env_name in env_names.items():
            value = stored.get(env_name)
            if key == 'token_file' or not value or os.getenv(env_name):
                continue
            if isinstance(getattr(config, key), int):
                value = int(value)
            setattr(config, key, value)

        config.token_file = token_file
        config.profile = profile
        config.config_file = config_file

        return config

    @staticmethod
    def env_names() -> Dict[str, str]:
        """Map of config field to the environment variable that sets it."""
        return {
            'tenant': 'M365_TENANT',
            'client_id': 'M365_CLIENT_ID',
            'authority_url': 'M365_AUTHORITY_URL',
            'graph_resource': 'M365_GRAPH_RESOURCE',
            'graph_refresh_token': 'M365_GRAPH_REFRESH_TOKEN',
            'spo_refresh_token': 'M365_SPO_REFRESH_TOKEN',
            'spo_site_url': 'M365_SPO_SITE_URL',
            'token_file': 'M365_TOKEN_FILE',
            'request_timeout': 'M365_REQUEST_TIMEOUT',
            'connect_timeout': 'M365_CONNECT_TIMEOUT',
            'log_level': 'LOG_LEVEL',
        }

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings.

        Returns:
            List of warning messages (empty if all valid)
        """
        warnings = []

        if not self.client_id:
            warnings.append("No Azure AD client id configured (set M365_CLIENT_ID)")

        for name in ('authority_url', 'graph_resource'):
            value = getattr(self, name)
            if value and not value.startswith('https://'):
                warnings.append(f"Invalid {name} format: {value}")

        if self.spo_site_url and not self.spo_site_url.startswith('https://'):
            warnings.append(f"Invalid SharePoint site URL: {self.spo_site_url}")

        if self.spo_site_url and not self.spo_refresh_token:
            warnings.append("SharePoint site URL set without a refresh token (run: m365 spo login)")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary with secrets masked."""
        return {
            'tenant': self.tenant,
            'client_id': self.client_id,
            'authority_url': self.authority_url,
            'graph_resource': self.graph_resource,
            'graph_refresh_token': '***' if self.graph_refresh_token else None,
            'spo_refresh_token': '***' if self.spo_refresh_token else None,
            'spo_site_url': self.spo_site_url,
            'token_file': str(self.token_file),
            'request_timeout': self.request_timeout,
            'connect_timeout': self.connect_timeout,
            'log_level': self.log_level,
            'output_format': self.output_format,
            'profile': self.profile,
        }

    @property
    def token_endpoint(self) -> str:
        """Azure AD v1 token endpoint for the configured tenant."""
        return f"{self.authority_url.rstrip('/')}/{self.tenant}/oauth2/token"

    @property
    def device_code_endpoint(self) -> str:
        """Azure AD v1 device code endpoint for the configured tenant."""
        return f"{self.authority_url.rstrip('/')}/{self.tenant}/oauth2/devicecode"

    def get_headers(self) -> Dict[str, str]:
        """Default headers sent with every request."""
        return {
            'User-Agent': f'NONISV|m365-cli/{VERSION}',
        }

    def __repr__(self) -> str:
        return f"Config(profile={self.profile}, tenant={self.tenant})"
