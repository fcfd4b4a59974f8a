"""Main CLI entry point for the Microsoft 365 CLI."""

import sys
from pathlib import Path
from typing import Dict, Optional
import click
import httpx
from rich.console import Console
from rich.markup import escape

from .core.auth import TokenManager
from .core.client import ApiClient
from .core.config import Config, VERSION
from .core.exceptions import (
    M365CliError,
    AuthenticationError,
    ConfigurationError,
    ValidationError,
)
from .core.logging import setup_logging
from .formatters import format_output

from .commands.graph import graph_group
from .commands.spo import spo_group

# Console for error output
console = Console(stderr=True)

DEFAULT_CONFIG_FILE = Path.home() / '.m365-cli.yml'


class Context:
    """Click context object for sharing state between commands."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        """Initialize context.

        Args:
            transport: Optional httpx transport handed to every client
        """
        self.config: Optional[Config] = None
        self.client: Optional[ApiClient] = None
        self.output_format: str = 'json'
        self.debug: bool = False
        self.verbose: bool = False
        self.transport = transport
        self._token_managers: Dict[str, TokenManager] = {}

    def ensure_client(self) -> ApiClient:
        """Ensure client is initialized.

        Raises:
            ConfigurationError: If client cannot be initialized
        """
        if not self.client:
            if not self.config:
                raise ConfigurationError("Configuration not initialized")
            self.client = ApiClient(self.config, transport=self.transport)
        return self.client

    def ensure_auth(self, service: str) -> TokenManager:
        """Return the token manager for a service, shared for the process."""
        if service not in self._token_managers:
            self._token_managers[service] = TokenManager(self.config, service, self.ensure_client())
        return self._token_managers[service]

    def output(self, data, **kwargs):
        """Write a response payload to stdout in the configured format."""
        try:
            formatted = format_output(data, self.output_format, **kwargs)
        except Exception as e:
            if self.debug:
                console.print_exception()
            else:
                console.print(f"[red]Error formatting output: {e}[/red]")
            sys.exit(1)
        click.echo(formatted)

    def handle_error(self, error: Exception):
        """Print an error and exit with the matching status code."""
        if self.debug and not isinstance(error, ValidationError):
            console.print_exception()
        elif isinstance(error, AuthenticationError):
            console.print(f"[red]Authentication failed: {escape(error.message)}[/red]")
            hint = error.details.get('hint')
            if hint:
                console.print(f"[yellow]Run: {hint}[/yellow]")
        elif isinstance(error, ConfigurationError):
            console.print(f"[red]Configuration error: {escape(error.message)}[/red]")
        elif isinstance(error, M365CliError):
            console.print(f"[red]Error: {escape(error.message)}[/red]")
        else:
            console.print(f"[red]Unexpected error: {escape(str(error))}[/red]")

        if isinstance(error, AuthenticationError):
            sys.exit(3)
        elif isinstance(error, ConfigurationError):
            sys.exit(2)
        else:
            sys.exit(1)


def load_config(context: Context, config_file: Optional[Path], profile: str) -> Config:
    """Load configuration from the given file, the default file or the environment."""
    if config_file:
        try:
            return Config.from_file(config_file, profile)
        except ConfigurationError as e:
            context.handle_error(e)
        except (OSError, TypeError, ValueError) as e:
            context.handle_error(ConfigurationError(f"Failed to load config file: {e}"))

    if DEFAULT_CONFIG_FILE.exists():
        try:
            return Config.from_file(DEFAULT_CONFIG_FILE, profile)
        except ConfigurationError as e:
            if profile != 'default':
                context.handle_error(e)
            console.print(f"[yellow]Ignoring {DEFAULT_CONFIG_FILE}: {e.message}[/yellow]")

    return Config.from_env()


@click.group()
@click.option(
    '--format',
    'output_format',
    type=click.Choice(['json', 'table', 'yaml', 'auto']),
    default=None,
    help='Output format (default: json)'
)
@click.option(
    '--profile',
    default='default',
    help='Configuration profile to use'
)
@click.option(
    '--config',
    'config_file',
    type=click.Path(exists=False, path_type=Path),
    help='Configuration file path'
)
@click.option(
    '--timeout',
    type=int,
    envvar='M365_REQUEST_TIMEOUT',
    help='Request timeout in seconds'
)
@click.option(
    '--debug/--no-debug',
    envvar='DEBUG',
    default=False,
    help='Log web requests and responses'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Log progress messages'
)
@click.version_option(version=VERSION, prog_name='m365-cli')
@click.pass_context
def cli(ctx, output_format, profile, config_file, timeout, debug, verbose):
    """Manage Microsoft 365 through Microsoft Graph and SharePoint Online.

    Log in to a service before running its commands.

    Environment variables:
        M365_TENANT: Azure AD tenant (default: common)
        M365_CLIENT_ID: Azure AD application id
        M365_TOKEN_FILE: File storing login state (default: .env)
        LOG_LEVEL: Logging level (TRACE, DEBUG, INFO, WARNING, ERROR)

    Examples:
        m365 graph login
        m365 graph teams channel message get -i <teamId> -c <channelId> -m <messageId>
        m365 spo login https://contoso.sharepoint.com
        m365 spo app get --name solution.sppkg
    """
    context = ctx.ensure_object(Context)
    context.debug = debug
    context.verbose = verbose

    if context.config is None:
        context.config = load_config(context, config_file, profile)

    setup_logging(context.config.log_level, debug=debug, verbose=verbose)

    if output_format:
        context.config.output_format = output_format
    context.output_format = context.config.output_format

    if timeout:
        context.config.request_timeout = timeout
        context.config.connect_timeout = min(timeout, 30)

    warnings = context.config.validate()
    if warnings and debug:
        for warning in warnings:
            console.print(f"[yellow]Warning: {warning}[/yellow]")

    ctx.call_on_close(lambda: context.client.close_sync() if context.client else None)


cli.add_command(graph_group)
cli.add_command(spo_group)


def main():
    """Main entry point for the CLI."""
    try:
        cli(obj=None)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)


if __name__ == '__main__':
    main()
