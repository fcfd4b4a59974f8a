"""Microsoft Graph commands."""

from typing import Optional
import click
from rich.console import Console

from ..core.auth import GRAPH
from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..core.validation import is_valid_guid
from .session import connection_status, device_code_login

console = Console(stderr=True)
logger = get_logger('commands.graph')

ODATA_METADATA_NONE = 'application/json;odata.metadata=none'


@click.group('graph')
def graph_group():
    """Microsoft Graph commands."""
    pass


@graph_group.command('login')
@click.pass_obj
def graph_login(ctx):
    """Log in to Microsoft Graph using the device code flow."""
    try:
        device_code_login(ctx, GRAPH)
    except Exception as e:
        ctx.handle_error(e)


@graph_group.command('logout')
@click.pass_obj
def graph_logout(ctx):
    """Log out from Microsoft Graph."""
    try:
        ctx.ensure_auth(GRAPH).logout()
        console.print("[green]Logged out from Microsoft Graph[/green]")
    except Exception as e:
        ctx.handle_error(e)


@graph_group.command('status')
@click.pass_obj
def graph_status(ctx):
    """Show Microsoft Graph login status."""
    try:
        ctx.output(connection_status(ctx, GRAPH))
    except Exception as e:
        ctx.handle_error(e)


@graph_group.group('teams')
def teams_group():
    """Manage Microsoft Teams."""
    pass


@teams_group.group('channel')
def channel_group():
    """Manage channels of a Microsoft Teams team."""
    pass


@channel_group.group('message')
def message_group():
    """Manage messages in a Microsoft Teams channel."""
    pass


def validate_message_get_options(team_id: Optional[str], channel_id: Optional[str],
                                 message_id: Optional[str]) -> Optional[str]:
    """Return the first validation error for teams channel message get, if any."""
    if not team_id:
        return 'Required parameter teamId missing'

    if not is_valid_guid(team_id):
        return f'{team_id} is not a valid GUID'

    if not channel_id:
        return 'Required parameter channelId missing'

    if not message_id:
        return 'Required parameter messageId missing'

    return None


@message_group.command('get')
@click.option('--team-id', '-i', 'team_id', help='The ID of the team where the channel is located')
@click.option('--channel-id', '-c', 'channel_id', help='The ID of the channel that contains the message')
@click.option('--message-id', '-m', 'message_id', help='The ID of the message to retrieve')
@click.pass_obj
def get_message(ctx, team_id, channel_id, message_id):
    """Retrieves a message from a channel in a Microsoft Teams team.

    This command is based on a Microsoft Graph API that is currently in
    preview. You can only retrieve a message from a team you are a member of.

    \b
    Examples:
        m365 graph teams channel message get --team-id 5f5d7b71-1161-44d8-bcc1-3da710eb4171 \\
            --channel-id 19:88f7e66a8dfe42be92db19505ae912a8@thread.skype --message-id 1540747442203
    """
    try:
        error = validate_message_get_options(team_id, channel_id, message_id)
        if error:
            raise ValidationError(error)

        auth = ctx.ensure_auth(GRAPH)
        access_token = auth.ensure_access_token(auth.resource)

        url = f"{auth.resource}/beta/teams/{team_id}/channels/{channel_id}/messages/{message_id}"
        message = ctx.ensure_client().get_sync(url, access_token, ODATA_METADATA_NONE)

        ctx.output(message)
        if ctx.verbose:
            console.print("[green]DONE[/green]")
    except Exception as e:
        ctx.handle_error(e)
