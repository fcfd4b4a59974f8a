"""Login, logout and status helpers shared by the service command groups."""

from datetime import datetime, timezone
from typing import Optional
import jwt
from rich.console import Console

from ..core.auth import DeviceCodeFlow, TokenManager, get_resource_from_url

console = Console(stderr=True)


def device_code_login(ctx, service: str, site_url: Optional[str] = None) -> TokenManager:
    """Log in to a service with the Azure AD device code flow.

    Args:
        ctx: CLI context
        service: 'graph' or 'spo'
        site_url: SharePoint site to log in to (spo only)

    Returns:
        The logged in token manager
    """
    manager = ctx.ensure_auth(service)
    resource = get_resource_from_url(site_url) if site_url else manager.resource

    flow = DeviceCodeFlow(ctx.config, resource, ctx.ensure_client())
    device_data = flow.request_device_code()

    message = device_data.get('message') or (
        f"To sign in, use a web browser to open the page {device_data.get('verification_url')} "
        f"and enter the code {device_data['user_code']} to authenticate."
    )
    console.print(f"\n[bold]{message}[/bold]\n")

    token_data = flow.poll(device_data)
    manager.login(token_data, site_url=site_url)

    console.print(f"[green]✓ Logged in to {manager.name}[/green]")
    return manager


def connection_status(ctx, service: str) -> dict:
    """Describe the login state of a service.

    A fresh access token is requested so that an expired or revoked
    refresh token shows up here rather than in the next command.
    """
    manager = ctx.ensure_auth(service)
    status = {
        'service': manager.name,
        'connected': manager.connected,
    }
    if manager.site_url:
        status['siteUrl'] = manager.site_url
    if not manager.connected:
        return status

    access_token = manager.ensure_access_token(manager.resource)
    status['resource'] = manager.resource

    claims = jwt.decode(access_token, options={"verify_signature": False})
    for claim, key in (('upn', 'connectedAs'), ('unique_name', 'connectedAs'), ('tid', 'tenantId')):
        if claim in claims and key not in status:
            status[key] = claims[claim]
    if 'exp' in claims:
        status['expiresOn'] = datetime.fromtimestamp(claims['exp'], tz=timezone.utc).isoformat()

    return status
