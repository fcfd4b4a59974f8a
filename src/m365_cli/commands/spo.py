"""SharePoint Online commands."""

import re
from typing import Optional
from urllib.parse import quote
import click
from rich.console import Console

from ..core.auth import SPO, get_resource_from_url
from ..core.client import ApiClient
from ..core.exceptions import APIError, ValidationError
from ..core.logging import get_logger
from ..core.validation import is_valid_guid, is_valid_sharepoint_url
from .session import connection_status, device_code_login

console = Console(stderr=True)
logger = get_logger('commands.spo')

ODATA_NOMETADATA = 'application/json;odata=nometadata'

APP_CATALOG_SCOPES = ('tenant', 'sitecollection')

APP_CATALOG_SUFFIX = re.compile(r'/appcatalog/?$', re.IGNORECASE)


@click.group('spo')
def spo_group():
    """SharePoint Online commands."""
    pass


@spo_group.command('login')
@click.argument('site_url')
@click.pass_obj
def spo_login(ctx, site_url):
    """Log in to a SharePoint Online site using the device code flow.

    \b
    Examples:
        m365 spo login https://contoso.sharepoint.com
    """
    try:
        result = is_valid_sharepoint_url(site_url)
        if result is not True:
            raise ValidationError(result or 'Required argument site_url missing', 'site_url')

        device_code_login(ctx, SPO, site_url=site_url)
    except Exception as e:
        ctx.handle_error(e)


@spo_group.command('logout')
@click.pass_obj
def spo_logout(ctx):
    """Log out from SharePoint Online."""
    try:
        ctx.ensure_auth(SPO).logout()
        console.print("[green]Logged out from SharePoint Online[/green]")
    except Exception as e:
        ctx.handle_error(e)


@spo_group.command('status')
@click.pass_obj
def spo_status(ctx):
    """Show SharePoint Online login status."""
    try:
        ctx.output(connection_status(ctx, SPO))
    except Exception as e:
        ctx.handle_error(e)


@spo_group.group('app')
def app_group():
    """Manage apps in the tenant or site collection app catalog."""
    pass


def validate_app_get_options(app_id: Optional[str], name: Optional[str],
                             app_catalog_url: Optional[str], scope: Optional[str]) -> Optional[str]:
    """Return the first validation error for app get, if any."""
    if scope:
        scope = scope.lower()
        if scope not in APP_CATALOG_SCOPES:
            return "Scope must be either 'tenant' or 'sitecollection'"

        if scope == 'sitecollection' and not app_catalog_url:
            return 'You must specify appCatalogUrl when the scope is sitecollection'

    if not app_id and not name:
        return 'Specify either the id or the name'

    if app_id and name:
        return 'Specify either the id or the name but not both'

    if app_id and not is_valid_guid(app_id):
        return f'{app_id} is not a valid GUID'

    if app_catalog_url:
        result = is_valid_sharepoint_url(app_catalog_url)
        if result is not True:
            return result or 'Required parameter appCatalogUrl missing'

    return None


def get_tenant_app_catalog_url(client: ApiClient, site_url: str, access_token: str) -> Optional[str]:
    """Look up the tenant app catalog URL from the tenant settings."""
    settings = client.get_sync(f"{site_url}/_api/SP_TenantSettings_Current", access_token, ODATA_NOMETADATA)
    return settings.get('CorporateCatalogUrl') or None


def get_app_catalog_site_url(client: ApiClient, site_url: str, access_token: str,
                             app_catalog_url: Optional[str], scope: str) -> str:
    """Resolve the URL of the site hosting the app catalog.

    Site collection catalogs accept the URL with or without the AppCatalog
    library segment. Without an explicit URL the tenant catalog is looked up.

    Raises:
        APIError: If no tenant app catalog exists
    """
    if scope == 'sitecollection':
        return APP_CATALOG_SUFFIX.sub('', app_catalog_url).rstrip('/')

    if app_catalog_url:
        return app_catalog_url.rstrip('/')

    logger.info("Looking up tenant app catalog URL...")
    tenant_catalog_url = get_tenant_app_catalog_url(client, site_url, access_token)
    if not tenant_catalog_url:
        raise APIError(
            'Tenant app catalog URL not found. Specify the URL of the app catalog site '
            'using the app-catalog-url option.'
        )

    logger.info(f"Found tenant app catalog at {tenant_catalog_url}")
    return tenant_catalog_url


def odata_string(value: str) -> str:
    """Escape a value for use inside an OData string literal."""
    return value.replace("'", "''")


@app_group.command('get')
@click.option('--id', '-i', 'app_id', help='ID of the app to retrieve information for. Specify the id or the name but not both')
@click.option('--name', '-n', help='Name of the app to retrieve information for. Specify the id or the name but not both')
@click.option('--app-catalog-url', '-u', help="URL of the tenant or site collection app catalog. It must be specified when the scope is 'sitecollection'")
@click.option('--scope', '-s', help='Scope of the app catalog: tenant|sitecollection. Default tenant')
@click.pass_obj
def get_app(ctx, app_id, name, app_catalog_url, scope):
    """Gets information about the specific app from the specified app catalog.

    When the app catalog URL is omitted the tenant app catalog is detected
    from the site you are logged in to. For a site collection app catalog the
    URL is required and may include or omit the AppCatalog segment.

    \b
    Examples:
        m365 spo app get --id b2307a39-e878-458b-bc90-03bc578531d6
        m365 spo app get --name solution.sppkg
        m365 spo app get --name solution.sppkg --app-catalog-url https://contoso.sharepoint.com/sites/apps
        m365 spo app get --id b2307a39-e878-458b-bc90-03bc578531d6 --scope sitecollection \\
            --app-catalog-url https://contoso.sharepoint.com/sites/site1
    """
    try:
        error = validate_app_get_options(app_id, name, app_catalog_url, scope)
        if error:
            raise ValidationError(error)

        scope = scope.lower() if scope else 'tenant'
        client = ctx.ensure_client()
        auth = ctx.ensure_auth(SPO)

        access_token = auth.ensure_access_token(auth.site_url)
        app_catalog_site_url = get_app_catalog_site_url(
            client, auth.site_url, access_token, app_catalog_url, scope
        )

        resource = get_resource_from_url(app_catalog_site_url)
        site_access_token = auth.get_access_token(resource, auth.refresh_token)

        if not app_id:
            logger.info(f"Looking up app id for app named {name}...")
            file_name = quote(odata_string(name), safe="'")
            file_info = client.get_sync(
                f"{app_catalog_site_url}/_api/web/getfolderbyserverrelativeurl('AppCatalog')"
                f"/files('{file_name}')?$select=UniqueId",
                site_access_token,
                ODATA_NOMETADATA
            )
            app_id = file_info.get('UniqueId') if isinstance(file_info, dict) else None
            if not app_id:
                raise APIError(f"App {name} not found in {app_catalog_site_url}")

        logger.info(f"Retrieving information for app {app_id}...")
        app = client.get_sync(
            f"{app_catalog_site_url}/_api/web/{scope}appcatalog/AvailableApps/GetById('{quote(app_id, safe='')}')",
            site_access_token,
            ODATA_NOMETADATA
        )

        ctx.output(app)
    except Exception as e:
        ctx.handle_error(e)
