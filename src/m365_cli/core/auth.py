"""Azure AD authentication and token management."""

import time
from pathlib import Path
from typing import Optional, Dict, Any, Callable
import jwt

from .client import ApiClient, odata_error_message
from .config import Config
from .exceptions import AuthenticationError, ConfigurationError
from .logging import get_logger, mask_token

logger = get_logger('auth')

GRAPH = 'graph'
SPO = 'spo'

SERVICE_NAMES = {
    GRAPH: 'Microsoft Graph',
    SPO: 'SharePoint Online',
}

# Keys this CLI owns in the token file
ENV_KEYS = {
    GRAPH: {'refresh_token': 'M365_GRAPH_REFRESH_TOKEN'},
    SPO: {'refresh_token': 'M365_SPO_REFRESH_TOKEN', 'site_url': 'M365_SPO_SITE_URL'},
}


def get_resource_from_url(url: str) -> str:
    """Return the Azure AD resource (scheme and host) for a URL.

    e.g. https://contoso.sharepoint.com/sites/apps -> https://contoso.sharepoint.com
    """
    pos = url.find('/', 8)
    if pos > -1:
        return url[:pos]
    return url


def is_token_valid(access_token: Optional[str], buffer_seconds: int = 300) -> bool:
    """Check locally whether a JWT access token is still usable.

    Args:
        access_token: Token to check
        buffer_seconds: Seconds before expiry to treat the token as expired

    Returns:
        True if the token has an exp claim further away than the buffer
    """
    if not access_token:
        return False

    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.DecodeError as e:
        logger.debug(f"Invalid JWT format: {e}")
        return False

    if 'exp' not in claims:
        logger.trace("Token has no expiration claim")
        return False

    time_left = claims['exp'] - time.time()
    if time_left < buffer_seconds:
        logger.trace(f"Token expires in {int(time_left)}s (less than {buffer_seconds}s buffer)")
        return False

    logger.trace(f"Token valid for {int(time_left)}s")
    return True


def _parse_token_response(response) -> Dict[str, Any]:
    """Return the token payload or raise AuthenticationError."""
    if response.status_code == 200:
        token_data = response.json()
        if not token_data.get('access_token'):
            raise AuthenticationError("Token endpoint returned no access token")
        return token_data

    try:
        error = response.json().get('error')
    except ValueError:
        error = None
    raise AuthenticationError(
        odata_error_message(response),
        {'error': error} if error else None
    )


class TokenManager:
    """Holds the login state of one service and hands out access tokens.

    Refresh tokens and the SharePoint site URL are persisted to the token
    file; access tokens are cached per resource for the life of the process.
    """

    def __init__(self, config: Config, service: str, client: Optional[ApiClient] = None):
        """Initialize token manager.

        Args:
            config: Configuration with Azure AD settings and stored tokens
            service: 'graph' or 'spo'
            client: HTTP client for the token endpoint
        """
        if service not in SERVICE_NAMES:
            raise ConfigurationError(f"Unknown service: {service}")

        self.config = config
        self.service = service
        self.client = client or ApiClient(config)
        self.access_tokens: Dict[str, str] = {}

        if service == GRAPH:
            self.refresh_token = config.graph_refresh_token
            self.site_url = None
        else:
            self.refresh_token = config.spo_refresh_token
            self.site_url = config.spo_site_url

        if self.refresh_token:
            logger.trace(f"{self.name} refresh token loaded (length: {len(self.refresh_token)})")
        else:
            logger.trace(f"No {self.name} refresh token configured")

    @property
    def name(self) -> str:
        return SERVICE_NAMES[self.service]

    @property
    def resource(self) -> Optional[str]:
        """Resource the service logs in to."""
        if self.service == GRAPH:
            return self.config.graph_resource
        if self.site_url:
            return get_resource_from_url(self.site_url)
        return None

    @property
    def connected(self) -> bool:
        if self.service == SPO and not self.site_url:
            return False
        return bool(self.refresh_token)

    def ensure_access_token(self, resource: str) -> str:
        """Return an access token for resource, failing if not logged in.

        Args:
            resource: Resource URI or any URL on that resource

        Raises:
            AuthenticationError: If the service is not logged in or the
                token cannot be obtained
        """
        if not self.connected:
            raise AuthenticationError(
                f"Log in to {self.name} first",
                {'hint': f"m365 {self.service} login"}
            )

        return self.get_access_token(get_resource_from_url(resource), self.refresh_token)

    def get_access_token(self, resource: str, refresh_token: Optional[str]) -> str:
        """Return a cached access token for resource or redeem refresh_token for one.

        Raises:
            AuthenticationError: If the refresh token cannot be redeemed
        """
        access_token = self.access_tokens.get(resource)
        if access_token and is_token_valid(access_token):
            logger.trace(f"Using cached access token for {resource}")
            return access_token

        return self.refresh(resource, refresh_token)

    def refresh(self, resource: str, refresh_token: Optional[str]) -> str:
        """Redeem a refresh token for an access token to resource."""
        if not refresh_token:
            raise AuthenticationError(f"No refresh token available for {self.name}")

        logger.trace(f"Refreshing token for {resource} at {self.config.token_endpoint}")
        logger.trace(f"Using refresh_token: {mask_token(refresh_token)}")

        response = self.client.post_form_sync(
            self.config.token_endpoint,
            data={
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
                'client_id': self.config.client_id,
                'resource': resource,
            }
        )
        logger.trace(f"Token refresh response: HTTP {response.status_code}")

        token_data = _parse_token_response(response)
        access_token = token_data['access_token']
        self.access_tokens[resource] = access_token
        logger.debug(f"Retrieved access token {mask_token(access_token)} for {resource}")

        new_refresh_token = token_data.get('refresh_token')
        if new_refresh_token and new_refresh_token != self.refresh_token:
            self.refresh_token = new_refresh_token
            self.save_to_env()
            logger.trace("New refresh token received")

        return access_token

    def login(self, token_data: Dict[str, Any], site_url: Optional[str] = None):
        """Store the result of a successful device code login.

        Args:
            token_data: Token endpoint payload
            site_url: SharePoint site URL (spo only)
        """
        if self.service == SPO:
            if not site_url:
                raise ConfigurationError("SharePoint login requires a site URL")
            self.site_url = site_url.rstrip('/')

        self.access_tokens = {}
        self.refresh_token = token_data.get('refresh_token')
        if self.resource and token_data.get('access_token'):
            self.access_tokens[self.resource] = token_data['access_token']

        self.save_to_env()
        logger.info(f"Logged in to {self.name}")

    def logout(self):
        """Forget the stored login state."""
        self.refresh_token = None
        self.access_tokens = {}
        if self.service == SPO:
            self.site_url = None
        self.save_to_env()
        logger.info(f"Logged out from {self.name}")

    def save_to_env(self):
        """Write this service's login state to the token file.

        Lines owned by other services or unrelated settings are kept.
        """
        if self.service == GRAPH:
            self.config.graph_refresh_token = self.refresh_token
        else:
            self.config.spo_refresh_token = self.refresh_token
            self.config.spo_site_url = self.site_url

        values = {ENV_KEYS[self.service]['refresh_token']: self.refresh_token}
        if self.service == SPO:
            values[ENV_KEYS[SPO]['site_url']] = self.site_url

        env_path = Path(self.config.token_file)
        lines = []
        written = set()

        if env_path.exists():
            with open(env_path, 'r') as f:
                for line in f:
                    key = line.split('=', 1)[0].strip()
                    if key in values:
                        if values[key]:
                            lines.append(f'{key}={values[key]}\n')
                        written.add(key)
                    else:
                        lines.append(line)

        for key, value in values.items():
            if key not in written and value:
                if lines and not lines[-1].endswith('\n'):
                    lines.append('\n')
                lines.append(f'{key}={value}\n')

        with open(env_path, 'w') as f:
            f.writelines(lines)

        logger.trace(f"Login state for {self.name} written to {env_path}")


class DeviceCodeFlow:
    """Azure AD device code flow for a single resource."""

    def __init__(self, config: Config, resource: str, client: Optional[ApiClient] = None):
        self.config = config
        self.resource = resource
        self.client = client or ApiClient(config)

    def request_device_code(self) -> Dict[str, Any]:
        """Request a device code and user code for the resource.

        Raises:
            AuthenticationError: If Azure AD rejects the request
        """
        logger.trace(f"Requesting device code from {self.config.device_code_endpoint}")
        response = self.client.post_form_sync(
            self.config.device_code_endpoint,
            data={
                'client_id': self.config.client_id,
                'resource': self.resource,
            }
        )

        if response.status_code != 200:
            raise AuthenticationError(f"Failed to get device code: {odata_error_message(response)}")

        device_data = response.json()
        if not all(device_data.get(k) for k in ('device_code', 'user_code')):
            raise AuthenticationError("Invalid response from device code endpoint")

        return device_data

    def poll(self, device_data: Dict[str, Any], sleep: Callable[[float], None] = time.sleep) -> Dict[str, Any]:
        """Poll the token endpoint until the user completes sign-in.

        Args:
            device_data: Result of request_device_code
            sleep: Function used to wait between polls

        Returns:
            Token endpoint payload

        Raises:
            AuthenticationError: If the code expires or sign-in is declined
        """
        interval = int(device_data.get('interval', 5))
        expires_in = int(device_data.get('expires_in', 900))
        waited = 0

        while waited < expires_in:
            sleep(interval)
            waited += interval

            response = self.client.post_form_sync(
                self.config.token_endpoint,
                data={
                    'grant_type': 'device_code',
                    'code': device_data['device_code'],
                    'client_id': self.config.client_id,
                    'resource': self.resource,
                }
            )

            if response.status_code == 200:
                return _parse_token_response(response)

            try:
                error = response.json().get('error')
            except ValueError:
                error = None

            if error == 'authorization_pending':
                logger.trace("Authorization pending")
                continue
            if error == 'slow_down':
                interval += 5
                continue
            if error in ('expired_token', 'code_expired'):
                raise AuthenticationError("Device code expired. Please try again.")
            if error in ('authorization_declined', 'access_denied'):
                raise AuthenticationError("Access denied by user")

            _parse_token_response(response)

        raise AuthenticationError("Authentication timed out")
