"""HTTP client for Microsoft Graph and SharePoint REST requests."""

import json
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union
import httpx
from httpx import Response, HTTPError, TimeoutException, ConnectError

from .config import Config
from .exceptions import (
    APIError,
    AuthenticationError,
    ConnectionError,
    TimeoutError,
    RateLimitError,
)
from .logging import get_logger, mask_token

logger = get_logger('client')


@dataclass
class RequestOptions:
    """Descriptor for a single REST call.

    Built fresh for every request and discarded afterwards.
    """

    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: bool = True
    method: str = 'GET'

    @classmethod
    def bearer(cls, url: str, access_token: str, accept: str, method: str = 'GET') -> 'RequestOptions':
        """Build a descriptor with the authorization and accept headers set."""
        return cls(
            url=url,
            headers={
                'authorization': f'Bearer {access_token}',
                'accept': accept,
            },
            method=method,
        )

    def to_log_dict(self) -> Dict[str, Any]:
        """Descriptor as a dictionary safe to write to the log."""
        headers = dict(self.headers)
        auth = headers.get('authorization')
        if auth and auth.startswith('Bearer '):
            headers['authorization'] = f"Bearer {mask_token(auth[7:])}"
        return {'method': self.method, 'url': self.url, 'headers': headers, 'json': self.json}


def odata_error_message(response: Response) -> str:
    """Extract a user-facing message from an OData, Graph or Azure AD error body."""
    try:
        error_data = response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text or f"HTTP {response.status_code} error"

    if not isinstance(error_data, dict):
        return str(error_data)

    # SharePoint: {"odata.error": {"message": {"value": "..."}}}
    odata_error = error_data.get('odata.error')
    if isinstance(odata_error, dict):
        message = odata_error.get('message')
        if isinstance(message, dict) and message.get('value'):
            return message['value']

    # Graph: {"error": {"code": "...", "message": "..."}}
    error = error_data.get('error')
    if isinstance(error, dict) and error.get('message'):
        return error['message']

    # Azure AD: {"error": "invalid_grant", "error_description": "..."}
    if error_data.get('error_description'):
        return error_data['error_description']

    if error_data.get('message'):
        return str(error_data['message'])

    if isinstance(error, str):
        return error

    return response.text or f"HTTP {response.status_code} error"


class ApiClient:
    """Synchronous HTTP client used by all commands.

    Requests are absolute URLs, since Graph and every SharePoint site
    collection are distinct resources.
    """

    def __init__(self, config: Optional[Config] = None, transport: Optional[httpx.BaseTransport] = None):
        """Initialize the client.

        Args:
            config: Configuration object (creates default if not provided)
            transport: Optional httpx transport, used by tests
        """
        self.config = config or Config.from_env()
        self.transport = transport
        self._sync_client: Optional[httpx.Client] = None

    @property
    def sync_client(self) -> httpx.Client:
        """Get or create synchronous HTTP client."""
        if self._sync_client is None:
            self._sync_client = httpx.Client(
                headers=self.config.get_headers(),
                timeout=httpx.Timeout(
                    connect=self.config.connect_timeout,
                    read=self.config.request_timeout,
                    write=self.config.request_timeout,
                    pool=self.config.request_timeout,
                ),
                follow_redirects=True,
                verify=True,
                transport=self.transport,
            )
        return self._sync_client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_sync()

    def close_sync(self):
        """Close the sync HTTP client."""
        if self._sync_client:
            self._sync_client.close()
            self._sync_client = None

    def _handle_response_error(self, response: Response):
        """Translate an error response into an exception.

        Raises:
            AuthenticationError: on 401 and 403
            RateLimitError: on 429
            APIError: on any other error status
        """
        status = response.status_code
        message = odata_error_message(response)

        if status in (401, 403):
            raise AuthenticationError(message, {'status_code': status})
        elif status == 429:
            retry_after = response.headers.get('Retry-After')
            raise RateLimitError(message, int(retry_after) if retry_after and retry_after.isdigit() else None)
        else:
            raise APIError(message, status_code=status, response_text=response.text)

    def request_sync(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Response:
        """Make a synchronous HTTP request.

        Raises:
            Various exceptions based on response
        """
        try:
            response = self.sync_client.request(
                method,
                url,
                headers=headers,
                params=params,
                data=data,
                json=json_data,
            )
        except TimeoutException:
            raise TimeoutError(f"{method} {url}", self.config.request_timeout)
        except ConnectError as e:
            raise ConnectionError(url, str(e))
        except HTTPError as e:
            raise APIError(f"HTTP error: {str(e)}")

        if response.status_code >= 400:
            self._handle_response_error(response)

        return response

    def execute(self, options: RequestOptions) -> Union[Dict[str, Any], str]:
        """Issue the request described by options.

        Returns:
            Parsed JSON body when options.json is set, text otherwise
        """
        logger.trace(f"Executing web request... {options.to_log_dict()}")

        response = self.request_sync(options.method, options.url, headers=options.headers)

        if not options.json:
            body = response.text
        elif not response.content:
            body = {}
        else:
            try:
                body = response.json()
            except (json.JSONDecodeError, ValueError):
                raise APIError(
                    f"Invalid JSON in response from {options.url}",
                    status_code=response.status_code,
                    response_text=response.text,
                )

        logger.trace(f"Response: {body}")
        return body

    def get_sync(self, url: str, access_token: str, accept: str) -> Union[Dict[str, Any], str]:
        """Issue an authorized GET and return the JSON body."""
        return self.execute(RequestOptions.bearer(url, access_token, accept))

    def post_form_sync(self, url: str, data: Dict[str, Any]) -> Response:
        """POST a form-encoded body without raising on error status.

        Used for Azure AD endpoints whose error bodies drive the caller.
        """
        try:
            return self.sync_client.post(url, data=data)
        except TimeoutException:
            raise TimeoutError(f"POST {url}", self.config.request_timeout)
        except ConnectError as e:
            raise ConnectionError(url, str(e))
        except HTTPError as e:
            raise APIError(f"HTTP error: {str(e)}")
