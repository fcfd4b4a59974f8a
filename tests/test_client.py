"""HTTP client and OData error translation."""

import httpx
import pytest

from m365_cli.core.client import ApiClient, RequestOptions, odata_error_message
from m365_cli.core.config import Config
from m365_cli.core.exceptions import (
    APIError,
    AuthenticationError,
    ConnectionError,
    RateLimitError,
)

URL = 'https://contoso.sharepoint.com/_api/web'


def client_returning(response=None, handler=None):
    def default(request):
        return response
    return ApiClient(Config(), transport=httpx.MockTransport(handler or default))


class TestOdataErrorMessage:

    def test_sharepoint_error(self):
        response = httpx.Response(404, json={
            'odata.error': {'code': '-1', 'message': {'lang': 'en-US', 'value': 'File Not Found.'}}
        })
        assert odata_error_message(response) == 'File Not Found.'

    def test_graph_error(self):
        response = httpx.Response(403, json={'error': {'code': 'Forbidden', 'message': 'Missing role'}})
        assert odata_error_message(response) == 'Missing role'

    def test_azure_ad_error(self):
        response = httpx.Response(400, json={'error': 'invalid_grant', 'error_description': 'AADSTS50173'})
        assert odata_error_message(response) == 'AADSTS50173'

    def test_plain_text(self):
        assert odata_error_message(httpx.Response(500, text='Service Unavailable')) == 'Service Unavailable'

    def test_empty_body(self):
        assert odata_error_message(httpx.Response(502)) == 'HTTP 502 error'


class TestRequestOptions:

    def test_bearer_headers(self):
        options = RequestOptions.bearer(URL, 'abc', 'application/json;odata=nometadata')
        assert options.headers == {
            'authorization': 'Bearer abc',
            'accept': 'application/json;odata=nometadata',
        }
        assert options.json is True
        assert options.method == 'GET'

    def test_log_dict_masks_token(self):
        options = RequestOptions.bearer(URL, 'eyJ0eXAiOiJKV1QiLCJhbGciOi', 'application/json')
        logged = options.to_log_dict()
        assert logged['headers']['authorization'] == 'Bearer eyJ0eXAiOi...'
        assert options.headers['authorization'] == 'Bearer eyJ0eXAiOiJKV1QiLCJhbGciOi'


class TestApiClient:

    def test_get_returns_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={'Title': 'Apps'})

        client = client_returning(handler=handler)
        assert client.get_sync(URL, 'token', 'application/json;odata=nometadata') == {'Title': 'Apps'}
        assert seen[0].headers['authorization'] == 'Bearer token'
        assert seen[0].headers['user-agent'].startswith('NONISV|m365-cli/')

    def test_unauthorized(self):
        client = client_returning(httpx.Response(401, json={'error': {'message': 'Token expired'}}))
        with pytest.raises(AuthenticationError, match='Token expired'):
            client.get_sync(URL, 'token', 'application/json')

    def test_throttled(self):
        client = client_returning(httpx.Response(
            429, headers={'Retry-After': '30'}, json={'error': {'message': 'Too many requests'}}
        ))
        with pytest.raises(RateLimitError) as exc_info:
            client.get_sync(URL, 'token', 'application/json')
        assert exc_info.value.retry_after == 30
        assert 'Retry after 30 seconds' in exc_info.value.message

    def test_not_found(self):
        client = client_returning(httpx.Response(404, text='Not Found'))
        with pytest.raises(APIError) as exc_info:
            client.get_sync(URL, 'token', 'application/json')
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == 'Not Found'

    def test_invalid_json(self):
        client = client_returning(httpx.Response(200, text='<html></html>'))
        with pytest.raises(APIError, match='Invalid JSON'):
            client.get_sync(URL, 'token', 'application/json')

    def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError('Name or service not known', request=request)

        client = client_returning(handler=handler)
        with pytest.raises(ConnectionError, match='Failed to connect'):
            client.get_sync(URL, 'token', 'application/json')

    def test_text_response(self):
        client = client_returning(httpx.Response(200, text='plain'))
        options = RequestOptions(URL, json=False)
        assert client.execute(options) == 'plain'
