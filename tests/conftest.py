"""Shared fixtures: a fake Microsoft 365 backend behind httpx.MockTransport."""

import time
from typing import Callable, Dict, List, Tuple, Union
from urllib.parse import parse_qs, unquote

import httpx
import jwt
import pytest
from click.testing import CliRunner

from m365_cli.cli import Context, cli
from m365_cli.core.config import Config

SIGNING_KEY = 'test-signing-key-that-is-long-enough-for-hs256'

SITE_URL = 'https://contoso.sharepoint.com'
TOKEN_URL = 'https://login.microsoftonline.com/common/oauth2/token'
DEVICE_CODE_URL = 'https://login.microsoftonline.com/common/oauth2/devicecode'


def make_token(expires_in: int = 3600, **claims) -> str:
    """Unsigned-for-our-purposes JWT with an exp claim."""
    payload = {'exp': int(time.time()) + expires_in, **claims}
    return jwt.encode(payload, SIGNING_KEY, algorithm='HS256')


Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeMicrosoft365:
    """Routes requests by method and decoded URL; records everything it sees.

    Token endpoint requests get a fresh access token for the requested
    resource unless a route overrides them.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.refresh_token = 'rotated-refresh-token'

    def add(self, method: str, url: str, json=None, status_code: int = 200, handler: Handler = None):
        self.routes[(method, url)] = handler or httpx.Response(status_code, json=json)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, unquote(str(request.url))))
        if route is not None:
            return route(request) if callable(route) else route

        if request.method == 'POST' and str(request.url) == TOKEN_URL:
            form = self.form(request)
            return httpx.Response(200, json={
                'token_type': 'Bearer',
                'resource': form['resource'],
                'access_token': make_token(aud=form['resource'], upn='admin@contoso.com'),
                'refresh_token': self.refresh_token,
            })

        return httpx.Response(404, json={'error': {'code': 'itemNotFound', 'message': 'Route not found'}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @staticmethod
    def form(request: httpx.Request) -> Dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    def gets(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == 'GET']

    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == TOKEN_URL]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's environment and .env files out of tests."""
    for name in list(Config.env_names().values()) + ['DEBUG']:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr('m365_cli.cli.DEFAULT_CONFIG_FILE', tmp_path / 'missing.yml')
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def backend():
    return FakeMicrosoft365()


@pytest.fixture
def config(tmp_path):
    return Config(
        graph_refresh_token='graph-refresh-token',
        spo_refresh_token='spo-refresh-token',
        spo_site_url=SITE_URL,
        token_file=tmp_path / '.env',
    )


@pytest.fixture
def run_cli(backend, config):
    """Invoke the CLI against the fake backend."""

    def run(*args):
        context = Context(transport=backend.transport)
        context.config = config
        return CliRunner().invoke(cli, list(args), obj=context)

    return run
