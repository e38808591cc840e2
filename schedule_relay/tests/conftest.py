import asyncio
import json
import sys
import types
from typing import Optional

import httpx
import pytest
import requests

from shared.graph.base import MSGraphClientBase
from schedule_relay.config import RelaySettings

GRAPH = MSGraphClientBase.GRAPH_BASE
HOST = "contoso.sharepoint.com"
FILE_NAME = "Assembly Schedule (New Version).xlsx"
QUOTED_NAME = "Assembly%20Schedule%20(New%20Version).xlsx"
GRAPH_TOKEN = "graph-token"
SPO_TOKEN = "spo-token"


def site_url(name: Optional[str] = None) -> str:
    if name:
        return f"{GRAPH}/sites/{HOST}:/sites/{name}?"
    return f"{GRAPH}/sites/{HOST}?"


def default_search_url(site_id: str) -> str:
    return f"{GRAPH}/sites/{site_id}/drive/root/search(q='{QUOTED_NAME}')"


def drives_url(site_id: str) -> str:
    return f"{GRAPH}/sites/{site_id}/drives?"


def drive_search_url(drive_id: str) -> str:
    return f"{GRAPH}/drives/{drive_id}/root/search(q='{QUOTED_NAME}')"


def content_url(drive_id: str, item_id: str) -> str:
    return f"{GRAPH}/drives/{drive_id}/items/{item_id}/content"


def legacy_url(site_name: str, file_id: str) -> str:
    return f"https://{HOST}/sites/{site_name}/_api/web/GetFileById('{file_id}')"


def make_settings(**overrides) -> RelaySettings:
    values = dict(
        tenant_id="tenant",
        client_id="client",
        client_secret="secret",
        hostname=HOST,
        site_name="SiteA",
        fallback_site_name="SiteB",
        legacy_file_id=None,
        environment="production",
    )
    values.update(overrides)
    return RelaySettings(_env_file=None, **values)


@pytest.fixture
def settings() -> RelaySettings:
    return make_settings()


def token_response(status: int, payload: dict) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(payload).encode()
    resp.headers["Content-Type"] = "application/json"
    return resp


class MsalStub:
    """
    Stands in for msal.ConfidentialClientApplication and records every exchange.

    Like MSAL, the fake app posts to the token endpoint through the ``http_client``
    it was built with; ``token_endpoint`` answers those posts.
    """

    def __init__(self):
        self.scopes: list[str] = []
        self.failing_scopes: set[str] = set()
        self.fail_all = False
        self.fail_status = 401
        self.raise_error: Optional[Exception] = None

    def build(self, client_id, authority=None, client_credential=None, http_client=None):
        stub = self

        class _App:
            def acquire_token_for_client(self, scopes=None):
                if stub.raise_error is not None:
                    raise stub.raise_error
                resp = http_client.post(
                    f"{authority}/oauth2/v2.0/token",
                    data={"grant_type": "client_credentials", "client_id": client_id, "scope": " ".join(scopes)},
                )
                return resp.json()

        return _App()

    def token_endpoint(self, data: dict) -> requests.Response:
        scope = data["scope"].split()[0]
        self.scopes.append(scope)
        if self.fail_all or scope in self.failing_scopes:
            return token_response(self.fail_status, {
                "error": "invalid_client",
                "error_description": "AADSTS7000215: Invalid client secret provided.",
            })
        token = GRAPH_TOKEN if scope == MSGraphClientBase.GRAPH_SCOPE else SPO_TOKEN
        return token_response(200, {"access_token": token, "expires_in": 3600, "token_type": "Bearer"})


@pytest.fixture
def msal_stub(monkeypatch) -> MsalStub:
    stub = MsalStub()

    def fake_request(self, method, url, params=None, data=None, headers=None, **kwargs):
        return stub.token_endpoint(data or {})

    monkeypatch.setitem(sys.modules, "msal", types.SimpleNamespace(ConfidentialClientApplication=stub.build))
    monkeypatch.setattr(requests.Session, "request", fake_request)
    return stub


class FakeGraph:
    """Prefix-routed replacement for httpx.AsyncClient.get; unmatched URLs answer 404."""

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.calls: list[dict] = []
        self.delay: float = 0.0

    def add(self, prefix: str, response) -> None:
        self.routes[prefix] = response

    def add_json(self, prefix: str, payload: dict, status: int = 200) -> None:
        self.add(prefix, httpx.Response(status, json=payload))

    def urls(self) -> list[str]:
        return [c["url"] for c in self.calls]

    def called(self, fragment: str) -> list[str]:
        return [u for u in self.urls() if fragment in u]

    async def get(self, url, headers=None, follow_redirects=False):
        url = str(url)
        self.calls.append({"url": url, "headers": dict(headers or {}), "follow_redirects": follow_redirects})
        if self.delay:
            await asyncio.sleep(self.delay)
        for prefix, response in self.routes.items():
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                return response
        return httpx.Response(404, json={"error": {"code": "itemNotFound", "message": "not found"}})


@pytest.fixture
def graph(monkeypatch) -> FakeGraph:
    fake = FakeGraph()

    async def fake_get(self, url, headers=None, follow_redirects=False):
        return await fake.get(url, headers=headers, follow_redirects=follow_redirects)

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    return fake
