import base64
import json

import pytest
import requests

from schedule_relay.credentials import GRAPH_SCOPE, CredentialProvider, legacy_scope
from schedule_relay.exceptions import AuthError

from conftest import GRAPH_TOKEN, HOST, SPO_TOKEN, make_settings, token_response


def _jwt(claims: dict) -> str:
    def enc(obj):
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).decode().rstrip("=")
    return f"{enc({'alg': 'none'})}.{enc(claims)}.sig"


def test_legacy_scope_uses_tenant_host():
    assert legacy_scope(HOST) == "https://contoso.sharepoint.com/.default"
    assert legacy_scope(HOST + "/") == "https://contoso.sharepoint.com/.default"


@pytest.mark.asyncio
async def test_acquire_graph_scope(settings, msal_stub):
    credential = await CredentialProvider(settings).acquire(GRAPH_SCOPE)
    assert credential.token == GRAPH_TOKEN
    assert credential.scope == GRAPH_SCOPE
    assert msal_stub.scopes == [GRAPH_SCOPE]


@pytest.mark.asyncio
async def test_each_call_is_a_new_exchange(settings, msal_stub):
    provider = CredentialProvider(settings)
    await provider.acquire(GRAPH_SCOPE)
    spo = await provider.acquire(legacy_scope(HOST))
    await provider.acquire(GRAPH_SCOPE)
    assert spo.token == SPO_TOKEN
    assert msal_stub.scopes == [GRAPH_SCOPE, legacy_scope(HOST), GRAPH_SCOPE]


@pytest.mark.asyncio
async def test_rejected_exchange_raises_auth_error(settings, msal_stub):
    msal_stub.fail_all = True
    with pytest.raises(AuthError) as exc_info:
        await CredentialProvider(settings).acquire(GRAPH_SCOPE)
    err = exc_info.value
    assert "Invalid client secret" in str(err)
    assert err.status_code == 401
    assert err.error_code == "invalid_client"
    assert json.loads(err.body)["error"] == "invalid_client"


@pytest.mark.asyncio
async def test_auth_error_carries_token_endpoint_status(settings, msal_stub):
    msal_stub.fail_all = True
    msal_stub.fail_status = 400
    with pytest.raises(AuthError) as exc_info:
        await CredentialProvider(settings).acquire(legacy_scope(HOST))
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_msal_exception_is_wrapped(settings, msal_stub):
    msal_stub.raise_error = ValueError("Unable to get authority configuration")
    with pytest.raises(AuthError, match="Unable to get authority configuration") as exc_info:
        await CredentialProvider(settings).acquire(GRAPH_SCOPE)
    assert exc_info.value.status_code is None


def test_token_http_client_records_last_status(monkeypatch):
    statuses = iter([200, 401])

    def fake_request(self, method, url, **kwargs):
        assert kwargs["timeout"] == 30.0
        return token_response(next(statuses), {})

    monkeypatch.setattr(requests.Session, "request", fake_request)
    http_client = CredentialProvider(make_settings()).token_http_client()
    http_client.get("https://login.microsoftonline.com/tenant/v2.0/.well-known/openid-configuration")
    assert http_client.last_status == 200
    http_client.post("https://login.microsoftonline.com/tenant/oauth2/v2.0/token", data={})
    assert http_client.last_status == 401


def test_decode_jwt_reads_claims():
    _, claims = CredentialProvider._decode_jwt(_jwt({"aud": "https://graph.microsoft.com", "tid": "t"}))
    assert claims["aud"] == "https://graph.microsoft.com"


@pytest.mark.asyncio
async def test_claims_logging_tolerates_opaque_tokens(msal_stub):
    provider = CredentialProvider(make_settings(log_token_claims=True))
    credential = await provider.acquire(GRAPH_SCOPE)
    assert credential.token == GRAPH_TOKEN
