from __future__ import annotations

import asyncio
import base64
import importlib
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

import httpx
import requests

from shared.relay_logging import relay_logging


def read_json(resp: httpx.Response) -> Optional[dict]:
    """Parse a JSON object body, or None if the body is not one."""
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class TokenHttpClient:
    """requests-backed ``http_client`` for MSAL that remembers the last response status.

    MSAL hands back the token endpoint's JSON but not its status line; routing
    its calls through this object keeps the status available for error reports.
    """

    def __init__(self, *, verify=True, timeout: Optional[float] = None):
        self._session = requests.Session()
        self._session.verify = verify
        self._timeout = timeout
        self.last_status: Optional[int] = None

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self._timeout)
        resp = self._session.request(method, url, **kwargs)
        self.last_status = resp.status_code
        return resp

    def post(self, url, params=None, data=None, headers=None, **kwargs):
        return self._send("POST", url, params=params, data=data, headers=headers, **kwargs)

    def get(self, url, params=None, headers=None, **kwargs):
        return self._send("GET", url, params=params, headers=headers, **kwargs)

    def close(self) -> None:
        self._session.close()


class MSGraphClientBase:
    """Minimal wrapper around MSAL + httpx for Microsoft Graph.

    Nothing is cached between calls: every token request builds a new MSAL
    application and every ``http_session`` opens a new connection pool.
    """

    GRAPH_BASE = "https://graph.microsoft.com/v1.0"
    GRAPH_SCOPE = "https://graph.microsoft.com/.default"

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        *,
        authority: str = "https://login.microsoftonline.com",
        verify: httpx._types.VerifyTypes = True,
        timeout: float = 30.0,
        log_token_claims: bool = False,
    ):
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._authority = authority.rstrip("/")
        self._verify = verify
        self._timeout = timeout
        self._log_token_claims = log_token_claims

    # ---------------------- MSAL helpers ----------------------
    def token_http_client(self) -> TokenHttpClient:
        return TokenHttpClient(verify=self._verify, timeout=self._timeout)

    def _build_msal_app(self, http_client: TokenHttpClient):
        msal = importlib.import_module("msal")
        return msal.ConfidentialClientApplication(
            self._client_id,
            authority=f"{self._authority}/{self._tenant_id}",
            client_credential=self._client_secret,
            http_client=http_client,
        )

    async def acquire_token_for_client(self, scopes: Sequence[str], http_client: TokenHttpClient) -> dict:
        """Run the client-credentials exchange over ``http_client`` and return MSAL's raw result dict."""
        scopes_list = list(scopes)

        def _acquire():
            return self._build_msal_app(http_client).acquire_token_for_client(scopes=scopes_list)

        result = await asyncio.to_thread(_acquire)
        if self._log_token_claims and "access_token" in result:
            self._log_claims(result["access_token"])
        return result

    def _log_claims(self, token: str) -> None:
        try:
            _, claims = self._decode_jwt(token)
        except (ValueError, UnicodeDecodeError):
            relay_logging.debug("Access token is not a decodable JWT; skipping claims log")
            return
        relay_logging.info(
            "Token claims: aud=%s appid=%s tid=%s roles=%s",
            claims.get("aud"),
            claims.get("appid"),
            claims.get("tid"),
            claims.get("roles") or claims.get("scp"),
        )

    @staticmethod
    def _decode_jwt(token: str) -> tuple[dict, dict]:
        """Decode a JWT without verification (for logging claims only)."""
        header_b64, payload_b64, _ = token.split(".")

        def _pad(b: str) -> bytes:
            return base64.urlsafe_b64decode(b + "===")

        header = json.loads(_pad(header_b64).decode("utf-8"))
        payload = json.loads(_pad(payload_b64).decode("utf-8"))
        return header, payload

    # ---------------------- HTTP helpers ----------------------
    @asynccontextmanager
    async def http_session(self) -> AsyncIterator[httpx.AsyncClient]:
        limits = httpx.Limits(max_connections=20, max_keepalive_connections=10)
        client = httpx.AsyncClient(
            verify=self._verify,
            timeout=self._timeout,
            limits=limits,
            http2=True,
        )
        try:
            yield client
        finally:
            await client.aclose()

    def graph_url(self, path: str) -> str:
        return f"{self.GRAPH_BASE}/{path.lstrip('/')}"

    @staticmethod
    def auth_headers(token: str, extra: Optional[dict] = None) -> dict:
        headers = {"Authorization": f"Bearer {token}"}
        if extra:
            headers.update(extra)
        return headers
