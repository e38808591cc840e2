from __future__ import annotations

import json

from shared.graph.base import MSGraphClientBase
from shared.relay_logging import relay_logging
from schedule_relay.config import RelaySettings
from schedule_relay.exceptions import AuthError
from schedule_relay.models import Credential

GRAPH_SCOPE = MSGraphClientBase.GRAPH_SCOPE


def legacy_scope(hostname: str) -> str:
    """Tenant-host audience required by the SharePoint REST endpoints."""
    return f"https://{hostname.strip('/')}/.default"


class CredentialProvider(MSGraphClientBase):
    """
    Exchanges the configured client id/secret for a bearer token.

    The audience is a required argument of ``acquire``; callers pick either
    ``GRAPH_SCOPE`` or ``legacy_scope(hostname)``.  Each call performs a new
    exchange; tokens are never reused across calls.
    """

    def __init__(self, settings: RelaySettings):
        super().__init__(
            tenant_id=settings.tenant_id,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            verify=settings.verify_tls,
            timeout=settings.request_timeout_s,
            log_token_claims=settings.log_token_claims,
        )
        self.hostname = settings.hostname

    async def acquire(self, scope: str) -> Credential:
        http_client = self.token_http_client()
        try:
            result = await self.acquire_token_for_client([scope], http_client)
        except Exception as e:
            raise AuthError(f"Authentication failed: {e}", status_code=http_client.last_status) from e
        finally:
            http_client.close()

        token = result.get("access_token")
        if not token:
            error_code = result.get("error")
            detail = result.get("error_description") or error_code or "no access_token in response"
            raise AuthError(
                f"Authentication failed: {detail}",
                status_code=http_client.last_status,
                body=json.dumps(result),
                error_code=error_code,
            )
        relay_logging.debug(f"Acquired token for scope {scope}")
        return Credential(token=token, scope=scope)
