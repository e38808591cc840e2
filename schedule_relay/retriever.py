from __future__ import annotations

import httpx

from shared.graph.base import MSGraphClientBase
from shared.graph.spo import file_by_id_suffix, spo_url
from shared.relay_logging import relay_logging
from schedule_relay.exceptions import DownloadError
from schedule_relay.models import Content, Credential, HandleSource, ResourceHandle


class ContentRetriever:
    def __init__(self, http: httpx.AsyncClient, graph: MSGraphClientBase, hostname: str):
        self._http = http
        self._graph = graph
        self._hostname = hostname

    def content_url(self, handle: ResourceHandle) -> str:
        if handle.source is HandleSource.LEGACY:
            return spo_url(self._hostname, handle.container_id, file_by_id_suffix(handle.item_id, content=True))
        return self._graph.graph_url(f"drives/{handle.container_id}/items/{handle.item_id}/content")

    async def download(self, credential: Credential, handle: ResourceHandle) -> Content:
        """Fetch the whole payload for a handle; any non-success status raises DownloadError."""
        url = self.content_url(handle)
        try:
            # Graph answers /content with a redirect to a pre-authenticated URL
            resp = await self._http.get(url, headers=self._graph.auth_headers(credential.token),
                                        follow_redirects=True)
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to download file: {e}") from e
        if resp.status_code >= 400:
            raise DownloadError(
                f"Failed to download file: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        relay_logging.info(f"Downloaded {len(resp.content)} bytes ({handle.container_id}/{handle.item_id})")
        return Content(data=resp.content)
