from __future__ import annotations

import asyncio

from shared.relay_logging import relay_logging
from schedule_relay.config import RelaySettings
from schedule_relay.credentials import GRAPH_SCOPE, CredentialProvider
from schedule_relay.exceptions import PipelineTimeoutError
from schedule_relay.locator import ResourceLocator
from schedule_relay.models import Content, LocatedResource
from schedule_relay.retriever import ContentRetriever
from schedule_relay.sites import SiteResolver


class SchedulePipeline:
    """
    One full retrieval: authenticate, locate, download.

    Nothing is shared between runs except the frozen settings; each ``run``
    opens its own HTTP session and acquires its own tokens.
    """

    def __init__(self, settings: RelaySettings):
        self.settings = settings

    async def run(self) -> Content:
        try:
            return await asyncio.wait_for(self._run(), timeout=self.settings.pipeline_timeout_s)
        except asyncio.TimeoutError as e:
            raise PipelineTimeoutError(
                f"Timed out after {self.settings.pipeline_timeout_s:g}s retrieving {self.settings.file_name!r}"
            ) from e

    async def _run(self) -> Content:
        settings = self.settings
        credentials = CredentialProvider(settings)

        relay_logging.info("Authenticating with Microsoft...")
        credential = await credentials.acquire(GRAPH_SCOPE)

        async with credentials.http_session() as http:
            locator = ResourceLocator(http, credentials, settings)

            located = None
            if settings.legacy_file_id:
                relay_logging.info("Trying direct lookup by file id...")
                located = await locator.locate_by_known_id(settings.legacy_file_id)

            if located is None:
                relay_logging.info("Resolving site...")
                sites = await SiteResolver(http, credentials).resolve_sites(
                    credential, settings.hostname, settings.site_name_candidates()
                )
                relay_logging.info(f"Searching for {settings.file_name!r}...")
                handle = await locator.locate(credential, sites, settings.file_name)
                located = LocatedResource(handle, credential)

            handle = located.handle
            relay_logging.info(f"File found - container: {handle.container_id}, item: {handle.item_id}")
            relay_logging.info("Downloading file...")
            return await ContentRetriever(http, credentials, settings.hostname).download(located.credential, handle)
