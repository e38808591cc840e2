from __future__ import annotations

from functools import partial
from typing import Awaitable, Callable, Iterable, Optional, Sequence

import httpx

from shared.graph.drive import list_drives, search_drive
from shared.graph.base import read_json
from shared.graph.spo import SPO_JSON_ACCEPT, file_by_id_suffix, spo_url
from shared.relay_logging import relay_logging
from schedule_relay.config import RelaySettings
from schedule_relay.credentials import CredentialProvider, legacy_scope
from schedule_relay.exceptions import AuthError, ResourceNotFoundError
from schedule_relay.models import Credential, HandleSource, LocatedResource, ResolvedSite, ResourceHandle

Strategy = Callable[[], Awaitable[Optional[ResourceHandle]]]


async def first_match(strategies: Iterable[Strategy]) -> Optional[ResourceHandle]:
    """Await strategies in order and return the first handle found."""
    for strategy in strategies:
        handle = await strategy()
        if handle is not None:
            return handle
    return None


class ResourceLocator:
    """
    Finds the (drive id, item id) of a file whose location is not known up front.

    Tier A: direct SharePoint REST lookup by a known file id (``locate_by_known_id``).
    Tier B: name search in a site's default drive.
    Tier C: name search in every drive of a site, in listed order.

    ``locate`` runs B then C for each resolved site in priority order.  Failures of
    individual lookups are logged and skipped; only total exhaustion raises.
    """

    def __init__(self, http: httpx.AsyncClient, credentials: CredentialProvider, settings: RelaySettings):
        self._http = http
        self._credentials = credentials
        self._settings = settings

    # ---------------------- Tier A ----------------------
    async def locate_by_known_id(self, file_id: str) -> Optional[LocatedResource]:
        """Look the file up by id; the tenant-host credential comes back with the handle."""
        scope = legacy_scope(self._settings.hostname)
        try:
            credential = await self._credentials.acquire(scope)
        except AuthError as e:
            relay_logging.warning(f"Direct lookup skipped, could not acquire SharePoint token: {e}")
            return None
        strategies = [
            partial(self._lookup_file_by_id, credential, site_name, file_id)
            for site_name in self._settings.legacy_site_names()
        ]
        handle = await first_match(strategies)
        return LocatedResource(handle, credential) if handle is not None else None

    async def _lookup_file_by_id(self, credential: Credential, site_name: str,
                                 file_id: str) -> Optional[ResourceHandle]:
        url = spo_url(self._settings.hostname, site_name, file_by_id_suffix(file_id))
        headers = self._credentials.auth_headers(credential.token, {"Accept": SPO_JSON_ACCEPT})
        try:
            resp = await self._http.get(url, headers=headers)
        except httpx.HTTPError as e:
            relay_logging.warning(f"Direct lookup in site {site_name} failed: {e}")
            return None
        if resp.status_code >= 400:
            relay_logging.debug(f"Direct lookup in site {site_name} failed: {resp.status_code} body={resp.text}")
            return None
        data = read_json(resp) or {}
        unique_id = data.get("UniqueId")
        if not unique_id:
            return None
        relay_logging.info(f"File found by id in site {site_name}: {data.get('Name') or unique_id}")
        return ResourceHandle(container_id=site_name, item_id=unique_id, source=HandleSource.LEGACY)

    # ---------------------- Tier B ----------------------
    async def search_default_drive(self, credential: Credential, site: ResolvedSite,
                                   file_name: str) -> Optional[ResourceHandle]:
        relay_logging.info(f"Searching default drive of site {site.display_name or site.site_id}")
        headers = self._credentials.auth_headers(credential.token)
        hits = await search_drive(self._http, self._credentials, headers, f"sites/{site.site_id}/drive", file_name)
        for hit in hits or []:
            drive_id = (hit.get("parentReference") or {}).get("driveId")
            if drive_id:
                relay_logging.info(f"File found in default drive: {hit['id']} (drive {drive_id})")
                return ResourceHandle(container_id=drive_id, item_id=hit["id"])
        return None

    # ---------------------- Tier C ----------------------
    async def search_all_drives(self, credential: Credential, site: ResolvedSite,
                                file_name: str) -> Optional[ResourceHandle]:
        headers = self._credentials.auth_headers(credential.token)
        drives = await list_drives(self._http, self._credentials, headers, site.site_id)
        relay_logging.info(f"Found {len(drives)} drives in site {site.display_name or site.site_id}")
        for drive in drives:
            relay_logging.debug(f"Searching drive {drive.get('name')} ({drive['id']})")
            hits = await search_drive(self._http, self._credentials, headers, f"drives/{drive['id']}", file_name)
            if hits:
                relay_logging.info(f"File found in drive {drive.get('name')}: {hits[0]['id']}")
                return ResourceHandle(container_id=drive["id"], item_id=hits[0]["id"])
        return None

    async def locate(self, credential: Credential, sites: Sequence[ResolvedSite], file_name: str) -> ResourceHandle:
        strategies: list[Strategy] = []
        for site in sites:
            strategies.append(partial(self.search_default_drive, credential, site, file_name))
            strategies.append(partial(self.search_all_drives, credential, site, file_name))
        handle = await first_match(strategies)
        if handle is None:
            raise ResourceNotFoundError(file_name)
        return handle
