from __future__ import annotations

from typing import Optional, Sequence

import httpx

from shared.graph.base import MSGraphClientBase, read_json
from shared.relay_logging import relay_logging
from schedule_relay.exceptions import SiteNotFoundError
from schedule_relay.models import Credential, ResolvedSite, SiteCandidate

SITE_SELECT = "$select=id,displayName,name,webUrl"


def site_candidates(hostname: str, names: Sequence[str]) -> list[SiteCandidate]:
    """Build probes in the given order; an empty name targets the hostname root site."""
    host = hostname.strip("/")
    candidates: list[SiteCandidate] = []
    seen: set[str] = set()
    for raw in names:
        name = (raw or "").strip("/")
        if name.lower().startswith("sites/"):
            name = name.split("/", 1)[1]
        if name in seen:
            continue
        seen.add(name)
        path = f"sites/{host}:/sites/{name}" if name else f"sites/{host}"
        candidates.append(SiteCandidate(name=name, path=path))
    return candidates


class SiteResolver:
    def __init__(self, http: httpx.AsyncClient, graph: MSGraphClientBase):
        self._http = http
        self._graph = graph

    async def probe(self, credential: Credential, candidate: SiteCandidate) -> Optional[ResolvedSite]:
        url = self._graph.graph_url(f"{candidate.path}?{SITE_SELECT}")
        label = candidate.name or "<root>"
        try:
            resp = await self._http.get(url, headers=self._graph.auth_headers(credential.token))
        except httpx.HTTPError as e:
            relay_logging.warning(f"Site lookup for {label} failed: {e}")
            return None
        if resp.status_code >= 400:
            relay_logging.debug(f"Site {label} not found: {resp.status_code} body={resp.text}")
            return None
        data = read_json(resp)
        site_id = data.get("id") if data else None
        if not site_id:
            return None
        return ResolvedSite(
            site_id=site_id,
            display_name=data.get("displayName") or data.get("name") or "",
            candidate=candidate.name,
        )

    async def resolve_sites(
        self,
        credential: Credential,
        hostname: str,
        candidate_names: Sequence[str],
    ) -> list[ResolvedSite]:
        """
        Probe every candidate in order and return all that resolve, in probe order.

        A candidate that fails to resolve is skipped; only an empty result raises.
        """
        candidates = site_candidates(hostname, candidate_names)
        resolved: list[ResolvedSite] = []
        for candidate in candidates:
            site = await self.probe(credential, candidate)
            if site is None:
                continue
            if any(s.site_id == site.site_id for s in resolved):
                relay_logging.debug(f"Site {site.site_id} already resolved; skipping duplicate")
                continue
            relay_logging.info(f"Resolved site {site.display_name!r} ({site.site_id}) from candidate "
                               f"{candidate.name or '<root>'}")
            resolved.append(site)
        if not resolved:
            raise SiteNotFoundError([c.name for c in candidates])
        return resolved
