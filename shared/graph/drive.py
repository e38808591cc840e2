from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote

import httpx

from shared.graph.base import MSGraphClientBase, read_json
from shared.relay_logging import relay_logging

SEARCH_SELECT = "id,name,parentReference,file"


def search_query(name: str) -> str:
    """Quote a name for the ``search(q='...')`` function: OData quote doubling, then URL encoding."""
    return quote(name.replace("'", "''"), safe="()!*~")


def search_path(drive_resource: str, name: str) -> str:
    return f"{drive_resource.rstrip('/')}/root/search(q='{search_query(name)}')?$select={SEARCH_SELECT}"


async def search_drive(
    http: httpx.AsyncClient,
    graph: MSGraphClientBase,
    headers: dict,
    drive_resource: str,
    name: str,
) -> Optional[List[dict]]:
    """
    Run the store's name search inside one drive.

    ``drive_resource`` is either ``sites/{site_id}/drive`` (the default drive) or
    ``drives/{drive_id}``.  Returns the first page of hits, or None when the
    search call itself failed.
    """
    url = graph.graph_url(search_path(drive_resource, name))
    try:
        resp = await http.get(url, headers=headers)
    except httpx.HTTPError as e:
        relay_logging.warning(f"Search in {drive_resource} failed: {e}")
        return None
    if resp.status_code >= 400:
        relay_logging.debug(f"Search in {drive_resource} failed: {resp.status_code} body={resp.text}")
        return None
    data = read_json(resp) or {}
    return [hit for hit in data.get("value") or [] if hit.get("id")]


async def list_drives(
    http: httpx.AsyncClient,
    graph: MSGraphClientBase,
    headers: dict,
    site_id: str,
) -> List[dict]:
    """Every drive attached to a site, following @odata.nextLink.  A failed page ends the listing."""
    url: Optional[str] = graph.graph_url(f"sites/{site_id}/drives?$select=id,name")
    drives: List[dict] = []
    while url:
        try:
            resp = await http.get(url, headers=headers)
        except httpx.HTTPError as e:
            relay_logging.warning(f"Listing drives for site {site_id} failed: {e}")
            break
        if resp.status_code >= 400:
            relay_logging.debug(f"Listing drives for site {site_id} failed: {resp.status_code} body={resp.text}")
            break
        data = read_json(resp) or {}
        drives.extend(d for d in data.get("value") or [] if d.get("id"))
        url = data.get("@odata.nextLink")
    return drives
