from dataclasses import dataclass
from enum import Enum

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class HandleSource(str, Enum):
    GRAPH = "graph"
    LEGACY = "legacy"


@dataclass(frozen=True)
class Credential:
    token: str
    scope: str


@dataclass(frozen=True)
class SiteCandidate:
    # empty name means the hostname root site
    name: str
    path: str


@dataclass(frozen=True)
class ResolvedSite:
    site_id: str
    display_name: str
    candidate: str


@dataclass(frozen=True)
class ResourceHandle:
    """Location of a retrievable file.

    For ``GRAPH`` handles ``container_id`` is a drive id. For ``LEGACY`` handles
    it is the SharePoint site name the file was found under.
    """
    container_id: str
    item_id: str
    source: HandleSource = HandleSource.GRAPH


@dataclass(frozen=True)
class Content:
    data: bytes
    media_type: str = XLSX_MEDIA_TYPE


@dataclass(frozen=True)
class LocatedResource:
    """A handle together with the credential that found it and can fetch it."""
    handle: ResourceHandle
    credential: Credential
