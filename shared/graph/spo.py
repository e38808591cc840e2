from urllib.parse import quote

SPO_JSON_ACCEPT = "application/json;odata=nometadata"


def spo_url(hostname: str, site_name: str, suffix: str) -> str:
    """SharePoint Online REST URL for a site under /sites/."""
    return f"https://{hostname.strip('/')}/sites/{site_name.strip('/')}/{suffix.lstrip('/')}"


def file_by_id_suffix(file_id: str, *, content: bool = False) -> str:
    # file ids are GUIDs, optionally wrapped in braces
    path = f"_api/web/GetFileById('{quote(file_id.strip().strip('{}'), safe='-')}')"
    return f"{path}/$value" if content else path
