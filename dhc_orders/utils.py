import re
from typing import Any, Optional
from urllib.parse import urljoin

BASE_URL = "https://delhihighcourt.nic.in"

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(value: Any) -> str:
    """Drop tags and collapse whitespace, the way the DataTables cells need it."""
    if value is None:
        return ""
    text = _TAG_RE.sub(" ", str(value))
    return _WS_RE.sub(" ", text).strip()


def strip_tags(value: Any) -> str:
    """Remove tags without inserting spaces; order dates are split across tags."""
    if value is None:
        return ""
    return _TAG_RE.sub("", str(value)).strip()


def absolute_url(href: Optional[str], base_url: str = BASE_URL) -> str:
    href = (href or "").strip()
    if not href:
        return ""
    if href.startswith("http"):
        return href
    return urljoin(base_url + "/", href)


def safe_filename_part(value: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_. ()-]", "_", value)
    return re.sub(r"\s+", "_", cleaned)


def truncate(value: Any, limit: int = 500) -> str:
    text = str(value or "")
    return text if len(text) <= limit else text[:limit]
