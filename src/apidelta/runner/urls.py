from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from apidelta.domain.models import IdValue


def substitute_id(path: str, id_value: IdValue) -> str:
    # m/venues/v1/{venueId} -> m/venues/v1/31
    if not id_value.category or not id_value.value:
        return path
    return path.replace("{" + id_value.category + "}", id_value.value)


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def build_url(base: Optional[str], path: Optional[str]) -> str:
    """Join base + path with exactly one slash. Returns "" when no valid URL can be built."""
    if path is None:
        return ""
    path = path.strip()

    if path.startswith(("http://", "https://")):
        candidate = path
    else:
        if not base:
            return ""
        base = base.strip()
        candidate = f"{base.rstrip('/')}/{path.lstrip('/')}" if path else base

    return candidate if is_valid_url(candidate) else ""
