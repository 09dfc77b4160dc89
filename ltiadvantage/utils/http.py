"""HTTP helpers shared by the service layer: query strings and paths."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import quote_plus


def append_query(url: str, parameters: Mapping[str, object] | None) -> str:
    """Append URL-encoded parameters, respecting any existing query string."""
    if not parameters:
        return url
    sep = "&" if "?" in url else "?"
    parts = []
    for name, value in parameters.items():
        parts.append(f"{quote_plus(str(name))}={quote_plus(str(value))}")
    return url + sep + "&".join(parts)


def add_path(endpoint: str, path: str) -> str:
    """Add ``path`` to an endpoint (before any query string) unless already present."""
    if not path:
        return endpoint
    if "?" not in endpoint:
        if not endpoint.endswith(path):
            endpoint += path
    elif f"{path}?" not in endpoint:
        endpoint = endpoint.replace("?", f"{path}?", 1)
    return endpoint


__all__ = ["add_path", "append_query"]
