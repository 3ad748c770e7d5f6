from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

import httpx

from cpapi.core.exceptions import ConfigurationError

API_ROOT = "/api"


def normalize_path(path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    if not path.startswith(API_ROOT):
        path = API_ROOT + path
    return path


def resolve_url(host: str, uri: str) -> str:
    """Build the absolute https URL for ``uri`` on ``host``.

    Only the path, query and fragment of ``uri`` are used; scheme and host
    always come from the configuration. Every path is placed under ``/api``:

        >>> resolve_url("clearpass.example.com", "guest/3001?x=1")
        'https://clearpass.example.com/api/guest/3001?x=1'
    """
    if not host:
        raise ConfigurationError("Hostname must be provided")

    parts = urlsplit(uri)
    url = urlunsplit(("https", host, normalize_path(parts.path), parts.query, parts.fragment))
    try:
        httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(f"Invalid hostname {host!r}: {exc}") from exc
    return url
