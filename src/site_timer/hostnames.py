"""Utilities to reduce URLs and user input to tracked hostnames."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from .errors import MalformedHostnameError

_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")
_HOSTNAME_PATTERN = re.compile(r"^[a-z0-9_]([a-z0-9_\-]*[a-z0-9_])?(\.[a-z0-9_]([a-z0-9_\-]*[a-z0-9_])?)*$")
_IPV6_PATTERN = re.compile(r"^[0-9a-f:.]+$")


def hostname_from_url(url: str) -> str:
    """Return the lower-cased hostname of ``url``.

    Raises :class:`MalformedHostnameError` when the URL has no parsable host.
    """
    if not isinstance(url, str) or not url.strip():
        raise MalformedHostnameError(url)
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError as exc:
        raise MalformedHostnameError(url) from exc
    if not hostname or not _is_valid_hostname(hostname):
        raise MalformedHostnameError(url)
    return hostname


def normalize_hostname(value: str) -> str:
    """Accept a bare hostname or a full URL and return the hostname."""
    if not isinstance(value, str):
        raise MalformedHostnameError(value)
    candidate = value.strip()
    if not _SCHEME_PATTERN.match(candidate):
        candidate = f"http://{candidate}"
    return hostname_from_url(candidate)


def _is_valid_hostname(hostname: str) -> bool:
    if ":" in hostname:
        return bool(_IPV6_PATTERN.match(hostname))
    return len(hostname) <= 253 and bool(_HOSTNAME_PATTERN.match(hostname))
