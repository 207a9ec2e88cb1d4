"""Exception types raised by the tracker and its stores."""

from __future__ import annotations


class SiteTimerError(Exception):
    """Base class for all tracker errors."""


class MalformedHostnameError(SiteTimerError, ValueError):
    """A URL could not be reduced to a usable hostname."""

    def __init__(self, url: object) -> None:
        super().__init__(f"Cannot derive a hostname from {url!r}")
        self.url = url


class PersistenceError(SiteTimerError):
    """A ledger or watchlist store rejected a read or write."""


class HostInvalidatedError(PersistenceError):
    """The surrounding runtime went away; no further I/O should be attempted."""
