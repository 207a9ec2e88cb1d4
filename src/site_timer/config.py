"""Configuration models and helpers for the site timer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


MIN_SYNC_SECONDS = 1.0
MAX_SYNC_SECONDS = 5.0


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the timer engine and its sync loop."""

    sync_interval: timedelta = timedelta(seconds=1)
    shutdown_timeout: timedelta = timedelta(seconds=2)
    max_write_failures: int = 3

    @classmethod
    def from_intervals(
        cls,
        sync_seconds: float,
        shutdown_seconds: float | None = None,
        max_write_failures: int | None = None,
    ) -> "TrackerSettings":
        sync = min(max(sync_seconds, MIN_SYNC_SECONDS), MAX_SYNC_SECONDS)
        shutdown = shutdown_seconds if shutdown_seconds is not None else max(sync * 2, 2.0)
        return cls(
            sync_interval=timedelta(seconds=sync),
            shutdown_timeout=timedelta(seconds=shutdown),
            max_write_failures=max_write_failures if max_write_failures is not None else 3,
        )
