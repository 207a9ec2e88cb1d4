"""Persisted set of hostnames eligible for tracking."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from .db import SharedConnection, fetch_watchlist, replace_watchlist
from .hostnames import normalize_hostname

logger = logging.getLogger(__name__)

WatchlistListener = Callable[[frozenset[str]], None]


class WatchlistStore:
    """Watchlist backed by the ``watchlist`` table, with change notifications.

    Listeners are called synchronously with the new set after every
    successful write.
    """

    def __init__(self, db: SharedConnection) -> None:
        self._db = db
        self._listeners: list[WatchlistListener] = []
        self._write_lock = asyncio.Lock()

    def subscribe(self, listener: WatchlistListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def get(self) -> frozenset[str]:
        return frozenset(await self._db.run(fetch_watchlist))

    async def set(self, hostnames: Iterable[str]) -> frozenset[str]:
        updated = frozenset(normalize_hostname(name) for name in hostnames)
        async with self._write_lock:
            return await self._write(updated)

    async def add(self, hostname: str) -> frozenset[str]:
        name = normalize_hostname(hostname)
        async with self._write_lock:
            current = await self.get()
            if name in current:
                return current
            return await self._write(current | {name})

    async def remove(self, hostname: str) -> frozenset[str]:
        name = normalize_hostname(hostname)
        async with self._write_lock:
            current = await self.get()
            if name not in current:
                return current
            return await self._write(current - {name})

    async def toggle(self, hostname: str) -> bool:
        """Add or remove ``hostname``; returns whether it is now watched."""
        name = normalize_hostname(hostname)
        async with self._write_lock:
            current = await self.get()
            if name in current:
                await self._write(current - {name})
                return False
            await self._write(current | {name})
            return True

    async def _write(self, hostnames: frozenset[str]) -> frozenset[str]:
        await self._db.run(replace_watchlist, hostnames)
        logger.info("Watchlist updated: %d hostname(s)", len(hostnames))
        self._notify(hostnames)
        return hostnames

    def _notify(self, hostnames: frozenset[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(hostnames)
            except Exception:
                logger.exception("Watchlist listener %r failed", listener)
