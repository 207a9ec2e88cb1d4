"""Drains accrued time from the registry into the ledger."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from .config import TrackerSettings
from .errors import HostInvalidatedError, PersistenceError
from .ledger import LedgerStore
from .models import LedgerDelta
from .registry import TimerRegistry

logger = logging.getLogger(__name__)

LedgerKey = tuple[str, date]


class SyncCoordinator:
    """Serializes every ledger write behind one drain at a time.

    ``flush_all`` never overlaps itself: a call made while a drain is in
    flight waits for that drain instead of starting another. Increments for
    the same hostname are additionally serialized by a per-hostname lock.
    """

    def __init__(
        self,
        registry: TimerRegistry,
        ledger: LedgerStore,
        settings: Optional[TrackerSettings] = None,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.settings = settings or TrackerSettings()
        self._inflight: Optional[asyncio.Future[None]] = None
        self._host_locks: dict[str, asyncio.Lock] = {}
        self._backlog: dict[LedgerKey, float] = {}
        self._failures: dict[LedgerKey, int] = {}
        self._ticker: Optional[asyncio.Task[None]] = None
        self._invalidated = False

    @property
    def invalidated(self) -> bool:
        return self._invalidated

    @property
    def backlog(self) -> dict[LedgerKey, float]:
        return dict(self._backlog)

    async def flush_all(self) -> None:
        if self._invalidated:
            return
        inflight = self._inflight
        if inflight is None or inflight.done():
            inflight = asyncio.ensure_future(self._drain())
            inflight.add_done_callback(self._clear_inflight)
            self._inflight = inflight
        await asyncio.shield(inflight)

    def start(self) -> None:
        """Begin the periodic sync tick on the running loop."""
        if self._ticker is not None and not self._ticker.done():
            return
        self._ticker = asyncio.create_task(self._tick_loop(), name="site-timer-sync")
        logger.info(
            "Sync loop started; interval %.1fs", self.settings.sync_interval.total_seconds()
        )

    async def stop(self) -> None:
        """Cancel the tick and make one last bounded flush."""
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
        await self.flush_with_timeout()
        logger.info("Sync loop stopped.")

    async def flush_with_timeout(self) -> bool:
        """Best-effort flush for suspend/shutdown; returns False on timeout."""
        timeout = self.settings.shutdown_timeout.total_seconds()
        try:
            await asyncio.wait_for(self.flush_all(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Ledger flush did not finish within %.1fs", timeout)
            return False
        return True

    async def _tick_loop(self) -> None:
        interval = self.settings.sync_interval.total_seconds()
        while not self._invalidated:
            await asyncio.sleep(interval)
            try:
                await self.flush_all()
            except Exception:
                logger.exception("Periodic sync failed")

    async def _drain(self) -> None:
        pending = list(self._merge(self.registry.collect_deltas()).items())
        if not pending:
            return
        attempted = 0
        try:
            for (hostname, day), seconds in pending:
                async with self._lock_for(hostname):
                    try:
                        await self.ledger.increment(hostname, day, seconds)
                    except HostInvalidatedError as exc:
                        self.invalidate(exc)
                        return
                    except PersistenceError as exc:
                        self._retain((hostname, day), seconds, exc)
                    except Exception as exc:
                        logger.exception("Unexpected ledger error for %s", hostname)
                        self._retain((hostname, day), seconds, exc)
                    else:
                        self._failures.pop((hostname, day), None)
                attempted += 1
        finally:
            # A cancelled drain hands its unwritten keys to the next one.
            if not self._invalidated:
                for key, seconds in pending[attempted:]:
                    self._backlog[key] = self._backlog.get(key, 0.0) + seconds
        logger.debug("Drained %d ledger entr(ies)", len(pending))

    def _merge(self, deltas: list[LedgerDelta]) -> dict[LedgerKey, float]:
        merged: defaultdict[LedgerKey, float] = defaultdict(float)
        for key, seconds in self._backlog.items():
            merged[key] += seconds
        self._backlog.clear()
        for delta in deltas:
            if delta.seconds > 0:
                merged[delta.key] += delta.seconds
        return dict(merged)

    def _retain(self, key: LedgerKey, seconds: float, exc: Exception) -> None:
        failures = self._failures.get(key, 0) + 1
        if failures >= self.settings.max_write_failures:
            self._failures.pop(key, None)
            logger.warning(
                "Dropping %.1fs for %s on %s after %d failed writes: %s",
                seconds,
                key[0],
                key[1].isoformat(),
                failures,
                exc,
            )
            return
        self._failures[key] = failures
        self._backlog[key] = self._backlog.get(key, 0.0) + seconds
        logger.info("Ledger write for %s failed (%d); retrying next tick", key[0], failures)

    def invalidate(self, exc: Exception) -> None:
        """Quiesce tracking and stop all further ledger I/O."""
        if self._invalidated:
            return
        self._invalidated = True
        self.registry.quiesce()
        logger.warning("Ledger unavailable, tracking stopped: %s", exc)

    def _lock_for(self, hostname: str) -> asyncio.Lock:
        lock = self._host_locks.get(hostname)
        if lock is None:
            lock = asyncio.Lock()
            self._host_locks[hostname] = lock
        return lock

    def _clear_inflight(self, future: asyncio.Future[None]) -> None:
        if self._inflight is future:
            self._inflight = None
