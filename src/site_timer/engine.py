"""Lifecycle and display entry points wiring the registry to its stores."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from .config import TrackerSettings
from .errors import HostInvalidatedError, MalformedHostnameError, PersistenceError
from .hostnames import hostname_from_url
from .ledger import LedgerStore
from .models import Context
from .registry import TimerRegistry
from .session import Clock, local_now
from .sync import SyncCoordinator
from .watchlist import WatchlistStore

logger = logging.getLogger(__name__)


class SiteTimeTracker:
    """Consumes browser lifecycle signals and answers display queries.

    A context accrues time only while it is the foreground context, is not
    hidden, the browser window has focus, and its hostname is watched. The
    lifecycle handlers are synchronous; only I/O-bound calls are coroutines.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        watchlist: WatchlistStore,
        settings: Optional[TrackerSettings] = None,
        clock: Clock = local_now,
    ) -> None:
        self.settings = settings or TrackerSettings()
        self.ledger = ledger
        self.watchlist = watchlist
        self._clock = clock
        self.registry = TimerRegistry(clock=clock)
        self.coordinator = SyncCoordinator(self.registry, ledger, self.settings)
        self._foreground: Optional[Context] = None
        self._hidden: set[Context] = set()
        self._window_focused = True
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def start(self, *, periodic: bool = True) -> None:
        """Load the watchlist, subscribe to changes and start syncing."""
        try:
            hostnames = await self.watchlist.get()
        except HostInvalidatedError as exc:
            self.coordinator.invalidate(exc)
            return
        except PersistenceError as exc:
            logger.warning("Could not load watchlist, starting empty: %s", exc)
            hostnames = frozenset()
        self.registry.apply_watchlist(hostnames, attended=self.attended_context)
        if self._unsubscribe is None:
            self._unsubscribe = self.watchlist.subscribe(self._on_watchlist_changed)
        if periodic:
            self.coordinator.start()
        logger.info("Tracking %d watched hostname(s)", len(hostnames))

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.registry.pause_all()
        await self.coordinator.stop()

    @property
    def active(self) -> bool:
        return not self.registry.quiesced

    @property
    def attended_context(self) -> Optional[Context]:
        context = self._foreground
        if context is None or not self._window_focused or context in self._hidden:
            return None
        return context

    # Lifecycle signals

    def on_context_navigated(self, context: Context, url: str) -> None:
        if not self.active:
            return
        try:
            hostname = hostname_from_url(url)
        except MalformedHostnameError:
            logger.debug("Ignoring navigation of %r to %r", context, url)
            return
        if not self.registry.is_watched(hostname):
            self.registry.release(context)
        self.registry.admit(context, hostname, accrue=self.attended_context == context)

    def on_context_foregrounded(self, context: Context) -> None:
        if not self.active:
            return
        self._foreground = context
        self._hidden.discard(context)
        self.registry.activate(context, accrue=self.attended_context == context)

    def on_context_backgrounded(self, context: Context) -> None:
        if self._foreground == context:
            self._foreground = None
        self.registry.suspend(context)

    def on_context_visible(self, context: Context) -> None:
        self._hidden.discard(context)
        if self.active and self.attended_context == context:
            self.registry.resume(context)

    def on_context_hidden(self, context: Context) -> None:
        self._hidden.add(context)
        self.registry.suspend(context)

    def on_window_focused(self) -> None:
        self._window_focused = True
        context = self.attended_context
        if self.active and context is not None:
            self.registry.resume(context)

    def on_window_blurred(self) -> None:
        self._window_focused = False
        if self._foreground is not None:
            self.registry.suspend(self._foreground)

    def on_context_destroyed(self, context: Context) -> None:
        self.registry.forget(context)
        self._hidden.discard(context)
        if self._foreground == context:
            self._foreground = None

    async def on_process_suspending(self) -> None:
        logger.info("Process suspending; flushing accrued time.")
        await self.coordinator.flush_with_timeout()

    # Display queries

    def query_session_elapsed(self, context: Context) -> float:
        snapshot = self.registry.active_timer_for(context)
        return snapshot.elapsed_seconds if snapshot is not None else 0.0

    async def query_daily_total(self, hostname: str, day: Optional[date] = None) -> float:
        day = day or self._clock().date()
        try:
            entries = await self.ledger.get(hostname)
        except HostInvalidatedError as exc:
            self.coordinator.invalidate(exc)
            return 0.0
        return float(entries.get(day.isoformat(), 0.0))

    async def request_immediate_sync(self) -> None:
        await self.coordinator.flush_all()

    def _on_watchlist_changed(self, hostnames: frozenset[str]) -> None:
        self.registry.apply_watchlist(hostnames, attended=self.attended_context)
