"""In-memory table of session trackers, one per browsing context."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import Context, LedgerDelta, TimerSnapshot
from .session import Clock, SessionTracker, local_now

logger = logging.getLogger(__name__)


class TimerRegistry:
    """Owns every :class:`SessionTracker` and enforces single-tab accrual.

    All methods are synchronous and must be called from the event loop
    thread. Unknown contexts are ignored rather than reported.
    """

    def __init__(self, clock: Clock = local_now, watchlist: Iterable[str] = ()) -> None:
        self._clock = clock
        self._timers: dict[Context, SessionTracker] = {}
        self._locations: dict[Context, str] = {}
        self._watchlist: frozenset[str] = frozenset(watchlist)
        self._outbox: list[LedgerDelta] = []
        self._quiesced = False

    @property
    def watchlist(self) -> frozenset[str]:
        return self._watchlist

    @property
    def quiesced(self) -> bool:
        return self._quiesced

    def is_watched(self, hostname: str) -> bool:
        return hostname in self._watchlist

    def __contains__(self, context: Context) -> bool:
        return context in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def hostname_of(self, context: Context) -> Optional[str]:
        return self._locations.get(context)

    def admit(self, context: Context, hostname: str, accrue: bool = True) -> None:
        """Track ``context`` on ``hostname`` if the hostname is watched."""
        self._locations[context] = hostname
        if self._quiesced or hostname not in self._watchlist:
            return
        timer = self._timers.get(context)
        if timer is None:
            timer = SessionTracker(hostname, clock=self._clock)
            self._timers[context] = timer
            logger.debug("Admitted context %r on %s", context, hostname)
        if accrue:
            self._accrue(context, timer, hostname)
        elif timer.hostname != hostname:
            timer.retarget(hostname)

    def release(self, context: Context) -> None:
        timer = self._timers.pop(context, None)
        if timer is None:
            return
        timer.flush()
        timer.stop()
        self._outbox.extend(timer.drain())
        logger.debug("Released context %r (%s)", context, timer.hostname)

    def forget(self, context: Context) -> None:
        """Release ``context`` and drop its remembered hostname."""
        self.release(context)
        self._locations.pop(context, None)

    def suspend(self, context: Context) -> None:
        timer = self._timers.get(context)
        if timer is not None:
            timer.pause()

    def resume(self, context: Context) -> None:
        timer = self._timers.get(context)
        if timer is None or self._quiesced:
            return
        self._accrue(context, timer)

    def activate(self, context: Context, accrue: bool = True) -> None:
        """Bring ``context`` to the foreground, pausing every other timer."""
        self._pause_others(context)
        if accrue:
            self.resume(context)

    def pause_all(self) -> None:
        for timer in self._timers.values():
            timer.pause()

    def quiesce(self) -> None:
        """Stop every timer and refuse to start new ones."""
        if self._quiesced:
            return
        self._quiesced = True
        for timer in self._timers.values():
            timer.stop()
        logger.warning("Timer registry quiesced; %d timer(s) stopped", len(self._timers))

    def active_timer_for(self, context: Context) -> Optional[TimerSnapshot]:
        timer = self._timers.get(context)
        if timer is None:
            return None
        return timer.snapshot(context)

    def accruing_contexts(self) -> list[Context]:
        return [context for context, timer in self._timers.items() if timer.is_accruing]

    def apply_watchlist(self, hostnames: Iterable[str], attended: Optional[Context] = None) -> None:
        """Start or stop tracking open contexts whose hostname changed membership."""
        updated = frozenset(hostnames)
        removed = self._watchlist - updated
        added = updated - self._watchlist
        self._watchlist = updated

        for context, timer in list(self._timers.items()):
            if timer.hostname in removed:
                self.release(context)

        for context, hostname in list(self._locations.items()):
            if hostname in added and context not in self._timers:
                self.admit(context, hostname, accrue=context == attended)

    def collect_deltas(self) -> list[LedgerDelta]:
        """Flush accruing timers and take every queued delta."""
        deltas, self._outbox = self._outbox, []
        for timer in self._timers.values():
            if timer.is_accruing:
                timer.flush()
            deltas.extend(timer.drain())
        return deltas

    def _accrue(self, context: Context, timer: SessionTracker, hostname: Optional[str] = None) -> None:
        self._pause_others(context)
        timer.start(hostname)

    def _pause_others(self, context: Context) -> None:
        for other, timer in self._timers.items():
            if other != context and timer.is_accruing:
                timer.pause()
