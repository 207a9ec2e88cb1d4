"""Per-context session state machine."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional

from .models import Context, LedgerDelta, TimerSnapshot, TimerState

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Aware local time; durations between two readings survive DST shifts."""
    return datetime.now(timezone.utc).astimezone()


def seconds_between(start: datetime, end: datetime) -> float:
    """Real seconds from ``start`` to ``end``, comparing aware values in UTC."""
    if start.tzinfo is not None and end.tzinfo is not None:
        return (end.astimezone(timezone.utc) - start.astimezone(timezone.utc)).total_seconds()
    return (end - start).total_seconds()


class SessionTracker:
    """Tracks whether one browsing context is accruing time for its hostname.

    The tracker never touches the ledger. Closed segments are queued as
    :class:`LedgerDelta` values and handed over through :meth:`drain`.
    """

    def __init__(self, hostname: str, clock: Clock = local_now) -> None:
        self._clock = clock
        self.hostname = hostname
        self.state = TimerState.NOT_TRACKING
        self.accrual_start: Optional[datetime] = None
        self.total_elapsed = 0.0
        self.last_update = clock()
        self._pending: list[LedgerDelta] = []

    @property
    def is_accruing(self) -> bool:
        return self.state is TimerState.ACCRUING

    @property
    def unflushed_seconds(self) -> float:
        return sum(delta.seconds for delta in self._pending)

    def start(self, hostname: Optional[str] = None) -> None:
        now = self._clock()
        if hostname is not None and hostname != self.hostname:
            self._retarget(hostname, now)
        elif self.state is TimerState.ACCRUING:
            self.last_update = now
            return
        self.last_update = now
        self.state = TimerState.ACCRUING
        self.accrual_start = now

    def retarget(self, hostname: str) -> None:
        """Move to ``hostname`` without accruing; the old segment is closed."""
        if hostname != self.hostname:
            self._retarget(hostname, self._clock())

    def pause(self) -> None:
        self._close(TimerState.PAUSED)

    def stop(self) -> None:
        self._close(TimerState.NOT_TRACKING)

    def flush(self) -> None:
        """Record the running segment without leaving the accruing state."""
        now = self._clock()
        self.last_update = now
        if self.state is not TimerState.ACCRUING or self.accrual_start is None:
            return
        self._record_segment(self.accrual_start, now)
        self.accrual_start = now

    def drain(self) -> list[LedgerDelta]:
        pending, self._pending = self._pending, []
        return pending

    def elapsed(self) -> float:
        """Seconds shown for this session, including the running segment."""
        running = 0.0
        if self.state is TimerState.ACCRUING and self.accrual_start is not None:
            running = max(seconds_between(self.accrual_start, self._clock()), 0.0)
        return self.total_elapsed + running

    def snapshot(self, context: Context) -> TimerSnapshot:
        return TimerSnapshot(
            context=context,
            hostname=self.hostname,
            state=self.state,
            elapsed_seconds=self.elapsed(),
            unflushed_seconds=self.unflushed_seconds,
            accrual_start=self.accrual_start,
        )

    def _retarget(self, hostname: str, now: datetime) -> None:
        self._close(TimerState.PAUSED, now)
        logger.debug("Timer retargeted from %s to %s", self.hostname, hostname)
        self.hostname = hostname
        self.total_elapsed = 0.0

    def _close(self, target: TimerState, now: Optional[datetime] = None) -> None:
        now = now or self._clock()
        self.last_update = now
        if self.state is TimerState.ACCRUING and self.accrual_start is not None:
            self._record_segment(self.accrual_start, now)
            self.accrual_start = None
            self.state = target
        elif target is TimerState.NOT_TRACKING:
            self.state = target

    def _record_segment(self, start: datetime, end: datetime) -> None:
        for delta in split_by_day(self.hostname, start, end):
            self.total_elapsed += delta.seconds
            self._pending.append(delta)


def split_by_day(hostname: str, start: datetime, end: datetime) -> list[LedgerDelta]:
    """Break ``[start, end)`` into one delta per local calendar day.

    Seconds are real elapsed time; the calendar day is read in ``start``'s
    zone, so a DST change inside a segment neither adds nor drops an hour.
    """
    zone = start.tzinfo
    deltas: list[LedgerDelta] = []
    cursor = start
    while seconds_between(cursor, end) > 0:
        day = cursor.astimezone(zone).date() if zone is not None else cursor.date()
        midnight = datetime.combine(day + timedelta(days=1), time(), zone)
        segment_end = midnight if seconds_between(midnight, end) > 0 else end
        deltas.append(
            LedgerDelta(hostname=hostname, day=day, seconds=seconds_between(cursor, segment_end))
        )
        cursor = segment_end
    return deltas
