from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import date, datetime, timedelta

import pytest

from site_timer.db import SharedConnection
from site_timer.errors import HostInvalidatedError, PersistenceError
from site_timer.registry import TimerRegistry
from site_timer.watchlist import WatchlistStore


class FakeClock:
    def __init__(self, start: datetime = datetime(2025, 3, 14, 9, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class MemoryLedger:
    """Ledger that reads, optionally waits, then writes back like a naive store."""

    def __init__(self, write_delay: float = 0.0) -> None:
        self.write_delay = write_delay
        self.entries: defaultdict[str, dict[str, float]] = defaultdict(dict)
        self.increments: list[tuple[str, date, float]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get(self, hostname: str) -> dict[str, float]:
        return dict(self.entries.get(hostname, {}))

    async def increment(self, hostname: str, day: date, seconds: float) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            current = self.entries[hostname].get(day.isoformat(), 0.0)
            if self.write_delay:
                await asyncio.sleep(self.write_delay)
            self.entries[hostname][day.isoformat()] = current + seconds
            self.increments.append((hostname, day, seconds))
        finally:
            self.in_flight -= 1

    async def totals_between(self, start: date, end: date) -> dict[str, float]:
        totals: dict[str, float] = {}
        for hostname, days in self.entries.items():
            seconds = sum(value for key, value in days.items() if start.isoformat() <= key <= end.isoformat())
            if seconds:
                totals[hostname] = seconds
        return totals

    def total(self, hostname: str, day: date) -> float:
        return self.entries.get(hostname, {}).get(day.isoformat(), 0.0)


class FailingLedger(MemoryLedger):
    def __init__(self, failures: int, error: type[Exception] = PersistenceError) -> None:
        super().__init__()
        self.failures = failures
        self.error = error
        self.attempts = 0

    async def increment(self, hostname: str, day: date, seconds: float) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise self.error("disk I/O error")
        await super().increment(hostname, day, seconds)


class ClosedLedger(MemoryLedger):
    async def get(self, hostname: str) -> dict[str, float]:
        raise HostInvalidatedError("closed")

    async def increment(self, hostname: str, day: date, seconds: float) -> None:
        raise HostInvalidatedError("closed")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def today(clock: FakeClock) -> date:
    return clock().date()


@pytest.fixture
def registry(clock: FakeClock) -> TimerRegistry:
    return TimerRegistry(clock=clock, watchlist={"a.com", "b.com"})


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def db():
    connection = SharedConnection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def watchlist_store(db: SharedConnection) -> WatchlistStore:
    return WatchlistStore(db)
