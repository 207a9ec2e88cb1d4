"""Persistent per-hostname, per-day ledger of accrued seconds."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from .db import (
    SharedConnection,
    fetch_ledger_for_host,
    fetch_totals_between,
    increment_ledger,
)


class LedgerStore(Protocol):
    async def get(self, hostname: str) -> dict[str, float]:
        """Return ``{ISO date: seconds}`` for one hostname."""

    async def increment(self, hostname: str, day: date, seconds: float) -> None:
        """Atomically add ``seconds`` to the ``(hostname, day)`` entry."""

    async def totals_between(self, start: date, end: date) -> dict[str, float]:
        """Return per-hostname totals for an inclusive date range."""


class SqliteLedgerStore:
    """Ledger backed by the ``ledger`` table."""

    def __init__(self, db: SharedConnection) -> None:
        self._db = db

    async def get(self, hostname: str) -> dict[str, float]:
        rows = await self._db.run(fetch_ledger_for_host, hostname)
        return {row["day"]: float(row["seconds"]) for row in rows}

    async def increment(self, hostname: str, day: date, seconds: float) -> None:
        if seconds <= 0:
            return
        await self._db.run(increment_ledger, hostname, day, seconds)

    async def totals_between(self, start: date, end: date) -> dict[str, float]:
        rows = await self._db.run(fetch_totals_between, start, end)
        return {row["hostname"]: float(row["seconds"] or 0.0) for row in rows}
