"""Domain models for tracked browsing time."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Hashable, Optional


Context = Hashable


class TimerState(str, enum.Enum):
    NOT_TRACKING = "not_tracking"
    ACCRUING = "accruing"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class LedgerDelta:
    """Seconds to add to a single ``(hostname, day)`` ledger entry."""

    hostname: str
    day: date
    seconds: float

    @property
    def key(self) -> tuple[str, date]:
        return (self.hostname, self.day)


@dataclass(frozen=True, slots=True)
class TimerSnapshot:
    """Read-only view of a timer, as shown to display consumers."""

    context: Context
    hostname: str
    state: TimerState
    elapsed_seconds: float
    unflushed_seconds: float
    accrual_start: Optional[datetime] = None

    @property
    def is_accruing(self) -> bool:
        return self.state is TimerState.ACCRUING
