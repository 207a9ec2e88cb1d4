"""Period summaries over the daily ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from .ledger import LedgerStore

PERIOD_DAYS: dict[str, int] = {
    "today": 1,
    "week": 7,
    "month": 30,
}


@dataclass(frozen=True, slots=True)
class SiteTotal:
    hostname: str
    seconds: float


@dataclass(frozen=True, slots=True)
class PeriodSummary:
    period: str
    start: date
    end: date
    sites: list[SiteTotal]

    @property
    def total_seconds(self) -> float:
        return sum(site.seconds for site in self.sites)


def period_bounds(period: str, today: date) -> tuple[date, date]:
    """Return the inclusive ``(start, end)`` days covered by ``period``."""
    try:
        days = PERIOD_DAYS[period]
    except KeyError as exc:
        raise ValueError(f"Unknown period {period!r}; expected one of {sorted(PERIOD_DAYS)}") from exc
    return today - timedelta(days=days - 1), today


async def summarize_period(
    ledger: LedgerStore, watchlist: Iterable[str], period: str, today: date
) -> PeriodSummary:
    """Total each watched hostname over ``period``, listing untracked sites as zero."""
    start, end = period_bounds(period, today)
    totals = await ledger.totals_between(start, end)
    sites = [
        SiteTotal(hostname=hostname, seconds=totals.get(hostname, 0.0))
        for hostname in sorted(watchlist)
    ]
    return PeriodSummary(period=period, start=start, end=end, sites=sites)


def format_duration(seconds: float) -> str:
    total_seconds = int(seconds)
    if total_seconds < 60:
        return f"{total_seconds}s"
    minutes, secs = divmod(total_seconds, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def print_summary(summary: PeriodSummary) -> None:
    if not summary.sites:
        print("No sites in watchlist")
        return

    print(f"Summary for {summary.period} ({summary.start.isoformat()} to {summary.end.isoformat()})")
    print("-" * 40)
    for site in summary.sites:
        print(f"  {site.hostname[:28]:<28} {format_duration(site.seconds):>10}")
    print("-" * 40)
    print(f"  {'Total':<28} {format_duration(summary.total_seconds):>10}")
