"""SQLite database layer for the ledger and the watchlist."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, TypeVar

from .errors import HostInvalidatedError, PersistenceError

logger = logging.getLogger(__name__)

DATE_FMT = "%Y-%m-%d"

T = TypeVar("T")


class SharedConnection:
    """One SQLite connection used from the event loop through worker threads."""

    def __init__(self, path: Path | str) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = open_database(path, check_same_thread=False)
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._conn is None

    async def run(self, func: Callable[..., T], *args: Any) -> T:
        """Run ``func(conn, *args)`` in a worker thread, one call at a time."""
        return await asyncio.to_thread(self.run_blocking, func, *args)

    def run_blocking(self, func: Callable[..., T], *args: Any) -> T:
        with self._lock:
            conn = self._conn
            if conn is None:
                raise HostInvalidatedError(f"Database {self.path} is closed")
            try:
                return func(conn, *args)
            except sqlite3.ProgrammingError as exc:
                raise HostInvalidatedError(str(exc)) from exc
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Closed database %s", self.path)


def open_database(path: Path | str, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path | str, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS ledger (
            hostname TEXT NOT NULL,
            day TEXT NOT NULL,
            seconds REAL NOT NULL DEFAULT 0,
            PRIMARY KEY (hostname, day)
        );

        CREATE INDEX IF NOT EXISTS idx_ledger_day
            ON ledger(day);

        CREATE TABLE IF NOT EXISTS watchlist (
            hostname TEXT PRIMARY KEY
        );
        """
    )


def format_day(day: date) -> str:
    return day.strftime(DATE_FMT)


def increment_ledger(
    conn: sqlite3.Connection, hostname: str, day: date, seconds: float
) -> None:
    """Add ``seconds`` to one ledger entry in a single statement."""
    conn.execute(
        """
        INSERT INTO ledger (hostname, day, seconds)
        VALUES (?, ?, ?)
        ON CONFLICT(hostname, day)
            DO UPDATE SET seconds = seconds + excluded.seconds
        """,
        (hostname, format_day(day), float(seconds)),
    )


def fetch_ledger_for_host(conn: sqlite3.Connection, hostname: str) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT day, seconds
            FROM ledger
            WHERE hostname = ?
            ORDER BY day;
            """,
            (hostname,),
        )
    )


def fetch_totals_between(
    conn: sqlite3.Connection, start: date, end: date
) -> list[sqlite3.Row]:
    """Return total seconds per hostname for ``start <= day <= end``."""
    return list(
        conn.execute(
            """
            SELECT hostname, SUM(seconds) AS seconds
            FROM ledger
            WHERE day >= ? AND day <= ?
            GROUP BY hostname
            ORDER BY hostname;
            """,
            (format_day(start), format_day(end)),
        )
    )


def fetch_watchlist(conn: sqlite3.Connection) -> list[str]:
    return [row["hostname"] for row in conn.execute("SELECT hostname FROM watchlist ORDER BY hostname")]


def replace_watchlist(conn: sqlite3.Connection, hostnames: Iterable[str]) -> None:
    rows = [(hostname,) for hostname in sorted(set(hostnames))]
    conn.execute("BEGIN")
    try:
        conn.execute("DELETE FROM watchlist")
        conn.executemany("INSERT INTO watchlist (hostname) VALUES (?)", rows)
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
