"""Command-line interface for the site timer."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .config import MAX_SYNC_SECONDS, MIN_SYNC_SECONDS, TrackerSettings
from .db import SharedConnection
from .errors import MalformedHostnameError, PersistenceError
from .ledger import SqliteLedgerStore
from .paths import get_db_path
from .reporting import PERIOD_DAYS, print_summary, summarize_period
from .watchlist import WatchlistStore

app = typer.Typer(help="Per-site browsing time tracker.")
watch_app = typer.Typer(help="Manage the watchlist of tracked hostnames.")
app.add_typer(watch_app, name="watch")

logger = logging.getLogger(__name__)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the service."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the service."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the site time SQLite database."
    ),
    sync_seconds: float = typer.Option(
        1.0,
        "--sync-interval",
        min=MIN_SYNC_SECONDS,
        max=MAX_SYNC_SECONDS,
        help="Seconds between ledger syncs.",
    ),
    max_write_failures: int = typer.Option(
        3,
        "--max-write-failures",
        min=1,
        help="Consecutive failed ledger writes before accrued time is dropped.",
    ),
) -> None:
    """Run the tracking service until interrupted."""
    from .server_runner import run_server

    settings = TrackerSettings.from_intervals(
        sync_seconds=sync_seconds, max_write_failures=max_write_failures
    )
    run_server(host=host, port=port, db_path=db_path or get_db_path(), settings=settings)


@app.command()
def summary(
    period: str = typer.Option(
        "today",
        "--period",
        help="One of: today, week, month.",
    ),
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Last day (YYYY-MM-DD) of the period. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the site time SQLite database.",
    ),
) -> None:
    """Print tracked time per watched site for a period."""
    if period not in PERIOD_DAYS:
        raise typer.BadParameter("period must be today, week or month", param_hint="--period")
    target = datetime.strptime(date, "%Y-%m-%d").date() if date else datetime.now().date()

    async def _summarize() -> None:
        db = SharedConnection(db_path or get_db_path())
        try:
            hostnames = await WatchlistStore(db).get()
            result = await summarize_period(SqliteLedgerStore(db), hostnames, period, target)
        finally:
            db.close()
        print_summary(result)

    _run(_summarize())


@watch_app.command("add")
def watch_add(
    hostname: str = typer.Argument(..., help="Hostname or URL to start tracking."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Add a hostname to the watchlist."""
    hostnames = _run(_edit_watchlist(db_path, "add", hostname))
    typer.echo(f"Watching {len(hostnames)} site(s).")


@watch_app.command("remove")
def watch_remove(
    hostname: str = typer.Argument(..., help="Hostname or URL to stop tracking."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Remove a hostname from the watchlist."""
    hostnames = _run(_edit_watchlist(db_path, "remove", hostname))
    typer.echo(f"Watching {len(hostnames)} site(s).")


@watch_app.command("list")
def watch_list(
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """List watched hostnames."""
    hostnames = _run(_edit_watchlist(db_path, "get", None))
    if not hostnames:
        typer.echo("No sites in watchlist")
        return
    for hostname in sorted(hostnames):
        typer.echo(hostname)


async def _edit_watchlist(
    db_path: Optional[Path], action: str, hostname: Optional[str]
) -> frozenset[str]:
    db = SharedConnection(db_path or get_db_path())
    try:
        store = WatchlistStore(db)
        if action == "add":
            return await store.add(hostname)
        if action == "remove":
            return await store.remove(hostname)
        return await store.get()
    finally:
        db.close()


def _run(coro):
    try:
        return asyncio.run(coro)
    except MalformedHostnameError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except PersistenceError as exc:
        logger.error("Database error: %s", exc)
        raise typer.Exit(code=1) from exc
