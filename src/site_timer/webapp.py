"""FastAPI application that receives browser signals and serves tracked totals."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .db import SharedConnection
from .engine import SiteTimeTracker
from .errors import MalformedHostnameError, PersistenceError
from .hostnames import normalize_hostname
from .ledger import SqliteLedgerStore
from .paths import get_db_path
from .reporting import PERIOD_DAYS, format_duration, summarize_period
from .session import Clock, local_now
from .watchlist import WatchlistStore

logger = logging.getLogger(__name__)

SignalName = Literal[
    "navigated",
    "foregrounded",
    "backgrounded",
    "visible",
    "hidden",
    "window_focused",
    "window_blurred",
    "destroyed",
    "process_suspending",
]

_CONTEXT_SIGNALS = {"navigated", "foregrounded", "backgrounded", "visible", "hidden", "destroyed"}


class SignalPayload(BaseModel):
    signal: SignalName
    context: Optional[Union[int, str]] = None
    url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class WatchlistPayload(BaseModel):
    hostnames: list[str]

    model_config = ConfigDict(extra="forbid")


class TogglePayload(BaseModel):
    hostname: str

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path | str] = None,
    settings: Optional[TrackerSettings] = None,
    clock: Optional[Clock] = None,
    periodic_sync: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = db_path or get_db_path()
    resolved_settings = settings or TrackerSettings()
    db = SharedConnection(resolved_db_path)
    tracker = SiteTimeTracker(
        ledger=SqliteLedgerStore(db),
        watchlist=WatchlistStore(db),
        settings=resolved_settings,
        clock=clock or local_now,
    )

    app = FastAPI(title="Site Timer", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.tracker = tracker

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        await tracker.start(periodic=periodic_sync)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        try:
            await tracker.close()
        finally:
            db.close()

    @app.get("/api/status")
    async def status(request: Request) -> Dict[str, Any]:
        return {
            "tracking": tracker.active,
            "database_path": str(request.app.state.db_path),
            "sync_seconds": resolved_settings.sync_interval.total_seconds(),
            "open_timers": len(tracker.registry),
            "accruing": [str(context) for context in tracker.registry.accruing_contexts()],
        }

    @app.post("/api/signals")
    async def receive_signal(payload: SignalPayload) -> Dict[str, Any]:
        context = str(payload.context) if payload.context is not None else None
        if payload.signal in _CONTEXT_SIGNALS and context is None:
            raise HTTPException(status_code=400, detail=f"{payload.signal} requires a context")

        if payload.signal == "navigated":
            if not payload.url:
                raise HTTPException(status_code=400, detail="navigated requires a url")
            tracker.on_context_navigated(context, payload.url)
        elif payload.signal == "foregrounded":
            tracker.on_context_foregrounded(context)
        elif payload.signal == "backgrounded":
            tracker.on_context_backgrounded(context)
        elif payload.signal == "visible":
            tracker.on_context_visible(context)
        elif payload.signal == "hidden":
            tracker.on_context_hidden(context)
        elif payload.signal == "window_focused":
            tracker.on_window_focused()
        elif payload.signal == "window_blurred":
            tracker.on_window_blurred()
        elif payload.signal == "destroyed":
            tracker.on_context_destroyed(context)
        else:
            await tracker.on_process_suspending()

        return {
            "status": "ok",
            "tracking": tracker.active,
            "accruing": [str(item) for item in tracker.registry.accruing_contexts()],
        }

    @app.get("/api/contexts/{context}/elapsed")
    async def context_elapsed(context: str) -> Dict[str, Any]:
        snapshot = tracker.registry.active_timer_for(context)
        return {
            "context": context,
            "hostname": snapshot.hostname if snapshot else None,
            "accruing": snapshot.is_accruing if snapshot else False,
            "elapsed_seconds": tracker.query_session_elapsed(context),
        }

    @app.get("/api/totals/{hostname}")
    async def daily_total(
        hostname: str,
        date_value: Optional[str] = Query(
            default=None,
            alias="date",
            description="Target date in YYYY-MM-DD format. Defaults to today.",
        ),
    ) -> Dict[str, Any]:
        name = _parse_hostname(hostname)
        day = _parse_date(date_value) if date_value else _today()
        try:
            await tracker.request_immediate_sync()
            seconds = await tracker.query_daily_total(name, day)
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {
            "hostname": name,
            "date": day.isoformat(),
            "seconds": seconds,
            "display": format_duration(seconds),
        }

    @app.post("/api/sync")
    async def sync_now() -> Dict[str, Any]:
        await tracker.request_immediate_sync()
        return {"status": "synced", "tracking": tracker.active}

    @app.get("/api/watchlist")
    async def get_watchlist() -> Dict[str, Any]:
        hostnames = await _read_watchlist()
        return {"hostnames": sorted(hostnames)}

    @app.put("/api/watchlist")
    async def put_watchlist(payload: WatchlistPayload) -> Dict[str, Any]:
        try:
            updated = await tracker.watchlist.set(payload.hostnames)
        except MalformedHostnameError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"hostnames": sorted(updated)}

    @app.post("/api/watchlist/toggle")
    async def toggle_watchlist(payload: TogglePayload) -> Dict[str, Any]:
        name = _parse_hostname(payload.hostname)
        try:
            watched = await tracker.watchlist.toggle(name)
            hostnames = await tracker.watchlist.get()
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {
            "status": "updated",
            "hostname": name,
            "is_watched": watched,
            "hostnames": sorted(hostnames),
        }

    @app.get("/api/summary")
    async def summary(
        period: str = Query(
            default="today",
            description="One of: today, week, month.",
        ),
    ) -> Dict[str, Any]:
        if period not in PERIOD_DAYS:
            raise HTTPException(status_code=400, detail="period must be today, week or month")
        await tracker.request_immediate_sync()
        hostnames = await _read_watchlist()
        try:
            result = await summarize_period(tracker.ledger, hostnames, period, _today())
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {
            "period": result.period,
            "start": result.start.isoformat(),
            "end": result.end.isoformat(),
            "sites": [
                {
                    "hostname": site.hostname,
                    "seconds": site.seconds,
                    "display": format_duration(site.seconds),
                }
                for site in result.sites
            ],
            "total_seconds": result.total_seconds,
            "total_display": format_duration(result.total_seconds),
        }

    def _today() -> date:
        return (clock or local_now)().date()

    async def _read_watchlist() -> frozenset[str]:
        try:
            return await tracker.watchlist.get()
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    return app


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _parse_hostname(value: str) -> str:
    try:
        return normalize_hostname(value)
    except MalformedHostnameError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
