import asyncio
from datetime import date

import pytest

from site_timer.db import SharedConnection, database_connection, fetch_watchlist
from site_timer.errors import HostInvalidatedError, MalformedHostnameError
from site_timer.ledger import SqliteLedgerStore
from site_timer.watchlist import WatchlistStore


def test_ledger_increment_accumulates(db):
    ledger = SqliteLedgerStore(db)

    async def scenario():
        await ledger.increment("a.com", date(2025, 3, 14), 1.25)
        await ledger.increment("a.com", date(2025, 3, 14), 2.5)
        await ledger.increment("a.com", date(2025, 3, 15), 4.0)
        await ledger.increment("a.com", date(2025, 3, 15), 0.0)
        return await ledger.get("a.com"), await ledger.get("b.com")

    entries, missing = asyncio.run(scenario())
    assert entries == {"2025-03-14": 3.75, "2025-03-15": 4.0}
    assert missing == {}


def test_concurrent_increments_are_not_lost(db):
    ledger = SqliteLedgerStore(db)

    async def scenario():
        await asyncio.gather(
            *(ledger.increment("a.com", date(2025, 3, 14), 0.5) for _ in range(40))
        )
        return await ledger.get("a.com")

    assert asyncio.run(scenario()) == {"2025-03-14": 20.0}


def test_ledger_totals_between(db):
    ledger = SqliteLedgerStore(db)

    async def scenario():
        await ledger.increment("a.com", date(2025, 3, 1), 10.0)
        await ledger.increment("a.com", date(2025, 3, 10), 5.0)
        await ledger.increment("b.com", date(2025, 3, 12), 7.0)
        await ledger.increment("b.com", date(2025, 2, 1), 100.0)
        return await ledger.totals_between(date(2025, 3, 1), date(2025, 3, 12))

    assert asyncio.run(scenario()) == {"a.com": 15.0, "b.com": 7.0}


def test_closed_connection_raises_host_invalidated():
    db = SharedConnection(":memory:")
    ledger = SqliteLedgerStore(db)
    db.close()

    with pytest.raises(HostInvalidatedError):
        asyncio.run(ledger.get("a.com"))
    assert db.closed


def test_watchlist_set_normalizes_and_notifies(watchlist_store):
    seen = []
    unsubscribe = watchlist_store.subscribe(seen.append)

    async def scenario():
        await watchlist_store.set(["Example.COM", "https://news.site.org/path"])
        unsubscribe()
        await watchlist_store.set([])
        return await watchlist_store.get()

    assert asyncio.run(scenario()) == frozenset()
    assert seen == [frozenset({"example.com", "news.site.org"})]


def test_watchlist_toggle_add_remove(watchlist_store):
    async def scenario():
        added = await watchlist_store.toggle("a.com")
        after_add = await watchlist_store.get()
        removed = await watchlist_store.toggle("a.com")
        await watchlist_store.add("b.com")
        await watchlist_store.add("b.com")
        await watchlist_store.remove("missing.com")
        return added, after_add, removed, await watchlist_store.get()

    added, after_add, removed, final = asyncio.run(scenario())
    assert added is True
    assert after_add == frozenset({"a.com"})
    assert removed is False
    assert final == frozenset({"b.com"})


def test_watchlist_rejects_malformed_hostname(watchlist_store):
    with pytest.raises(MalformedHostnameError):
        asyncio.run(watchlist_store.set(["not a host"]))


def test_failing_listener_does_not_break_write(watchlist_store):
    def broken(_hostnames):
        raise RuntimeError("listener bug")

    watchlist_store.subscribe(broken)
    assert asyncio.run(watchlist_store.add("a.com")) == frozenset({"a.com"})


def test_watchlist_persists_to_file(tmp_path):
    path = tmp_path / "site_time.sqlite3"
    db = SharedConnection(path)
    asyncio.run(WatchlistStore(db).set({"a.com", "b.com"}))
    db.close()

    with database_connection(path) as conn:
        assert fetch_watchlist(conn) == ["a.com", "b.com"]
