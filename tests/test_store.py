import threading
from pathlib import Path

import pytest

from bucketgate.store import MemoryStore, SQLStore, get_store


def test_memory_store_expires_entries(store, clock):
    store.put("foo", {"drips": 1}, 5)
    assert store.get("foo") == {"drips": 1}
    assert store.has("foo") is True

    clock.advance(5)
    assert store.get("foo") is None
    assert store.get("foo", "fallback") == "fallback"
    assert store.has("foo") is False


def test_memory_store_copies_values(store):
    value = {"drips": 1}
    store.put("foo", value, 5)
    value["drips"] = 2
    store.get("foo")["drips"] = 3
    assert store.get("foo") == {"drips": 1}


def test_memory_store_forget_reports_presence(store):
    store.put("foo", 1, 5)
    assert store.forget("foo") is True
    assert store.forget("foo") is False


def test_forget_ignores_expired_entries(store, clock):
    store.put("foo", 1, 5)
    clock.advance(5)
    assert store.forget("foo") is False
    assert store.snapshot() == {}


def test_expired_read_tolerates_concurrent_forget(clock):
    class RacingClock:
        def __call__(self):
            backend.forget("foo")
            return clock() + 10

    backend = MemoryStore(clock)
    backend.put("foo", 1, 5)
    backend._clock = RacingClock()

    assert backend.get("foo", "gone") == "gone"


def test_concurrent_puts_and_reads(clock):
    backend = MemoryStore(clock)

    def worker(n):
        for i in range(200):
            key = f"k{i % 10}"
            backend.put(key, {"n": n}, 0 if i % 3 == 0 else 5)
            backend.get(key)
            backend.forget(key)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert backend.purge_expired() == 0


def test_memory_store_purges_expired_entries(store, clock):
    for i in range(1000):
        store.put(f"guest-{i}", i, 1)
    clock.advance(10_000)
    store.put("fresh", 1, 5)

    assert store.purge_expired() == 1000
    assert store.snapshot() == {"fresh": 1}
    assert len(store._entries) == 1
    assert store.purge_expired() == 0


def test_non_positive_ttl_removes_entry(store):
    store.put("foo", 1, 5)
    store.put("foo", 2, 0)
    assert store.has("foo") is False


def test_snapshot_skips_expired_entries(store, clock):
    store.put("short", 1, 1)
    store.put("long", 2, 10)
    clock.advance(1)
    assert store.snapshot() == {"long": 2}
    store.clear()
    assert store.snapshot() == {}


@pytest.fixture
def sql_store(tmp_path: Path, clock):
    backend = SQLStore(str(tmp_path / "cache" / "limits.db"), clock)
    yield backend
    backend.dispose()


def test_sql_store_round_trip(sql_store, clock):
    snapshot = {"key": "foo", "timer": clock(), "max": 60, "rate": 1.0, "drips": 3}
    sql_store.put("foo", snapshot, 10)
    sql_store.put("foo:timeout", 1_700_000_060, 10)

    assert sql_store.get("foo") == snapshot
    assert sql_store.get("foo:timeout") == 1_700_000_060
    assert sql_store.has("foo") is True
    assert sql_store.get("missing", "fallback") == "fallback"


def test_sql_store_put_overwrites(sql_store):
    sql_store.put("foo", {"drips": 1}, 10)
    sql_store.put("foo", {"drips": 2}, 10)
    assert sql_store.get("foo") == {"drips": 2}


def test_sql_store_expiry_and_forget(sql_store, clock):
    sql_store.put("foo", 1, 5)
    sql_store.put("bar", 2, 5)
    assert sql_store.forget("bar") is True
    assert sql_store.forget("bar") is False
    sql_store.put("baz", 3, 1)

    clock.advance(5)
    assert sql_store.get("foo") is None
    assert sql_store.forget("baz") is False
    assert sql_store.has("foo") is False


def test_sql_store_purge_expired(sql_store, clock):
    sql_store.put("short", 1, 1)
    sql_store.put("long", 2, 60)
    clock.advance(2)

    assert sql_store.purge_expired() == 1
    assert sql_store.purge_expired() == 0
    assert sql_store.get("long") == 2


def test_sql_store_survives_new_instance(tmp_path: Path, clock):
    path = str(tmp_path / "shared.db")
    first = SQLStore(path, clock)
    first.put("foo", {"drips": 4}, 30)
    first.dispose()

    second = SQLStore(path, clock)
    try:
        assert second.get("foo") == {"drips": 4}
    finally:
        second.dispose()


def test_get_store_follows_settings(restore_settings, tmp_path: Path):
    restore_settings.CACHE_BACKEND = "memory"
    memory = get_store()
    assert isinstance(memory, MemoryStore)
    assert get_store() is memory

    restore_settings.CACHE_BACKEND = "sql"
    restore_settings.CACHE_DB_PATH = str(tmp_path / "a.db")
    sql = get_store()
    assert isinstance(sql, SQLStore)
    assert get_store() is sql

    restore_settings.CACHE_DB_PATH = str(tmp_path / "b.db")
    moved = get_store()
    assert moved is not sql
    assert moved.path == str(tmp_path / "b.db")
