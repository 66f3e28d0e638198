from __future__ import annotations

import copy
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional

from sqlalchemy import JSON, Column, Float
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, delete

from .config import settings

logger = logging.getLogger(__name__)


class MemoryStore:
    """Process-local key/value store with per-entry expiry.

    Safe to share between the worker threads that run sync dependencies.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if expires_at <= self._clock():
                self._entries.pop(key, None)
                return default
            return copy.deepcopy(value)

    def put(self, key: str, value: Any, ttl: int) -> None:
        if ttl <= 0:
            self.forget(key)
            return
        with self._lock:
            self._entries[key] = (copy.deepcopy(value), self._clock() + ttl)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def forget(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
            return entry is not None and entry[1] > self._clock()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, (_, expires_at) in self._entries.items()
                if expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("purged %d expired cache entries", len(expired))
        return len(expired)

    def snapshot(self) -> dict[str, Any]:
        """Return every unexpired entry keyed by cache key."""
        with self._lock:
            now = self._clock()
            return {
                key: copy.deepcopy(value)
                for key, (value, expires_at) in self._entries.items()
                if expires_at > now
            }


class CacheEntry(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    expires_at: float = Field(sa_column=Column(Float, nullable=False, index=True))


class SQLStore:
    """SQLite-backed store so limiter state survives restarts and is shared
    between worker processes on one host."""

    def __init__(self, path: str, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self._clock = clock
        self._engine: Engine | None = None

    def _get_engine(self) -> Engine:
        if self._engine is None:
            db_path = Path(self.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(f"sqlite:///{db_path}", echo=False)
            SQLModel.metadata.create_all(self._engine)
        return self._engine

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def get(self, key: str, default: Any = None) -> Any:
        with Session(self._get_engine()) as session:
            row = session.get(CacheEntry, key)
            if row is None:
                return default
            if row.expires_at <= self._clock():
                session.delete(row)
                session.commit()
                return default
            return row.value["value"]

    def put(self, key: str, value: Any, ttl: int) -> None:
        if ttl <= 0:
            self.forget(key)
            return
        with Session(self._get_engine()) as session:
            session.merge(
                CacheEntry(
                    key=key,
                    value={"value": value},
                    expires_at=self._clock() + ttl,
                )
            )
            session.commit()

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def forget(self, key: str) -> bool:
        with Session(self._get_engine()) as session:
            row = session.get(CacheEntry, key)
            if row is None:
                return False
            live = row.expires_at > self._clock()
            session.delete(row)
            session.commit()
            return live

    def purge_expired(self) -> int:
        with Session(self._get_engine()) as session:
            statement = delete(CacheEntry).where(
                CacheEntry.expires_at <= self._clock()
            )
            result = session.exec(statement)
            session.commit()
            purged = result.rowcount or 0
        if purged:
            logger.info("purged %d expired cache entries", purged)
        return purged


_store: Optional[MemoryStore | SQLStore] = None


def get_store() -> MemoryStore | SQLStore:
    """Return the process-wide store selected by ``CACHE_BACKEND``."""
    global _store
    backend = settings.CACHE_BACKEND
    if isinstance(_store, SQLStore):
        if backend == "sql" and _store.path == settings.CACHE_DB_PATH:
            return _store
    elif isinstance(_store, MemoryStore) and backend == "memory":
        return _store
    reset_store()
    _store = SQLStore(settings.CACHE_DB_PATH) if backend == "sql" else MemoryStore()
    return _store


def reset_store() -> None:
    global _store
    if isinstance(_store, SQLStore):
        _store.dispose()
    _store = None
