"""Background eviction of expired limiter state."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Optional, Protocol

import anyio.to_thread

from .metrics import PURGED

logger = logging.getLogger(__name__)


class Purgeable(Protocol):
    def purge_expired(self) -> int: ...


class PurgeState:
    def __init__(self) -> None:
        self.last_finished: Optional[float] = None
        self.last_error: Optional[str] = None
        self.total_runs = 0
        self.total_errors = 0
        self.total_purged = 0


state = PurgeState()


async def purge_once(store: Purgeable) -> int:
    purged = await anyio.to_thread.run_sync(store.purge_expired)
    state.total_runs += 1
    state.total_purged += purged
    PURGED.inc(purged)
    return purged


async def run_purge(
    store: Purgeable,
    interval: int,
    jitter: int = 0,
    backoff_max: int = 600,
) -> None:
    """Evict expired entries from ``store`` every ``interval`` seconds.

    A failing purge is logged and retried after an exponential backoff
    capped at ``backoff_max``; the loop only stops when cancelled.
    """
    backoff = 1
    while True:
        await asyncio.sleep(interval + random.randint(0, max(0, jitter)))
        try:
            await purge_once(store)
            state.last_error = None
            backoff = 1
        except Exception as exc:  # noqa: BLE001
            logger.warning("purge of %s failed: %s", type(store).__name__, exc)
            state.last_error = str(exc)
            state.total_errors += 1
            await asyncio.sleep(min(backoff, backoff_max))
            backoff = min(backoff * 2, backoff_max)
        finally:
            state.last_finished = time.time()
