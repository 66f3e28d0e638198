"""Leaky bucket rate limiter backed by a key/value store."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Optional

from .contracts import Bucket, Store

logger = logging.getLogger(__name__)


class Limiter:
    """Rate limiter over a leaf bucket and, for compound keys, its parent.

    A key such as ``"user:route"`` is split on the first colon: the limiter
    then also tracks a parent bucket under ``"user"`` which every limiter with
    the same prefix shares, so a saturated parent throttles all of its
    children. Only the leaf bucket is reported through :meth:`limit`,
    :meth:`hits` and :meth:`remaining`.

    Bucket snapshots are written to the store after every hit with a TTL equal
    to the bucket's drain time, and the timeout lives under
    ``"<key>:timeout"`` as a UNIX timestamp.
    """

    def __init__(
        self,
        store: Store,
        bucket: Bucket,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self._clock = clock
        self.parent: Optional[Bucket] = None

        key = bucket.key
        defaults = bucket.to_dict()
        if ":" in key:
            prefix = key.split(":", 1)[0]
            parent = bucket.clone(prefix, bucket.max, bucket.rate)
            parent.configure(self.store.get(prefix, defaults))
            self.parent = parent

        bucket.configure(self.store.get(key, defaults))
        self.bucket: Bucket = bucket

    @property
    def buckets(self) -> tuple[Bucket, ...]:
        if self.parent is None:
            return (self.bucket,)
        return (self.parent, self.bucket)

    def configure(self, key: str, max: int, rate: float) -> "Limiter":
        """Point the leaf bucket at ``key`` with a new capacity and rate.

        Moving to a different key drops the old leaf's stored snapshot; the
        parent bucket and its snapshot are left alone.
        """
        current = self.bucket
        if current.key != key:
            self.store.forget(current.key)
            current.reset()

        settings: dict[str, Any] = {"drips": current.drips(), "timer": current.timer}
        existing = self.store.get(key)
        if existing:
            settings.update(existing)
        settings.update(max=max, rate=rate)

        self.bucket = current.clone(key, max, rate).configure(settings)
        return self

    def exceeded(self) -> bool:
        if self.has_timeout():
            return True

        exceeded = False
        for bucket in self.buckets:
            bucket.leak()
            exceeded = bucket.is_full() or exceeded
        return exceeded

    def has_timeout(self) -> bool:
        return any(
            self.store.has(self._timeout_key(bucket.key)) for bucket in self.buckets
        )

    def timeout(self, duration: int = 60) -> None:
        """Reject hits for ``duration`` seconds; later calls keep the first."""
        if self.has_timeout():
            return

        expires_at = math.floor(self.bucket.timer) + duration
        self.store.put(self._timeout_key(), expires_at, duration)
        logger.info("timeout %s for %ds until %d", self.bucket.key, duration, expires_at)

    def hit(self) -> int:
        for bucket in self.buckets:
            bucket.fill()
            ttl = max(1, math.ceil(bucket.duration()))
            self.store.put(bucket.key, bucket.to_dict(), ttl)
            logger.debug("hit %s drips=%d ttl=%ds", bucket.key, bucket.drips(), ttl)
        return self.bucket.drips()

    def limit(self) -> int:
        return self.bucket.max

    def hits(self) -> int:
        return self.bucket.drips()

    def remaining(self) -> int:
        return self.bucket.remaining()

    def reset(self) -> bool:
        """Empty the leaf bucket; the parent and any timeout remain."""
        self.bucket.reset()
        return self.store.forget(self.bucket.key)

    def clear(self) -> "Limiter":
        self.reset()
        self.store.forget(self._timeout_key())
        return self

    def backoff(self) -> int:
        """Seconds until the timeout expires, 0 when there is none."""
        expires_at = self.store.get(self._timeout_key())
        if expires_at is None:
            return 0
        return max(0, int(expires_at) - int(self._clock()))

    def _timeout_key(self, key: Optional[str] = None) -> str:
        return f"{key or self.bucket.key}:timeout"
