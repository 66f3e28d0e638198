"""Leaky bucket decorator emitting notifications around fill and leak."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .bucket import LeakyBucket
from .contracts import Dispatcher
from .events import Filled, Filling, Leaked, Leaking


class EventedBucket:
    """Wraps a :class:`LeakyBucket`, leaving its math untouched.

    ``Filling`` and ``Leaking`` are sent through ``Dispatcher.until`` before
    the mutation; a non-None listener response skips the mutation and is
    returned to the caller instead of the bucket. ``Filled`` and ``Leaked``
    are dispatched afterwards.
    """

    def __init__(self, events: Dispatcher, bucket: LeakyBucket) -> None:
        self._events = events
        self._bucket = bucket

    def __repr__(self) -> str:
        return f"EventedBucket({self._bucket!r})"

    @property
    def events(self) -> Dispatcher:
        return self._events

    @property
    def bucket(self) -> LeakyBucket:
        return self._bucket

    @property
    def key(self) -> str:
        return self._bucket.key

    @property
    def max(self) -> int:
        return self._bucket.max

    @max.setter
    def max(self, value: int) -> None:
        self._bucket.max = value

    @property
    def rate(self) -> float:
        return self._bucket.rate

    @rate.setter
    def rate(self, value: float) -> None:
        self._bucket.rate = value

    @property
    def timer(self) -> float:
        return self._bucket.timer

    @timer.setter
    def timer(self, value: float) -> None:
        self._bucket.timer = value

    def drips(self) -> int:
        return self._bucket.drips()

    def remaining(self) -> int:
        return self._bucket.remaining()

    def duration(self) -> float:
        return self._bucket.duration()

    def is_full(self) -> bool:
        return self._bucket.is_full()

    def is_empty(self) -> bool:
        return self._bucket.is_empty()

    def leak(self, rate: Optional[float] = None) -> Any:
        rate = self.rate if rate is None else float(rate)
        vetoed = self._events.until(Leaking(key=self.key, rate=rate))
        if vetoed is not None:
            return vetoed
        before = self.drips()
        self._bucket.leak(rate)
        self._events.dispatch(
            Leaked(key=self.key, drips=before - self.drips(), remaining=self.remaining())
        )
        return self

    def fill(self, drips: int = 1) -> Any:
        vetoed = self._events.until(Filling(key=self.key, drips=drips))
        if vetoed is not None:
            return vetoed
        self._bucket.fill(drips)
        self._events.dispatch(
            Filled(key=self.key, drips=self.drips(), remaining=self.remaining())
        )
        return self

    def reset(self) -> "EventedBucket":
        self._bucket.reset()
        return self

    def configure(self, settings: Mapping[str, Any]) -> "EventedBucket":
        self._bucket.configure({k: v for k, v in settings.items() if k != "drips"})
        if settings.get("drips") is not None:
            self._bucket.configure({"drips": 0})
            self.fill(settings["drips"])
        return self

    def clone(self, key: str, max: int, rate: float) -> "EventedBucket":
        return type(self)(self._events, self._bucket.clone(key, max, rate))

    def to_dict(self) -> dict[str, Any]:
        return self._bucket.to_dict()

    def to_json(self) -> str:
        return self._bucket.to_json()
