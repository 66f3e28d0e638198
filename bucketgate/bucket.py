"""Leaky bucket: capacity bookkeeping for a single key, no I/O."""

from __future__ import annotations

import json
import math
import time
from typing import Any, Callable, Mapping, Optional

from .exceptions import ConfigurationError

Clock = Callable[[], float]


class LeakyBucket:
    """Bucket of ``max`` drips leaking ``rate`` drips per second.

    ``LeakyBucket("foo")`` holds 60 drips and leaks 1 per second,
    ``LeakyBucket("foo", 100, 0.1)`` holds 100 and leaks 1 every 10 seconds.
    """

    __slots__ = ("_key", "_max", "_rate", "_drips", "_timer", "_clock")

    def __init__(
        self,
        key: str = "default",
        max: int = 60,
        rate: float = 1.0,
        clock: Clock = time.time,
    ) -> None:
        if not key:
            raise ConfigurationError("bucket key must not be empty")
        self._key = key
        self._clock = clock
        self._drips: float = 0
        self._timer: float = 0.0
        self.max = max
        self.rate = rate
        self.reset()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(key={self._key!r}, max={self._max}, "
            f"rate={self._rate}, drips={self.drips()})"
        )

    @property
    def key(self) -> str:
        return self._key

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def max(self) -> int:
        return self._max

    @max.setter
    def max(self, value: int) -> None:
        value = int(value)
        if value <= 0:
            raise ConfigurationError(f"bucket max must be positive, got {value}")
        self._max = value
        self._drips = self._bounded(self.drips())

    @property
    def rate(self) -> float:
        return self._rate

    @rate.setter
    def rate(self, value: float) -> None:
        value = float(value)
        if not math.isfinite(value) or value <= 0:
            raise ConfigurationError(f"bucket rate must be positive, got {value}")
        self._rate = value

    @property
    def timer(self) -> float:
        """UNIX seconds up to which decay has been applied."""
        return self._timer

    @timer.setter
    def timer(self, value: float) -> None:
        self._timer = float(value)

    def drips(self) -> int:
        return max(0, math.ceil(self._drips))

    def remaining(self) -> int:
        return max(0, self._max - self.drips())

    def duration(self) -> float:
        """Seconds from now until the bucket is fully drained."""
        return max(0.0, self._clock() + self.drips() / self._rate - self._timer)

    def is_full(self) -> bool:
        return self.drips() >= self._max

    def is_empty(self) -> bool:
        return self.drips() <= 0

    def leak(self, rate: Optional[float] = None) -> "LeakyBucket":
        """Drain the drips accumulated since the timer and restart the timer.

        ``rate`` overrides the configured rate for this call only.
        """
        rate = self._rate if rate is None else float(rate)
        if not math.isfinite(rate) or rate < 0:
            raise ConfigurationError(
                f"leak rate must be finite and non-negative, got {rate}"
            )
        now = self._clock()
        drops = math.floor((now - self._timer) * rate)
        self._drips = self._bounded(self.drips() - drops)
        self._timer = now
        return self

    def fill(self, drips: int = 1) -> "LeakyBucket":
        """Add drips; out-of-range amounts saturate instead of raising."""
        self._drips = self._bounded(self.drips() + self._bounded(int(drips)))
        return self

    def reset(self) -> "LeakyBucket":
        self._drips = 0
        self._timer = self._clock()
        return self

    def configure(self, settings: Mapping[str, Any]) -> "LeakyBucket":
        """Apply a subset of ``timer``, ``max``, ``rate`` and ``drips``.

        Other keys, such as the ``key`` and ``remaining`` fields of a stored
        snapshot, are ignored.
        """
        for name in ("timer", "max", "rate"):
            if settings.get(name) is not None:
                setattr(self, name, settings[name])
        if settings.get("drips") is not None:
            self._drips = 0
            self.fill(settings["drips"])
        return self

    def clone(self, key: str, max: int, rate: float) -> "LeakyBucket":
        return type(self)(key, max, rate, clock=self._clock)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self._key,
            "timer": self._timer,
            "max": self._max,
            "rate": self._rate,
            "drips": self.drips(),
            "remaining": self.remaining(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def _bounded(self, drips: int) -> int:
        return max(0, min(self._max, drips))
