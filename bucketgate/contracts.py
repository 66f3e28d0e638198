"""Narrow interfaces the limiter depends on.

Implementations live in :mod:`bucketgate.bucket`, :mod:`bucketgate.evented`,
:mod:`bucketgate.store`, :mod:`bucketgate.events` and
:mod:`bucketgate.resolvers`; anything with the same shape can be swapped in.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class Bucket(Protocol):
    @property
    def key(self) -> str: ...

    @property
    def max(self) -> int: ...

    @property
    def rate(self) -> float: ...

    @property
    def timer(self) -> float: ...

    def drips(self) -> int: ...

    def remaining(self) -> int: ...

    def duration(self) -> float: ...

    def is_full(self) -> bool: ...

    def is_empty(self) -> bool: ...

    def leak(self, rate: Optional[float] = None) -> Any: ...

    def fill(self, drips: int = 1) -> Any: ...

    def reset(self) -> "Bucket": ...

    def configure(self, settings: Mapping[str, Any]) -> "Bucket": ...

    def clone(self, key: str, max: int, rate: float) -> "Bucket": ...

    def to_dict(self) -> dict[str, Any]: ...


@runtime_checkable
class Store(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def put(self, key: str, value: Any, ttl: int) -> None: ...

    def has(self, key: str) -> bool: ...

    def forget(self, key: str) -> bool: ...


@runtime_checkable
class Dispatcher(Protocol):
    def until(self, event: Any) -> Any: ...

    def dispatch(self, event: Any) -> Any: ...


@runtime_checkable
class Resolver(Protocol):
    def key(self) -> str: ...

    def max(self) -> int: ...

    def rate(self) -> float: ...

    def duration(self) -> int: ...
