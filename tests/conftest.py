from __future__ import annotations

import pytest

from bucketgate.config import settings
from bucketgate.store import MemoryStore, reset_store


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock)


@pytest.fixture
def restore_settings():
    original = dict(settings.__dict__)
    reset_store()
    yield settings
    settings.__dict__.update(original)
    reset_store()
