"""Bucket notifications and a small in-process dispatcher."""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

    def to_json(self) -> str:
        return self.model_dump_json()


class Filling(Event):
    """The bucket is about to be filled with ``drips``."""

    drips: int


class Filled(Event):
    """The bucket now holds ``drips`` with ``remaining`` capacity left."""

    drips: int
    remaining: int


class Leaking(Event):
    """The bucket is about to leak at ``rate`` drips per second."""

    rate: float


class Leaked(Event):
    """``drips`` leaked out, leaving ``remaining`` capacity."""

    drips: int
    remaining: int


Listener = Callable[[Event], Any]


class EventDispatcher:
    """Calls listeners registered for an event class or any of its bases."""

    def __init__(self) -> None:
        self._listeners: list[tuple[type[Event], Listener]] = []

    def listen(self, event_type: type[Event], listener: Listener) -> None:
        if (event_type, listener) not in self._listeners:
            self._listeners.append((event_type, listener))

    def forget(self, event_type: type[Event]) -> None:
        self._listeners = [
            (kind, listener)
            for kind, listener in self._listeners
            if kind is not event_type
        ]

    def listeners(self, event: Event) -> list[Listener]:
        return [
            listener
            for kind, listener in self._listeners
            if isinstance(event, kind)
        ]

    def until(self, event: Event) -> Any:
        """Call listeners in order and return the first non-None response."""
        for listener in self.listeners(event):
            response = listener(event)
            if response is not None:
                return response
        return None

    def dispatch(self, event: Event) -> list[Any]:
        return [listener(event) for listener in self.listeners(event)]


def log_event(event: Event) -> None:
    logger.debug("%s %s", type(event).__name__, event.to_json())


dispatcher = EventDispatcher()
