"""bucketgate: leaky bucket rate limiting with a pluggable store."""

from typing import TYPE_CHECKING

from .bucket import LeakyBucket
from .evented import EventedBucket
from .exceptions import ConfigurationError, TooManyRequests
from .limiter import Limiter

__version__ = "0.1.0"

if TYPE_CHECKING:  # pragma: no cover - import-time convenience for type checkers
    from .main import app as app

__all__ = [
    "ConfigurationError",
    "EventedBucket",
    "LeakyBucket",
    "Limiter",
    "TooManyRequests",
    "app",
    "__version__",
]


def __getattr__(name: str):
    if name == "app":
        from .main import app as _app
        return _app
    raise AttributeError(f"module 'bucketgate' has no attribute {name!r}")
