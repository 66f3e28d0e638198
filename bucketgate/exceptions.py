from __future__ import annotations

from fastapi import HTTPException, status


class ConfigurationError(ValueError):
    """Raised when a bucket, limiter or resolver is given unusable settings."""


class TooManyRequests(HTTPException):
    """429 raised by the HTTP throttle once a limiter is exceeded."""

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too Many Requests",
            headers=headers,
        )
