"""Resolve limiter parameters from an incoming request.

Parameters may be plain numbers (``60``), a ``guest|user`` pair
(``"60|300"``) picking the right side for authenticated callers, or the name
of an attribute on the authenticated principal (``"60|rate_limit"``).
Omitted parameters fall back to the ``RATE_LIMIT_*`` settings.
"""

from __future__ import annotations

import hashlib
from typing import Any, Callable, Mapping, Optional, Union

from starlette.requests import Request

from .auth import principal_from_request
from .config import settings
from .exceptions import ConfigurationError

Parameter = Union[int, float, str]
UserResolverFn = Callable[[Request], Optional[Any]]


def _sha1(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def _is_numeric(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


class UserResolver:
    """Key requests by authenticated principal, falling back to host and IP."""

    def __init__(
        self,
        request: Request,
        max: Optional[Parameter] = None,
        rate: Optional[Parameter] = None,
        duration: Optional[Parameter] = None,
    ) -> None:
        self.request = request
        self._max = settings.RATE_LIMIT_MAX if max is None else max
        self._rate = settings.RATE_LIMIT_RATE if rate is None else rate
        self._duration = settings.RATE_LIMIT_DURATION if duration is None else duration
        self._user_resolver: Optional[UserResolverFn] = None

    def set_user_resolver(self, resolver: UserResolverFn) -> None:
        self._user_resolver = resolver

    def resolve_user(self) -> Optional[Any]:
        if self._user_resolver is not None:
            return self._user_resolver(self.request)
        return principal_from_request(self.request)

    def key(self) -> str:
        user = self.resolve_user()
        if user is not None:
            return _sha1(str(self._identifier(user)))

        client = self.request.client
        if client is None:
            raise ConfigurationError(
                "Unable to generate the request signature. Client address unavailable."
            )
        return _sha1(f"{self.request.url.hostname}|{client.host}")

    def max(self) -> int:
        return self._number(self._max, int)

    def rate(self) -> float:
        return self._number(self._rate, float)

    def duration(self) -> int:
        """Seconds the limiter locks out once exceeded."""
        return self._number(self._duration, int)

    def _identifier(self, user: Any) -> Any:
        if isinstance(user, Mapping):
            return user.get("id", user)
        return getattr(user, "id", user)

    def _parse(self, parameter: Parameter) -> Any:
        value = str(parameter)
        user = self.resolve_user()
        if "|" in value:
            value = value.split("|", 1)[1 if user is not None else 0].strip()
        if _is_numeric(value):
            return value
        if user is None:
            raise ConfigurationError(
                f"{value!r} is not numeric and no authenticated user is available"
            )
        if isinstance(user, Mapping):
            attribute = user.get(value)
        else:
            attribute = getattr(user, value, None)
        if attribute is None:
            raise ConfigurationError(f"user has no {value!r} attribute")
        return attribute

    def _number(self, parameter: Parameter, kind: type) -> Any:
        value = self._parse(parameter)
        try:
            return kind(float(value)) if kind is int else kind(value)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ConfigurationError(f"invalid limiter parameter {value!r}") from exc


class RouteResolver(UserResolver):
    """Give every route its own bucket beneath the caller's shared bucket."""

    def key(self) -> str:
        return f"{super().key()}:{_sha1(self.route_signature())}"

    def route_signature(self) -> str:
        route = self.request.scope.get("route")
        name = getattr(route, "name", None)
        if name:
            return name
        endpoint = getattr(route, "endpoint", None)
        if endpoint is not None:
            return f"{endpoint.__module__}.{endpoint.__qualname__}"
        return getattr(route, "path", None) or self.request.url.path


class TagResolver(UserResolver):
    """Group arbitrary routes under a named tag beneath the caller's bucket."""

    def __init__(
        self,
        request: Request,
        tag: str,
        max: Optional[Parameter] = None,
        rate: Optional[Parameter] = None,
        duration: Optional[Parameter] = None,
    ) -> None:
        super().__init__(request, max, rate, duration)
        self._tag = tag

    @property
    def tag(self) -> str:
        return self._tag

    def key(self) -> str:
        return f"{super().key()}:{self._tag}"
