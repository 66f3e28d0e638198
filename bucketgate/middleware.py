"""HTTP adapters for the limiter.

``Throttle`` guards individual routes as a FastAPI dependency::

    @app.get("/search", dependencies=[Depends(Throttle(30, 0.5, 120))])
    @app.get("/me", dependencies=[Depends(Throttle("60|300"))])
    @app.post("/upload", dependencies=[Depends(Throttle(TagResolver, "uploads", 5, 0.1))])

``RateLimitMiddleware`` applies the configured resolver to every request.
Admitted responses carry ``X-RateLimit-Limit`` and ``X-RateLimit-Remaining``;
rejected ones are 429 with ``Retry-After`` and ``X-RateLimit-Reset`` too.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

import anyio.to_thread
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .bucket import LeakyBucket
from .config import settings
from .contracts import Bucket, Dispatcher, Resolver, Store
from .evented import EventedBucket
from .events import dispatcher as default_dispatcher
from .exceptions import TooManyRequests
from .limiter import Limiter
from .metrics import THROTTLED
from .resolvers import RouteResolver, UserResolver
from .store import get_store

ResolverFactory = Callable[..., Any]


def rate_limit_headers(
    limit: int, remaining: int, backoff: Optional[int] = None
) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
    }
    if backoff is not None:
        headers["Retry-After"] = str(backoff)
        headers["X-RateLimit-Reset"] = str(int(time.time()) + backoff)
    return headers


def make_bucket(
    key: str, max: int, rate: float, events: Optional[Dispatcher] = None
) -> Bucket:
    bucket = LeakyBucket(key, max, rate)
    if events is None:
        return bucket
    return EventedBucket(events, bucket)


def default_resolver() -> ResolverFactory:
    return RouteResolver if settings.RATE_LIMIT_RESOLVER == "route" else UserResolver


def make_resolver(
    request: Request,
    args: tuple[Any, ...] = (),
    default: Optional[ResolverFactory] = None,
) -> Resolver:
    """Build a resolver from throttle arguments.

    A leading callable in ``args`` is used as the resolver factory; otherwise
    ``default`` (or the configured resolver) receives all of ``args``.
    """
    params = list(args)
    factory = params.pop(0) if params and callable(params[0]) else None
    if factory is None:
        factory = default or default_resolver()

    resolver = factory(request, *params)
    if not isinstance(resolver, Resolver):
        raise TypeError(
            f"{type(resolver).__name__} must be an instance of "
            f"{Resolver.__module__}.{Resolver.__qualname__}."
        )
    return resolver


def throttle(limiter: Limiter, duration: int) -> dict[str, str]:
    """Admit one hit or raise :class:`TooManyRequests`.

    Returns the rate limit headers for an admitted request.
    """
    if limiter.exceeded():
        limiter.timeout(duration)
        raise TooManyRequests(
            rate_limit_headers(limiter.limit(), limiter.remaining(), limiter.backoff())
        )

    limiter.hit()
    return rate_limit_headers(limiter.limit(), limiter.remaining())


class _Throttler:
    def __init__(
        self,
        resolver: Optional[ResolverFactory] = None,
        store: Optional[Store] = None,
        events: Optional[Dispatcher] = None,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.events = events

    def _events(self) -> Optional[Dispatcher]:
        if self.events is not None:
            return self.events
        return default_dispatcher if settings.RATE_LIMIT_EVENTS else None

    def check(self, request: Request, args: tuple[Any, ...] = ()) -> dict[str, str]:
        resolver = make_resolver(request, args, self.resolver)
        bucket = make_bucket(
            resolver.key(), resolver.max(), resolver.rate(), self._events()
        )
        store = self.store if self.store is not None else get_store()
        limiter = Limiter(store, bucket)
        try:
            return throttle(limiter, resolver.duration())
        except TooManyRequests:
            THROTTLED.labels(request.url.path).inc()
            raise


class Throttle(_Throttler):
    """Route dependency; positional arguments are passed to the resolver."""

    def __init__(
        self,
        *args: Any,
        resolver: Optional[ResolverFactory] = None,
        store: Optional[Store] = None,
        events: Optional[Dispatcher] = None,
    ) -> None:
        super().__init__(resolver, store, events)
        self.args = args

    def __call__(self, request: Request, response: Response) -> None:
        response.headers.update(self.check(request, self.args))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """App-wide throttle; ``enabled`` is consulted on every request."""

    def __init__(
        self,
        app,
        resolver: Optional[ResolverFactory] = None,
        store: Optional[Store] = None,
        events: Optional[Dispatcher] = None,
        enabled: Callable[[], bool] = lambda: True,
    ) -> None:
        super().__init__(app)
        self.throttler = _Throttler(resolver, store, events)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if not self.enabled():
            return await call_next(request)
        try:
            headers = await anyio.to_thread.run_sync(self.throttler.check, request)
        except TooManyRequests as exc:
            return JSONResponse(
                {"detail": exc.detail},
                status_code=exc.status_code,
                headers=exc.headers,
            )
        response = await call_next(request)
        response.headers.update(headers)
        return response
