from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .auth import require_auth
from .bucket import LeakyBucket
from .config import reload_settings, settings
from .events import Event, dispatcher, log_event
from .limiter import Limiter
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, record_event, router as metrics_router
from .middleware import RateLimitMiddleware, Throttle
from .resolvers import TagResolver
from .scheduler import run_purge
from .store import get_store


class Health(BaseModel):
    status: str
    time: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    reload_settings()
    store = get_store()
    if settings.RATE_LIMIT_EVENTS:
        dispatcher.listen(Event, log_event)
        dispatcher.listen(Event, record_event)

    interval = settings.CACHE_PURGE_INTERVAL_SECONDS
    purger = asyncio.create_task(
        run_purge(store, interval, max(1, interval // 10), 600)
    )
    try:
        yield
    finally:
        purger.cancel()
        with suppress(asyncio.CancelledError):
            await purger


init_logging(settings.LOG_LEVEL)

app = FastAPI(title="bucketgate", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    RateLimitMiddleware, enabled=lambda: bool(settings.RATE_LIMIT_ENABLED)
)
app.include_router(metrics_router())

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "Retry-After",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
    ],
)


@app.middleware("http")
async def _metrics(request: Request, call_next):
    method = request.method
    path = request.url.path
    start = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration = time.time() - start
        REQS.labels(method, path, str(status_code)).inc()
        LAT.labels(method, path).observe(duration)


@app.get("/health", response_model=Health)
def health():
    return Health(status="ok", time=datetime.utcnow().isoformat())


@app.get("/ping", dependencies=[Depends(Throttle(TagResolver, "ping"))])
def ping():
    return {"pong": True}


@app.get("/limits/{key:path}")
def get_limit(key: str, _=Depends(require_auth)):
    store = get_store()
    record = store.get(key)
    if not isinstance(record, dict):
        raise HTTPException(status_code=404, detail="unknown key")
    limiter = Limiter(store, LeakyBucket(key, record["max"], record["rate"]))
    limiter.bucket.leak()
    return {
        "bucket": limiter.bucket.to_dict(),
        "timeout": limiter.has_timeout(),
        "backoff": limiter.backoff(),
    }


@app.delete("/limits/{key:path}")
def clear_limit(key: str, _=Depends(require_auth)):
    Limiter(get_store(), LeakyBucket(key)).clear()
    return {"cleared": key}
