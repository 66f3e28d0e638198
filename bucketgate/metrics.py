from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from .events import Event

REQS = Counter(
    "bucketgate_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "bucketgate_latency_seconds",
    "Latency",
    ["method", "path"],
)
THROTTLED = Counter(
    "bucketgate_throttled_total",
    "Requests rejected by the rate limiter",
    ["path"],
)
PURGED = Counter(
    "bucketgate_purged_entries_total",
    "Expired limiter entries evicted from the store",
)
BUCKET_EVENTS = Counter(
    "bucketgate_bucket_events_total",
    "Bucket notifications",
    ["event"],
)


def record_event(event: Event) -> None:
    BUCKET_EVENTS.labels(type(event).__name__).inc()


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
