import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


def init_logging(level: str = "INFO"):
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        logging.info(
            "%s %s %s %.2fms remaining=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            response.headers.get("X-RateLimit-Remaining", "-"),
        )
        return response
