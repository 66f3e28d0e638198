from __future__ import annotations

from typing import Any, Optional

from fastapi import Header, HTTPException, Request
from pydantic import BaseModel

from .config import settings


class Principal(BaseModel):
    """Caller identified by a bearer token or API key."""

    id: str
    rate_limit: Optional[int] = None


def _valid_keys() -> set[str]:
    return {k.strip() for k in settings.API_KEYS.split(",") if k.strip()}


def _valid_tokens() -> set[str]:
    configured_token = (settings.API_TOKEN or "").strip()
    return {configured_token} if configured_token else set()


def principal_from_request(request: Request) -> Optional[Any]:
    """Return the caller's principal, or None for guests.

    An object already placed on ``request.state.user`` by an upstream
    authentication layer wins over the configured tokens and keys.
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return user

    authorization = request.headers.get("authorization") or ""
    if authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token in _valid_tokens() or token in _valid_keys():
            return Principal(id=token)

    api_key = request.headers.get("x-api-key")
    if api_key and api_key in _valid_keys():
        return Principal(id=api_key)
    return None


def require_auth(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    valid_keys = _valid_keys()
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token in _valid_tokens() or token in valid_keys:
            return
    if x_api_key and x_api_key in valid_keys:
        return
    raise HTTPException(status_code=401, detail="unauthorized")
