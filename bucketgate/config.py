from __future__ import annotations

import os
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    RATE_LIMIT_ENABLED: bool = Field(default=False)
    RATE_LIMIT_MAX: str = Field(
        default="60", description="capacity, 'guest|user' or a principal attribute"
    )
    RATE_LIMIT_RATE: str = Field(default="1", description="drips leaked per second")
    RATE_LIMIT_DURATION: str = Field(default="60", description="timeout in seconds")
    RATE_LIMIT_RESOLVER: Literal["user", "route"] = Field(default="user")
    RATE_LIMIT_EVENTS: bool = Field(default=False)
    CACHE_BACKEND: Literal["memory", "sql"] = Field(default="memory")
    CACHE_DB_PATH: str = Field(default="bucketgate.db")
    CACHE_PURGE_INTERVAL_SECONDS: int = Field(default=300)
    API_TOKEN: str = Field(default="dev_token")
    API_KEYS: str = Field(default="", description="comma-separated API keys")
    CORS_ALLOW_ORIGINS: str = Field(default="*")
    LOG_LEVEL: str = Field(default="INFO")


def _load_settings(existing: Settings | None = None) -> Settings:
    values: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        env_value = os.getenv(name)
        if env_value is None:
            if existing is not None and hasattr(existing, name):
                values[name] = getattr(existing, name)
                continue
            values[name] = field.get_default(call_default_factory=True)
        else:
            values[name] = env_value

    try:
        return Settings(**values)
    except ValidationError as exc:
        invalid = sorted(
            {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        )
        joined = ", ".join(invalid)
        raise RuntimeError(f"Invalid environment variables: {joined}") from exc


settings = _load_settings()


def reload_settings() -> Settings:
    global settings
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
