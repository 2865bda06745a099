"""
Centralised settings loader (pydantic-settings).
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime / DB ───────────────────────────────────────────────
    env_name: str = Field("local", alias="ENV_NAME")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # ─── auth ───────────────────────────────────────────────────────
    jwt_secret: str = Field("changeme", alias="JWT_SECRET")
    jwt_ttl_minutes: int = Field(60, alias="JWT_TTL_MINUTES")

    # ─── read-path cache ────────────────────────────────────────────
    redis_url: str | None = Field(None, alias="REDIS_URL")
    cache_ttl_seconds: int = Field(300, alias="CACHE_TTL_SECONDS", ge=1)
    cache_prefix: str = Field("cache", alias="CACHE_PREFIX")
    cache_timeout_seconds: float = Field(1.0, alias="CACHE_TIMEOUT_SECONDS")

    # allow other teammates’ env-vars without crashing
    model_config = {
        "extra": "ignore",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()  # type: ignore[call-arg]


settings: _Settings = _cached()
