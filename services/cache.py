"""
services/cache.py
────────────────────────────────────────────────────────────────────────
Cache-aside layer for GET endpoints.

* `CacheStore` – the swappable backend (in-memory for tests/local runs,
  Redis in production).  Backends raise `UpstreamUnavailable` on failure.
* `ResponseCache` – the cache-aside contract on top of a store.  Entries
  are scoped by a per-collection generation counter; a write bumps the
  generation and every older entry of that collection becomes unreadable
  at once, whatever query string it was cached under.
* `connect_cache()` / `close_cache()` / `get_cache()` – process-wide
  lifecycle, wired to FastAPI startup/shutdown in `main.py`.
"""
from __future__ import annotations

import logging
import math
import re
import time
from typing import Awaitable, Callable, Iterable, Protocol
from urllib.parse import urlencode

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from config import settings
from core.errors import UpstreamUnavailable

_LOG = logging.getLogger(__name__)

RECIPES = "recipes"
MEAL_PLANS = "meal-plans"


# ───────── backends ──────────────────────────────────────────────────
class CacheStore(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def generation(self, collection: str) -> int: ...

    async def bump_generation(self, collection: str) -> int: ...

    async def close(self) -> None: ...


class MemoryCacheStore:
    """
    Dict-backed store for tests and single-process runs.

    Entries are bucketed by the generation scope of their key
    (`<prefix>:<collection>:g<n>`).  Bumping a generation drops the older
    buckets of that collection; expired entries are swept on write.
    """

    _SCOPE = re.compile(r"^(.*?:g\d+):")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, dict[str, tuple[float, bytes]]] = {}
        self._generations: dict[str, int] = {}
        self._next_expiry = math.inf

    @classmethod
    def _scope(cls, key: str) -> str:
        m = cls._SCOPE.match(key)
        return m.group(1) if m else ""

    def entry_count(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    async def get(self, key: str) -> bytes | None:
        bucket = self._buckets.get(self._scope(key), {})
        hit = bucket.get(key)
        if hit is None:
            return None
        expires_at, value = hit
        if self._clock() >= expires_at:
            bucket.pop(key, None)
            return None
        return value

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        now = self._clock()
        if now >= self._next_expiry:
            self._sweep(now)
        expires_at = now + ttl_seconds
        self._buckets.setdefault(self._scope(key), {})[key] = (expires_at, value)
        self._next_expiry = min(self._next_expiry, expires_at)

    def _sweep(self, now: float) -> None:
        soonest = math.inf
        for scope in list(self._buckets):
            bucket = self._buckets[scope]
            for key in [k for k, (exp, _) in bucket.items() if exp <= now]:
                del bucket[key]
            if not bucket:
                del self._buckets[scope]
                continue
            soonest = min(soonest, min(exp for exp, _ in bucket.values()))
        self._next_expiry = soonest

    async def generation(self, collection: str) -> int:
        return self._generations.get(collection, 0)

    async def bump_generation(self, collection: str) -> int:
        gen = self._generations.get(collection, 0) + 1
        self._generations[collection] = gen
        for scope in list(self._buckets):
            parts = scope.rsplit(":", 2)
            if len(parts) == 3 and parts[1] == collection and int(parts[2][1:]) < gen:
                del self._buckets[scope]
        return gen

    async def close(self) -> None:
        self._buckets.clear()
        self._next_expiry = math.inf


class RedisCacheStore:
    def __init__(self, url: str, prefix: str, timeout: float = 1.0) -> None:
        self._prefix = prefix
        self._redis = aioredis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )

    def _gen_key(self, collection: str) -> str:
        return f"{self._prefix}:gen:{collection}"

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._redis.get(key)
        except (RedisError, OSError) as exc:
            raise UpstreamUnavailable(f"redis GET failed: {exc}", upstream="cache") from exc

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as exc:
            raise UpstreamUnavailable(f"redis SET failed: {exc}", upstream="cache") from exc

    async def generation(self, collection: str) -> int:
        try:
            raw = await self._redis.get(self._gen_key(collection))
        except (RedisError, OSError) as exc:
            raise UpstreamUnavailable(f"redis GET failed: {exc}", upstream="cache") from exc
        return int(raw) if raw is not None else 0

    async def bump_generation(self, collection: str) -> int:
        try:
            return await self._redis.incr(self._gen_key(collection))
        except (RedisError, OSError) as exc:
            raise UpstreamUnavailable(f"redis INCR failed: {exc}", upstream="cache") from exc

    async def close(self) -> None:
        await self._redis.aclose()


# ───────── keys ──────────────────────────────────────────────────────
def request_signature(
    path: str,
    query_items: Iterable[tuple[str, str]] = (),
    identity: str | None = None,
) -> str:
    """
    Canonical request key: path + query params sorted by (name, value).

    Reads that depend on who is asking must pass `identity`, otherwise
    one user's payload would be served to another.
    """
    query = urlencode(sorted(query_items))
    sig = f"{path}?{query}" if query else path
    if identity is not None:
        sig = f"{sig}#as={identity}"
    return sig


# ───────── cache-aside ───────────────────────────────────────────────
class ResponseCache:
    def __init__(self, store: CacheStore, ttl_seconds: int, prefix: str = "cache") -> None:
        self.store = store
        self._ttl = ttl_seconds
        self._prefix = prefix

    def _key(self, collection: str, gen: int, signature: str) -> str:
        return f"{self._prefix}:{collection}:g{gen}:{signature}"

    async def cached_read(
        self,
        collection: str,
        signature: str,
        loader: Callable[[], Awaitable[bytes]],
    ) -> bytes:
        """
        Return the serialised body for `signature`, calling `loader` on miss.

        `loader` must return the final response bytes.  The generation is
        read *before* loading so a write landing mid-load leaves the new
        entry under an already-dead generation.
        """
        try:
            gen = await self.store.generation(collection)
        except UpstreamUnavailable as exc:
            _LOG.warning("cache unavailable, reading through: %s", exc)
            return await loader()

        key = self._key(collection, gen, signature)
        try:
            hit = await self.store.get(key)
        except UpstreamUnavailable as exc:
            _LOG.warning("cache get failed for %s: %s", key, exc)
            hit = None
        if hit is not None:
            _LOG.debug("cache hit %s", key)
            return hit

        body = await loader()
        try:
            await self.store.set_with_ttl(key, body, self._ttl)
        except UpstreamUnavailable as exc:
            _LOG.warning("cache set failed for %s: %s", key, exc)
        return body

    async def invalidate(self, collection: str) -> None:
        """Make every cached entry of `collection` unreadable."""
        try:
            gen = await self.store.bump_generation(collection)
        except UpstreamUnavailable as exc:
            _LOG.warning("cache invalidation of %r failed: %s", collection, exc)
            return
        _LOG.debug("cache generation %s → %d", collection, gen)


# ───────── process-wide lifecycle ────────────────────────────────────
_CACHE: ResponseCache | None = None


def connect_cache() -> ResponseCache:
    global _CACHE
    if _CACHE is None:
        if settings.redis_url:
            store: CacheStore = RedisCacheStore(
                settings.redis_url, settings.cache_prefix, settings.cache_timeout_seconds
            )
            _LOG.info("read-path cache: redis")
        else:
            store = MemoryCacheStore()
            _LOG.info("read-path cache: in-memory (REDIS_URL not set)")
        _CACHE = ResponseCache(store, settings.cache_ttl_seconds, settings.cache_prefix)
    return _CACHE


async def close_cache() -> None:
    global _CACHE
    if _CACHE is not None:
        await _CACHE.store.close()
        _CACHE = None


def get_cache() -> ResponseCache:
    return connect_cache()
