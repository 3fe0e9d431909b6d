"""Redis-backed cache for the ``short_code -> original_url`` projection.

The cache is a derived accelerator over the relational store. It never holds
visits or counters, and entries are never invalidated since mappings are
immutable; they may only expire or be evicted.

Key Layout
==========
::
    {prefix}:{short_code}        -> original URL (plain string)
    lock:{prefix}:{short_code}   -> "1" while one task fills the entry

How to Use
===========
**Step 1 — Build from a Redis client**::
    cache = UrlCache(redis.from_url(settings.REDIS_URL, decode_responses=True))

**Step 2 — Read and write**::
    url = await cache.get("aB3dE9x")
    await cache.set("aB3dE9x", "https://example.com")

Key Behaviours
===============
- Every Redis failure surfaces as ``CacheError`` so callers can degrade to the store.
- A TTL of 0 stores entries without expiry.
- Fill locks are advisory: losing one only costs a redundant store read.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortener.exceptions import CacheError

__all__ = ["DEFAULT_CACHE_TTL_SECONDS", "UrlCache"]

DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_LOCK_TTL_SECONDS = 3

_CACHE_FAILURES = (RedisError, OSError)


class UrlCache:
    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        key_prefix: str = "url",
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ):
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix
        self._lock_ttl_seconds = lock_ttl_seconds

    def key_for(self, short_code: str) -> str:
        return f"{self._key_prefix}:{short_code}"

    def lock_key_for(self, short_code: str) -> str:
        return f"lock:{self._key_prefix}:{short_code}"

    async def get(self, short_code: str) -> str | None:
        try:
            return await self._client.get(self.key_for(short_code))
        except _CACHE_FAILURES as exc:
            raise CacheError(f"Cache read failed for {short_code}: {exc}") from exc

    async def set(self, short_code: str, original_url: str) -> None:
        try:
            if self._ttl_seconds > 0:
                await self._client.set(self.key_for(short_code), original_url, ex=self._ttl_seconds)
            else:
                await self._client.set(self.key_for(short_code), original_url)
        except _CACHE_FAILURES as exc:
            raise CacheError(f"Cache write failed for {short_code}: {exc}") from exc

    async def acquire_fill_lock(self, short_code: str) -> bool:
        try:
            locked = await self._client.set(
                self.lock_key_for(short_code), "1", ex=self._lock_ttl_seconds, nx=True
            )
        except _CACHE_FAILURES as exc:
            raise CacheError(f"Cache lock failed for {short_code}: {exc}") from exc
        return bool(locked)

    async def release_fill_lock(self, short_code: str) -> None:
        try:
            await self._client.delete(self.lock_key_for(short_code))
        except _CACHE_FAILURES as exc:
            raise CacheError(f"Cache unlock failed for {short_code}: {exc}") from exc

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except _CACHE_FAILURES as exc:
            raise CacheError(f"Cache ping failed: {exc}") from exc
