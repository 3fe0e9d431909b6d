"""Short code resolution with cache-aside reads, visit logging and redirect metrics.

Flow Diagram — resolve()
========================
::
    ┌─────────────┐
    │ cache.get   │── error ──► treated as miss
    └──────┬──────┘
    HIT?   │
    ┌──────┴──────┐
    │ NO          │ YES
    ▼             │
┌───────────┐     │
│ fill lock │     │
│ (advisory)│     │
└─────┬─────┘     │
      ▼           │
┌───────────┐     │
│ store     │     │
│ lookup    │     │
└─────┬─────┘     │
 FOUND?           │
 ┌────┴────┐      │
 │ NO      │ YES  │
 ▼         ▼      │
failed   cache.set│
counter  (best-   │
 + None   effort) │
           └──┬───┘
              ▼
    ┌──────────────────┐
    │ schedule visit   │
    │ success counter  │
    │ return URL       │
    └──────────────────┘

Key Behaviours
===============
- The store is the source of truth; the cache is only ever filled, never invalidated.
- Concurrent misses on one code are de-duplicated through a Redis lock when
  available; losing the race only costs a redundant store read.
- Visits are written by background tasks. A failed visit write is logged and
  changes neither the result nor the counters.
- Store failures during lookup propagate as ``StoreError``.
"""

import asyncio
import logging

from shortener.cache import UrlCache
from shortener.enums import CacheStatus
from shortener.exceptions import CacheError, StoreError
from shortener.metrics import RedirectMetrics
from shortener.repository import UrlRepository

__all__ = ["RedirectResolver"]

logger = logging.getLogger(__name__)


class RedirectResolver:
    """Resolves short codes back to their original URLs."""

    def __init__(
        self,
        repository: UrlRepository,
        cache: UrlCache,
        metrics: RedirectMetrics,
        lock_retry_count: int = 3,
        lock_retry_delay_seconds: float = 0.05,
    ):
        self._repository = repository
        self._cache = cache
        self._metrics = metrics
        self._lock_retry_count = lock_retry_count
        self._lock_retry_delay_seconds = lock_retry_delay_seconds
        self._pending_visits: set[asyncio.Task] = set()

    async def resolve(
        self,
        short_code: str,
        user_agent: str | None = None,
        referer: str | None = None,
    ) -> str | None:
        """Return the original URL for ``short_code``, or ``None`` when unknown."""
        original_url = await self._read_cache(short_code)
        if original_url is None:
            original_url = await self._read_through(short_code)

        if original_url is None:
            self._metrics.record_failure(short_code)
            logger.info(f"Short code not found: {short_code}")
            return None

        self._schedule_visit(short_code, user_agent, referer)
        self._metrics.record_success(short_code)
        return original_url

    async def drain(self) -> None:
        """Wait for all scheduled visit writes to finish, including ones scheduled meanwhile."""
        while self._pending_visits:
            await asyncio.gather(*list(self._pending_visits), return_exceptions=True)

    @property
    def pending_visits(self) -> int:
        return len(self._pending_visits)

    async def _read_cache(self, short_code: str) -> str | None:
        try:
            cached = await self._cache.get(short_code)
        except CacheError as exc:
            logger.warning(f"Cache {CacheStatus.ERROR} for {short_code}, using store: {exc}")
            return None
        logger.debug(f"Cache {CacheStatus.HIT if cached is not None else CacheStatus.MISS} for {short_code}")
        return cached

    async def _read_through(self, short_code: str) -> str | None:
        lock_acquired = await self._try_acquire_fill_lock(short_code)
        try:
            if lock_acquired is False:
                # Another task is filling this entry; give it a moment before hitting the store.
                for _ in range(self._lock_retry_count):
                    await asyncio.sleep(self._lock_retry_delay_seconds)
                    cached = await self._read_cache(short_code)
                    if cached is not None:
                        return cached

            original_url = await self._repository.lookup_url(short_code)
            if original_url is not None:
                await self._fill_cache(short_code, original_url)
            return original_url
        finally:
            if lock_acquired:
                await self._release_fill_lock(short_code)

    async def _try_acquire_fill_lock(self, short_code: str) -> bool | None:
        """Returns None when the cache is unreachable."""
        try:
            return await self._cache.acquire_fill_lock(short_code)
        except CacheError as exc:
            logger.warning(f"Fill lock unavailable for {short_code}: {exc}")
            return None

    async def _release_fill_lock(self, short_code: str) -> None:
        try:
            await self._cache.release_fill_lock(short_code)
        except CacheError as exc:
            logger.warning(f"Fill lock release failed for {short_code}: {exc}")

    async def _fill_cache(self, short_code: str, original_url: str) -> None:
        try:
            await self._cache.set(short_code, original_url)
        except CacheError as exc:
            logger.warning(f"Cache fill skipped for {short_code}: {exc}")

    def _schedule_visit(self, short_code: str, user_agent: str | None, referer: str | None) -> None:
        task = asyncio.create_task(self._record_visit(short_code, user_agent, referer))
        self._pending_visits.add(task)
        task.add_done_callback(self._pending_visits.discard)

    async def _record_visit(self, short_code: str, user_agent: str | None, referer: str | None) -> None:
        try:
            await self._repository.insert_visit(short_code, user_agent=user_agent, referer=referer)
        except StoreError as exc:
            logger.error(f"Failed to record visit for {short_code}: {exc}")
