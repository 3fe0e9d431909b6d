"""Shared pytest fixtures: in-memory collaborators, mocked clients and the HTTP client."""

import asyncio
import datetime
import itertools
import logging
from collections.abc import AsyncGenerator, Iterable
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.codegen import RandomCodeGenerator
from shortener.config import Settings, get_settings
from shortener.dependencies import get_service_manager, get_url_service
from shortener.exceptions import CacheError, ConflictError, StoreError
from shortener.main import app
from shortener.metrics import RedirectMetrics
from shortener.models import ShortenedUrl
from shortener.redirects import RedirectResolver
from shortener.shortening import ShorteningOrchestrator
from shortener.url_service import URLShorteningService

# ============================================================================
# IN-MEMORY COLLABORATORS
# ============================================================================


class InMemoryUrlRepository:
    """Dict-backed stand-in for UrlRepository with failure switches."""

    def __init__(self) -> None:
        self.urls: dict[str, ShortenedUrl] = {}
        self.visits: list[dict] = []
        self.insert_attempts = 0
        self.lookups = 0
        self.fail_inserts = 0
        self.fail_lookups = False
        self.fail_visits = False
        self.fail_ping = False
        self._clock = itertools.count()
        self._epoch = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

    def add(self, short_code: str, original_url: str) -> None:
        self.urls[short_code] = ShortenedUrl(
            short_code=short_code,
            original_url=original_url,
            created_at=self._epoch + datetime.timedelta(seconds=next(self._clock)),
        )

    async def insert_mapping(self, short_code: str, original_url: str) -> str:
        self.insert_attempts += 1
        await asyncio.sleep(0)
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise StoreError("insert_mapping failed: connection refused")
        if short_code in self.urls:
            raise ConflictError(short_code)
        self.add(short_code, original_url)
        return short_code

    async def lookup_url(self, short_code: str) -> str | None:
        self.lookups += 1
        await asyncio.sleep(0)
        if self.fail_lookups:
            raise StoreError("lookup_url failed: connection refused")
        url = self.urls.get(short_code)
        return url.original_url if url is not None else None

    async def insert_visit(self, short_code: str, user_agent: str | None = None, referer: str | None = None) -> None:
        await asyncio.sleep(0)
        if self.fail_visits:
            raise StoreError("insert_visit failed: connection refused")
        self.visits.append({"short_code": short_code, "user_agent": user_agent, "referer": referer})

    async def list_all(self) -> list[ShortenedUrl]:
        return sorted(self.urls.values(), key=lambda url: url.created_at, reverse=True)

    async def ping(self) -> None:
        if self.fail_ping:
            raise StoreError("ping failed: connection refused")


class InMemoryCache:
    """Dict-backed stand-in for UrlCache; ``fail`` makes every call raise CacheError."""

    def __init__(self) -> None:
        self.entries: dict[str, str] = {}
        self.locks: set[str] = set()
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise CacheError("Cache unreachable")

    def evict(self, short_code: str) -> None:
        self.entries.pop(short_code, None)

    async def get(self, short_code: str) -> str | None:
        self._check()
        return self.entries.get(short_code)

    async def set(self, short_code: str, original_url: str) -> None:
        self._check()
        self.entries[short_code] = original_url

    async def acquire_fill_lock(self, short_code: str) -> bool:
        self._check()
        if short_code in self.locks:
            return False
        self.locks.add(short_code)
        return True

    async def release_fill_lock(self, short_code: str) -> None:
        self._check()
        self.locks.discard(short_code)

    async def ping(self) -> None:
        self._check()


class SequenceCodeGenerator:
    """Emits the given codes first, then random ones."""

    def __init__(self, codes: Iterable[str], repeat_last: bool = False) -> None:
        self._codes = list(codes)
        self._repeat_last = repeat_last
        self._random = RandomCodeGenerator()
        self.calls = 0

    def generate(self) -> str:
        self.calls += 1
        if self._codes:
            if self._repeat_last and len(self._codes) == 1:
                return self._codes[0]
            return self._codes.pop(0)
        return self._random.generate()


# ============================================================================
# CORE FIXTURES
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> RedirectMetrics:
    return RedirectMetrics(registry)


@pytest.fixture
def repository() -> InMemoryUrlRepository:
    return InMemoryUrlRepository()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def generator() -> SequenceCodeGenerator:
    return SequenceCodeGenerator([])


@pytest.fixture
def orchestrator(repository, cache, generator) -> ShorteningOrchestrator:
    return ShorteningOrchestrator(repository, cache, generator, max_retries=3)


@pytest_asyncio.fixture
async def resolver(repository, cache, metrics) -> AsyncGenerator[RedirectResolver, None]:
    resolver = RedirectResolver(repository, cache, metrics, lock_retry_count=3, lock_retry_delay_seconds=0.01)
    yield resolver
    await resolver.drain()


@pytest.fixture
def url_service(orchestrator, resolver, repository) -> URLShorteningService:
    return URLShorteningService(orchestrator, resolver, repository)


@pytest.fixture
def redirect_count(registry: CollectorRegistry):
    """Read a redirect counter for one short code (0.0 when never incremented)."""

    def _count(name: str, short_code: str) -> float:
        return registry.get_sample_value(name, {"short_code": short_code}) or 0.0

    return _count


# ============================================================================
# MOCKED CLIENTS
# ============================================================================


@pytest.fixture
def mock_session() -> AsyncMock:
    """Mock database session usable as an async context manager."""
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.scalar = AsyncMock(return_value=None)
    session.scalars = AsyncMock()
    session.execute = AsyncMock()
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    return session


@pytest.fixture
def session_factory(mock_session) -> MagicMock:
    return MagicMock(return_value=mock_session)


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Mock Redis client."""
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.get = AsyncMock(return_value=None)
    redis_client.set = AsyncMock(return_value=True)
    redis_client.delete = AsyncMock(return_value=1)
    redis_client.ping = AsyncMock(return_value=True)
    return redis_client


# ============================================================================
# HTTP CLIENT
# ============================================================================


@pytest.fixture
def service_manager(settings, repository, cache, resolver) -> SimpleNamespace:
    return SimpleNamespace(
        settings=settings,
        logger=logging.getLogger("shortener.tests"),
        repository=repository,
        cache=cache,
        resolver=resolver,
    )


@pytest_asyncio.fixture
async def client(service_manager, url_service) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_service_manager():
        return service_manager

    def override_get_url_service() -> URLShorteningService:
        return url_service

    app.dependency_overrides[get_service_manager] = override_get_service_manager
    app.dependency_overrides[get_url_service] = override_get_url_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
