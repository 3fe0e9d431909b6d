"""Dependency injection with a singleton service manager.

This module wires the shortening core once per process and hands it to the
API endpoints, keeping per-request work down to a lightweight context object.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request

from shortener.cache import UrlCache
from shortener.codegen import RandomCodeGenerator
from shortener.config import Settings, get_settings
from shortener.database import async_session
from shortener.metrics import RedirectMetrics, get_metrics
from shortener.redirects import RedirectResolver
from shortener.repository import UrlRepository
from shortener.shortening import ShorteningOrchestrator
from shortener.url_service import URLShorteningService

__all__ = [
    "RequestContext",
    "ServiceManager",
    "get_request_context",
    "get_service_manager",
    "get_url_service",
]


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton owner of the process-wide resources.

    Holds the Redis client, the persistence gateway, the cache layer, the
    redirect counters and the two business components built on top of them.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        self.settings = get_settings()
        self.logger = self._setup_logger()
        self.redis = redis.from_url(self.settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        self.repository = UrlRepository(async_session)
        self.cache = UrlCache(
            self.redis,
            ttl_seconds=self.settings.CACHE_TTL_SECONDS,
            key_prefix=self.settings.CACHE_KEY_PREFIX,
            lock_ttl_seconds=self.settings.CACHE_LOCK_TTL_SECONDS,
        )
        self.metrics: RedirectMetrics = get_metrics()
        self.orchestrator = ShorteningOrchestrator(
            self.repository,
            self.cache,
            RandomCodeGenerator(self.settings.SHORT_CODE_LENGTH),
            max_retries=self.settings.SHORTEN_MAX_RETRIES,
            retry_delay_seconds=self.settings.SHORTEN_RETRY_DELAY_SECONDS,
        )
        self.resolver = RedirectResolver(
            self.repository,
            self.cache,
            self.metrics,
            lock_retry_count=self.settings.CACHE_LOCK_RETRY_COUNT,
            lock_retry_delay_seconds=self.settings.CACHE_LOCK_RETRY_DELAY_SECONDS,
        )
        self._initialized = True
        self.logger.info(f"{self.settings.APP_NAME} initialized ({self.settings.APP_ENV})")

    def _setup_logger(self) -> logging.Logger:
        """Setup the package logger once."""
        logger = logging.getLogger("shortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    async def cleanup(self) -> None:
        """Flush pending visit writes and close the Redis client."""
        if not self._initialized:
            return
        await self.resolver.drain()
        await self.redis.aclose()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data plus access to the shared resources.

    Attributes:
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        user_agent: Client User-Agent header
        referer: Client Referer header
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger carrying the request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        client_ip=request.client.host if request.client else None,
    )


def get_url_service(manager: ServiceManager = Depends(get_service_manager)) -> URLShorteningService:
    return URLShorteningService.from_manager(manager)
