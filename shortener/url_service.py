"""Boundary facade over the shortening and redirect components.

The HTTP layer talks only to ``URLShorteningService``. It forwards each call to
the component that owns it; the orchestrator and the resolver never call each
other.

Architecture Overview
=====================
::
    ┌───────────────────────────────────────────────────────────┐
    │                  URLShorteningService                     │
    │  shorten_url()        get_original_url()     list_urls()  │
    └───────┬──────────────────────┬───────────────────┬────────┘
            ▼                      ▼                   │
    ┌────────────────┐    ┌─────────────────┐          │
    │ Shortening     │    │ Redirect        │          │
    │ Orchestrator   │    │ Resolver        │          │
    └──┬──────┬──────┘    └──┬───────┬──────┘          │
       │      │              │       │                 │
       ▼      ▼              ▼       ▼                 ▼
    CodeGen  UrlCache ◄──────┘   RedirectMetrics   UrlRepository
       (Redis)                                     (PostgreSQL)

How to Use
===========
```python
@router.post("/shorten")
async def shorten_url(
    payload: URLCreate,
    service: URLShorteningService = Depends(get_url_service),
) -> ShortenResponse:
    short_code = await service.shorten_url(payload.url)
```
"""

from typing import TYPE_CHECKING

from shortener.models import ShortenedUrl
from shortener.redirects import RedirectResolver
from shortener.repository import UrlRepository
from shortener.shortening import ShorteningOrchestrator

if TYPE_CHECKING:
    from shortener.dependencies import ServiceManager

__all__ = ["URLShorteningService"]


class URLShorteningService:
    def __init__(
        self,
        orchestrator: ShorteningOrchestrator,
        resolver: RedirectResolver,
        repository: UrlRepository,
    ):
        self._orchestrator = orchestrator
        self._resolver = resolver
        self._repository = repository

    @classmethod
    def from_manager(cls, manager: "ServiceManager") -> "URLShorteningService":
        return cls(manager.orchestrator, manager.resolver, manager.repository)

    async def shorten_url(self, url: str) -> str:
        """Create a short code for an already validated absolute URL.

        Raises:
            ShortenFailed: The attempt budget was exhausted.
        """
        return await self._orchestrator.shorten_url(url)

    async def get_original_url(
        self,
        short_code: str,
        user_agent: str | None = None,
        referer: str | None = None,
    ) -> str | None:
        """Resolve a short code, recording the visit on success.

        Returns:
            The original URL, or None when the code is unknown.
        """
        return await self._resolver.resolve(short_code, user_agent=user_agent, referer=referer)

    async def list_urls(self) -> list[ShortenedUrl]:
        return await self._repository.list_all()
