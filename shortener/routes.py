"""FastAPI route definitions for the URL shortener REST API.

The routes validate input, translate core outcomes into HTTP responses and
nothing else; all shortening and resolution logic lives behind
``URLShorteningService``.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /shorten
        ├─ URLCreate (request body)
        └─ ShortenResponse (201) or 422/503

    GET  /urls
        └─ list[ShortenedUrlResponse] (200), newest first

    GET  /:short_code
        └─ 302 Redirect or 404

Key Behaviours
===============
- User-Agent and Referer headers are forwarded to visit logging.
- An unknown code is a plain 404; the failed-redirect counter is handled by the core.
- Retry exhaustion surfaces as 503; store outages are mapped in ``shortener.main``.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from shortener.dependencies import RequestContext, get_request_context, get_url_service
from shortener.enums import HealthStatus
from shortener.exceptions import CacheError, ShortenFailed, StoreError
from shortener.schemas import HealthResponse, ShortenedUrlResponse, ShortenResponse, URLCreate
from shortener.url_service import URLShorteningService

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.service_manager.repository.ping()
    except StoreError as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.service_manager.cache.ping()
    except CacheError as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/shorten", response_model=ShortenResponse, status_code=201, tags=["urls"])
async def shorten_url(
    payload: URLCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> ShortenResponse:
    ctx.logger.info(f"URL shortening requested: {payload.url}")
    try:
        short_code = await service.shorten_url(payload.url)
    except ShortenFailed as exc:
        ctx.logger.error(f"shorten_url failed after {ctx.get_duration():.1f}ms: {exc}")
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    ctx.logger.info(f"shorten_url succeeded: {short_code} ({ctx.get_duration():.1f}ms)")
    return ShortenResponse(short_code=short_code, short_url=f"{ctx.settings.BASE_URL}/{short_code}")


@router.get("/urls", response_model=list[ShortenedUrlResponse], tags=["urls"])
async def list_urls(service: URLShorteningService = Depends(get_url_service)) -> list[ShortenedUrlResponse]:
    urls = await service.list_urls()
    return [ShortenedUrlResponse.model_validate(url) for url in urls]


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> RedirectResponse:
    original_url = await service.get_original_url(short_code, user_agent=ctx.user_agent, referer=ctx.referer)
    if original_url is None:
        ctx.logger.warning(f"redirect failed, short code not found: {short_code} ({ctx.get_duration():.1f}ms)")
        raise HTTPException(status_code=404, detail="Short URL not found")

    ctx.logger.info(f"redirect succeeded: {short_code} -> {original_url} ({ctx.get_duration():.1f}ms)")
    return RedirectResponse(url=original_url, status_code=302)
