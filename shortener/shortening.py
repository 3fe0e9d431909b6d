"""Short code allocation with bounded collision retry.

State Machine — shorten_url()
=============================
::
    ┌────────────┐     ┌────────────┐   ok   ┌────────────┐
    │ GENERATING │────►│ INSERTING  │───────►│ SUCCEEDED  │──► cache fill (best-effort)
    └────────────┘     └─────┬──────┘        └────────────┘
          ▲                  │ ConflictError / StoreError
          │            ┌─────▼──────┐  attempts == cap  ┌────────────┐
          └────────────│  RETRYING  │──────────────────►│   FAILED   │──► ShortenFailed
                       └────────────┘                   └────────────┘

Key Behaviours
===============
- Total attempts are capped at ``max_retries + 1``; collisions and store
  failures both spend an attempt, so a broken store cannot loop forever.
- Each attempt generates a fresh code.
- A store failure may be followed by a short delay; no session is held across it.
- Cache population after a successful insert never fails the request.
- Cancellation propagates from whichever await is pending; no further
  attempts are made.
"""

import asyncio
import logging

from shortener.cache import UrlCache
from shortener.codegen import CodeGenerator
from shortener.enums import ShortenState
from shortener.exceptions import CacheError, ConflictError, ShortenFailed, StoreError
from shortener.repository import UrlRepository

__all__ = ["DEFAULT_MAX_RETRIES", "ShorteningOrchestrator"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class ShorteningOrchestrator:
    """Stores a new mapping under a freshly generated, unique short code."""

    def __init__(
        self,
        repository: UrlRepository,
        cache: UrlCache,
        generator: CodeGenerator,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = 0.0,
    ):
        assert max_retries >= 0, f"max_retries must be non-negative, got {max_retries!r}"
        self._repository = repository
        self._cache = cache
        self._generator = generator
        self._max_retries = max_retries
        self._retry_delay_seconds = retry_delay_seconds

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    async def shorten_url(self, original_url: str) -> str:
        """Shorten ``original_url`` and return the new short code.

        The URL is expected to be validated already.

        Raises:
            ShortenFailed: No code could be stored within the attempt cap.
        """
        state = ShortenState.GENERATING
        attempts = 0
        short_code = ""
        last_error: StoreError | None = None

        while not state.is_terminal:
            if state is ShortenState.GENERATING:
                short_code = self._generator.generate()
                state = ShortenState.INSERTING

            elif state is ShortenState.INSERTING:
                attempts += 1
                try:
                    await self._repository.insert_mapping(short_code, original_url)
                except ConflictError as exc:
                    last_error = exc
                    logger.warning(
                        f"Short code collision on {short_code} (attempt {attempts} of {self.max_attempts})"
                    )
                    state = ShortenState.RETRYING
                except StoreError as exc:
                    last_error = exc
                    logger.error(f"Store error while shortening (attempt {attempts} of {self.max_attempts}): {exc}")
                    state = ShortenState.RETRYING
                else:
                    state = ShortenState.SUCCEEDED

            elif state is ShortenState.RETRYING:
                if attempts >= self.max_attempts:
                    state = ShortenState.FAILED
                    continue
                if not isinstance(last_error, ConflictError) and self._retry_delay_seconds > 0:
                    await asyncio.sleep(self._retry_delay_seconds)
                state = ShortenState.GENERATING

        if state is ShortenState.FAILED:
            logger.error(f"Failed to generate a unique short code after {attempts} attempts")
            raise ShortenFailed(attempts) from last_error

        await self._populate_cache(short_code, original_url)
        logger.info(f"Shortened URL as {short_code} after {attempts} attempt(s)")
        return short_code

    async def _populate_cache(self, short_code: str, original_url: str) -> None:
        try:
            await self._cache.set(short_code, original_url)
        except CacheError as exc:
            logger.warning(f"Cache population skipped for {short_code}: {exc}")
