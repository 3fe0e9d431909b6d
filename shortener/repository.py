"""Persistence gateway over the relational store.

Every operation opens its own session from the session factory and releases it
on every exit path, so no connection is held between retries.

Error Translation
=================
::
    IntegrityError (SQLSTATE 23505)  ──►  ConflictError
    any other SQLAlchemyError        ──►  StoreError
    OSError / TimeoutError           ──►  StoreError

Key Behaviours
===============
- ``lookup_url`` returns ``None`` for an unknown code; absence is not an error.
- ``list_all`` is unbounded and ordered newest first.
- Only ``ConflictError`` signals a taken short code; callers rely on it to retry.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortener.exceptions import ConflictError, StoreError
from shortener.models import ShortenedUrl, UrlVisit

__all__ = ["UNIQUE_VIOLATION", "UrlRepository"]

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

_STORE_FAILURES = (SQLAlchemyError, OSError, TimeoutError)


def _is_unique_violation(exc: IntegrityError) -> bool:
    # asyncpg and psycopg both expose the SQLSTATE on the wrapped DBAPI error.
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return sqlstate == UNIQUE_VIOLATION


class UrlRepository:
    """Reads and writes short code mappings and visits."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _open_session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except _STORE_FAILURES as exc:
            raise StoreError(f"{operation} failed: {exc}") from exc

    async def insert_mapping(self, short_code: str, original_url: str) -> str:
        """Insert a new mapping and return its short code.

        Raises:
            ConflictError: The short code already exists.
            StoreError: Any other store failure.
        """
        async with self._open_session("insert_mapping") as session:
            session.add(ShortenedUrl(short_code=short_code, original_url=original_url))
            try:
                await session.commit()
            except IntegrityError as exc:
                if _is_unique_violation(exc):
                    with suppress(SQLAlchemyError):
                        await session.rollback()
                    logger.debug(f"Short code collision on insert: {short_code}")
                    raise ConflictError(short_code) from exc
                await session.rollback()
                raise
        return short_code

    async def lookup_url(self, short_code: str) -> str | None:
        async with self._open_session("lookup_url") as session:
            return await session.scalar(
                select(ShortenedUrl.original_url).where(ShortenedUrl.short_code == short_code)
            )

    async def insert_visit(
        self,
        short_code: str,
        user_agent: str | None = None,
        referer: str | None = None,
    ) -> None:
        async with self._open_session("insert_visit") as session:
            session.add(UrlVisit(short_code=short_code, user_agent=user_agent, referer=referer))
            await session.commit()

    async def list_all(self) -> list[ShortenedUrl]:
        async with self._open_session("list_all") as session:
            result = await session.scalars(
                select(ShortenedUrl).order_by(ShortenedUrl.created_at.desc(), ShortenedUrl.id.desc())
            )
            return list(result.all())

    async def ping(self) -> None:
        async with self._open_session("ping") as session:
            await session.execute(text("SELECT 1"))
