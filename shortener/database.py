"""Database engine and session management for the URL shortener.

This module provides the SQLAlchemy async engine, the session factory used by
the persistence gateway, and the optional schema bootstrap run on startup.

Flow Diagram — Session per Operation
====================================
::
    ┌─────────────┐
    │ Repository  │
    │ operation   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ async_session│
    │ () opened    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Execute /   │
    │ commit      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (async with) │
    └─────────────┘

How to Use
===========
**Step 1 — Provision tables on startup (local runs only)**::
    await init_db()

**Step 2 — Open a session per operation**::
    async with async_session() as session:
        await session.execute(text("SELECT 1"))

**Step 3 — Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- Sessions never outlive the operation that opened them.
- Connection pooling is configured for production workloads.
- ``pool_pre_ping`` discards dead connections transparently.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    init_db():  Creates all tables and indexes if missing.
    close_db():  Disposes the engine on shutdown.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import get_settings

__all__ = ["Base", "async_session", "engine", "init_db", "close_db"]

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    # Models must be imported so their tables are registered on Base.metadata.
    import shortener.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
