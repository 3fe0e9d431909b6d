"""SQLAlchemy ORM models for the URL shortener.

Data Model Layout
=================
::
    shortened_urls table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(10) UNIQUE NOT NULL, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

    url_visits table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(10) NOT NULL, FK -> shortened_urls.short_code, INDEXED)
    ├─ visited_at (TIMESTAMPTZ, DEFAULT NOW())
    ├─ user_agent (TEXT NULL)
    └─ referer (TEXT NULL)

Key Behaviours
===============
- short_code uniqueness is enforced by the database, not by the application.
- created_at and visited_at are assigned by PostgreSQL.
- Rows are append-only: mappings are never updated or deleted.

Classes:
    ShortenedUrl:  A short code to original URL mapping.
    UrlVisit:  One successful redirect through a short code.
"""

import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.database import Base

__all__ = ["SHORT_CODE_COLUMN_LENGTH", "ShortenedUrl", "UrlVisit"]

SHORT_CODE_COLUMN_LENGTH = 10


class ShortenedUrl(Base):
    __tablename__ = "shortened_urls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(
        String(SHORT_CODE_COLUMN_LENGTH), unique=True, index=True, nullable=False
    )
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ShortenedUrl(id={self.id}, short_code='{self.short_code}')>"


class UrlVisit(Base):
    __tablename__ = "url_visits"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(
        String(SHORT_CODE_COLUMN_LENGTH),
        ForeignKey("shortened_urls.short_code"),
        index=True,
        nullable=False,
    )
    visited_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    referer: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<UrlVisit(id={self.id}, short_code='{self.short_code}')>"
