"""Pydantic schemas for request/response validation in the URL shortener.

Schema Hierarchy
=================
::
    URLCreate (Input)
    └─ url: str (validated absolute URL)

    ShortenResponse (Output)
    ├─ short_code: str
    └─ short_url: str (computed)

    ShortenedUrlResponse (Output)
    ├─ short_code: str
    ├─ original_url: str
    └─ created_at: datetime

    HealthResponse (Output)
    ├─ status: HealthStatus
    ├─ database: HealthStatus
    └─ cache: HealthStatus

Key Behaviours
===============
- URL validation uses the validators library; the core never re-validates.
- All datetime fields are timezone-aware.
- ShortenedUrlResponse reads ORM attributes directly.
"""

import datetime

import validators
from pydantic import BaseModel, field_validator

from shortener.enums import HealthStatus

__all__ = [
    "HealthResponse",
    "ShortenResponse",
    "ShortenedUrlResponse",
    "URLCreate",
]


class URLCreate(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not validators.url(v):
            raise ValueError("Invalid URL provided")
        return v


class ShortenResponse(BaseModel):
    short_code: str
    short_url: str


class ShortenedUrlResponse(BaseModel):
    short_code: str
    original_url: str
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
