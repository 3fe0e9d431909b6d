"""Shared enums for the URL shortener.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["CacheStatus", "HealthStatus", "ShortenState"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ShortenState(StrEnum):
    """States of the short code allocation loop."""

    GENERATING = "generating"
    INSERTING = "inserting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ShortenState.SUCCEEDED, ShortenState.FAILED)


class CacheStatus(StrEnum):
    """Outcome of a cache lookup, used in log records."""

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"
