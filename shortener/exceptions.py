"""Exception hierarchy for the URL shortener core.

An unknown short code is not an error: lookups return ``None`` for it.
"""

__all__ = [
    "CacheError",
    "ConflictError",
    "ShortenFailed",
    "ShortenerError",
    "StoreError",
]


class ShortenerError(Exception):
    """Base class for all URL shortener errors."""

    error_code = "shortener:error"


class StoreError(ShortenerError):
    """Raised when the relational store fails.

    Examples include connection issues, timeouts and constraint violations
    other than a short code collision.
    """

    error_code = "store:store_error"


class ConflictError(StoreError):
    """Raised when a short code is already taken."""

    error_code = "store:short_code_conflict"

    def __init__(self, short_code: str):
        super().__init__(f"Short code '{short_code}' is already taken")
        self.short_code = short_code


class CacheError(ShortenerError):
    """Raised when the distributed cache cannot be reached or returns an error."""

    error_code = "cache:cache_error"


class ShortenFailed(ShortenerError):
    """Raised when no short code could be stored within the attempt budget."""

    error_code = "shortener:shorten_failed"

    def __init__(self, attempts: int):
        super().__init__(f"Failed to generate a unique short code after {attempts} attempts")
        self.attempts = attempts
