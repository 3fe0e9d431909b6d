"""Random short code generation.

Codes are drawn symbol by symbol, independently and uniformly, from a 62-symbol
alphabet. With the default length of 7 there are 62**7 (about 3.5e12) codes.
Uniqueness is enforced by the store, not here.
"""

from typing import Protocol

from nanoid import generate

__all__ = ["ALPHABET", "CodeGenerator", "RandomCodeGenerator"]

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
DEFAULT_CODE_LENGTH = 7


class CodeGenerator(Protocol):
    def generate(self) -> str: ...


class RandomCodeGenerator:
    """Generates fixed-length codes from the OS entropy source via nanoid."""

    def __init__(self, length: int = DEFAULT_CODE_LENGTH, alphabet: str = ALPHABET):
        assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
        assert alphabet, "alphabet must not be empty"
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return generate(self.alphabet, self.length)
