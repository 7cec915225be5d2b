"""Identity hash for books that lack an ISBN.

Mylib keys imported cover images by the Java ``String.hashCode`` of the
book title followed by the first author's name, so the value must match the
JVM bit for bit (including negative results).
"""
from __future__ import annotations

from typing import Sequence

__all__ = ["MissingAuthorError", "book_hashcode", "java_hashcode"]

JAVA_HASH_SEED = 31

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


class MissingAuthorError(ValueError):
    pass


def _to_int32(value: int) -> int:
    value &= _UINT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def java_hashcode(text: str) -> int:
    """Return ``h = 31*h + code_point`` over *text*, wrapped to a signed 32-bit int."""
    h = 0
    for ch in text:
        # masked on every step so h never leaves the 32-bit range
        h = (JAVA_HASH_SEED * h + ord(ch)) & _UINT32_MASK
    return _to_int32(h)


def book_hashcode(title: str, authors: Sequence[str]) -> int:
    """Hash *title* concatenated with the first of *authors* (display names)."""
    if not authors:
        raise MissingAuthorError("Missing author")
    return java_hashcode(f"{title}{authors[0]}")
