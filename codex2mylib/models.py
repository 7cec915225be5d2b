"""In-memory book records extracted from a Codex export."""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import List, Optional, Union

__all__ = [
    "Author",
    "Book",
    "Isbn",
    "Isbn10",
    "Isbn13",
    "isbn_value",
    "preferred_isbn",
]


@dataclass(frozen=True)
class Isbn10:
    """ISBN-10 kept as source text (checksum may be ``X``)."""

    value: str

    def __str__(self) -> str:
        return f"ISBN10:{self.value}"


@dataclass(frozen=True)
class Isbn13:
    value: int

    def __str__(self) -> str:
        return f"ISBN13:{self.value}"


Isbn = Union[Isbn10, Isbn13]


@dataclass
class Author:
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""

    def __str__(self) -> str:
        return f"Author[ {self.first_name}, {self.last_name}, {self.display_name}, ]"


@dataclass
class Book:
    title: str = ""
    authors: List[Author] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    publish_date: _dt.date | None = None
    publisher: str = ""
    page_count: int = 0
    identifiers: List[Isbn] = field(default_factory=list)
    summary: str = ""
    cover_url: str = ""

    def __str__(self) -> str:
        return (
            f"Book[ #title[{_ellipsis(self.title, 30)}], "
            f"#authors[{', '.join(str(a) for a in self.authors)}], "
            f"#kind[{', '.join(self.categories)}], "
            f"{self.publish_date.isoformat() if self.publish_date else ''}, "
            f"{self.publisher}, {self.page_count}, "
            f"{', '.join(str(i) for i in self.identifiers)}, "
            f"#summary[{_ellipsis(self.summary, 30)}], #cover[{self.cover_url}] ]"
        )


def _ellipsis(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


# ---------------------------------------------------------------------------
# ISBN helpers shared by the row serializer and the cover path builder
# ---------------------------------------------------------------------------

def preferred_isbn(identifiers: List[Isbn]) -> Optional[Isbn]:
    """Return the first ISBN-13 of *identifiers*, else the first entry, else ``None``."""
    for isbn in identifiers:
        if isinstance(isbn, Isbn13):
            return isbn
    return identifiers[0] if identifiers else None


def isbn_value(isbn: Isbn | None) -> str:
    """Bare value of *isbn* without the ``ISBN10:``/``ISBN13:`` prefix."""
    if isbn is None:
        return ""
    return str(isbn.value)
