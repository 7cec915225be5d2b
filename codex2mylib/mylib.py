"""Mylib CSV serialisation.

Mylib imports a ``;`` separated table with thirteen fixed columns::

    title;authors;series;categories;publish date;publisher;pages;isbn;
    read;period;comment;summary;cover

Columns Mylib tracks per reader (series, read, period, comment) are left
empty.  A cell is written unquoted when its text reads as a number
(``411``, ``2266211960``, ``1984``), quoted otherwise.
"""
from __future__ import annotations

import csv
import re
from typing import List, TextIO, Union

from .models import Book, Isbn13, isbn_value, preferred_isbn

__all__ = ["DATE_FORMAT", "MylibWriter", "book_row", "looks_numeric"]

DATE_FORMAT = "%d/%m/%Y"

Cell = Union[str, int]

_NUMBER_RE = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[+-]?(?:inf|infinity|nan)",
    re.IGNORECASE,
)


def looks_numeric(text: str) -> bool:
    """True when *text* is an integer or float literal."""
    return _NUMBER_RE.fullmatch(text) is not None


class _NumericText(float):
    """Numeric cell that keeps its source text (leading zeros included).

    ``csv.QUOTE_NONNUMERIC`` leaves numbers unquoted and writes ``str(cell)``.
    """

    def __new__(cls, text: str) -> "_NumericText":
        obj = super().__new__(cls, text)
        obj.text = text
        return obj

    def __str__(self) -> str:
        return self.text

    __repr__ = __str__


def _cell(value: Cell) -> object:
    if isinstance(value, str) and looks_numeric(value):
        return _NumericText(value)
    return value


def book_row(book: Book, cover_path: str) -> List[Cell]:
    """Map *book* and its resolved *cover_path* to a Mylib row."""
    isbn = preferred_isbn(book.identifiers)
    isbn_cell: Cell = isbn.value if isinstance(isbn, Isbn13) else isbn_value(isbn)
    return [
        book.title,
        ", ".join(a.display_name for a in book.authors),
        "",  # series
        ", ".join(book.categories),
        book.publish_date.strftime(DATE_FORMAT) if book.publish_date else "",
        book.publisher,
        book.page_count,
        isbn_cell,
        "",  # read
        "",  # period
        "",  # comment
        book.summary,
        cover_path,
    ]


class MylibWriter:
    """Write Mylib rows to *stream*, flushing after every row.

    *stream* should be opened with ``newline=""`` as usual for `csv`.
    Write errors are not caught.
    """

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._writer = csv.writer(
            stream,
            delimiter=";",
            quoting=csv.QUOTE_NONNUMERIC,
            lineterminator="\n",
        )

    def write(self, book: Book, cover_path: str) -> None:
        self._writer.writerow([_cell(v) for v in book_row(book, cover_path)])
        self.stream.flush()
