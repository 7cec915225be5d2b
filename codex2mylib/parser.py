"""Streaming extractor for Codex XML exports.

A Codex export is a single XML document holding one ``<book>`` element per
record.  Exports can be large, so the document is never materialised as a
tree: `iter_events` turns the byte stream into a flat sequence of
start/end/text events and `CodexExtractor` rebuilds each `Book` from those
events with one small state machine per region (publisher, categories,
identifiers, authors).

Each region only ever nests inside ``<book>`` and never inside another
region, so an explicit enum per region is enough; no element stack is kept.

Example:
>>> with open("codex.xml", "rb") as fh:
...     parse(fh, lambda book: print(book.title))
"""
from __future__ import annotations

import datetime as _dt
import enum
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Iterator, Union

from .models import Author, Book, Isbn10, Isbn13

__all__ = [
    "AuthorState",
    "CategoryState",
    "Characters",
    "CodexExtractor",
    "EndElement",
    "IdentifierState",
    "IdentifierType",
    "ParseFailure",
    "PublisherState",
    "StartElement",
    "classify_identifier",
    "iter_events",
    "parse",
    "parse_publish_date",
    "parse_unsigned",
]

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

# element names
BOOK = "book"
TITLE = "title"
COVER_URL = "coverUrl"
PAGE_COUNT = "pageCount"
PUBLISH_DATE = "publishDate"
DESCRIPTION = "description"
PUBLISHER = "publisher"
CATEGORIES = "categories"
CATEGORY = "category"
IDENTIFIERS = "identifiers"
IDENTIFIER = "identifier"
AUTHORS = "authors"
AUTHOR = "author"
NAME = "name"
TYPE = "type"
VALUE = "value"
FIRST_NAME = "firstName"
LAST_NAME = "lastName"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StartElement:
    name: str


@dataclass(frozen=True)
class EndElement:
    name: str


@dataclass(frozen=True)
class Characters:
    text: str


@dataclass(frozen=True)
class ParseFailure:
    error: Exception


ParseEvent = Union[StartElement, EndElement, Characters, ParseFailure]


def iter_events(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[ParseEvent]:
    """Yield parse events for the XML document read from *stream*.

    Text is reported just before the end of the element that holds it;
    whitespace-only text is skipped.  Finished elements are detached from
    their parent, so memory stays bounded by the document depth.

    Expat cannot resume after a well-formedness error: a single
    `ParseFailure` is yielded and the sequence ends there.
    """
    pull = ET.XMLPullParser(events=("start", "end"))
    open_elements: list[ET.Element] = []
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            pull.feed(chunk)
            yield from _drain(pull, open_elements)
        pull.close()
        yield from _drain(pull, open_elements)
    except ET.ParseError as exc:
        yield ParseFailure(exc)


def _drain(pull: ET.XMLPullParser, open_elements: list[ET.Element]) -> Iterator[ParseEvent]:
    for kind, elem in pull.read_events():
        if kind == "start":
            open_elements.append(elem)
            yield StartElement(elem.tag)
            continue
        open_elements.pop()
        if elem.text and not elem.text.isspace():
            yield Characters(elem.text)
        yield EndElement(elem.tag)
        if open_elements:
            open_elements[-1].remove(elem)
        elem.clear()


# ---------------------------------------------------------------------------
# Region states
# ---------------------------------------------------------------------------

class PublisherState(enum.Enum):
    OUTSIDE = 0
    IN_BLOCK = 1
    IN_NAME = 2


class CategoryState(enum.Enum):
    OUTSIDE = 0
    IN_BLOCK = 1
    IN_CATEGORY = 2


class IdentifierState(enum.Enum):
    OUTSIDE = 0
    IN_BLOCK = 1
    IN_IDENTIFIER = 2
    IN_TYPE = 3
    IN_VALUE = 4


class AuthorState(enum.Enum):
    OUTSIDE = 0
    IN_BLOCK = 1
    IN_AUTHOR = 2
    IN_FIRST_NAME = 3
    IN_LAST_NAME = 4
    IN_DISPLAY_NAME = 5


# (current state, element name) -> next state; pairs not listed leave the
# state unchanged.
_PUBLISHER_START = {
    (PublisherState.OUTSIDE, PUBLISHER): PublisherState.IN_BLOCK,
    (PublisherState.IN_BLOCK, NAME): PublisherState.IN_NAME,
}
_PUBLISHER_END = {
    (PublisherState.IN_NAME, NAME): PublisherState.IN_BLOCK,
    (PublisherState.IN_BLOCK, PUBLISHER): PublisherState.OUTSIDE,
}

_CATEGORY_START = {
    (CategoryState.OUTSIDE, CATEGORIES): CategoryState.IN_BLOCK,
    (CategoryState.IN_BLOCK, CATEGORY): CategoryState.IN_CATEGORY,
}
_CATEGORY_END = {
    (CategoryState.IN_CATEGORY, CATEGORY): CategoryState.IN_BLOCK,
    (CategoryState.IN_BLOCK, CATEGORIES): CategoryState.OUTSIDE,
}

_IDENTIFIER_START = {
    (IdentifierState.OUTSIDE, IDENTIFIERS): IdentifierState.IN_BLOCK,
    (IdentifierState.IN_BLOCK, IDENTIFIER): IdentifierState.IN_IDENTIFIER,
    (IdentifierState.IN_IDENTIFIER, TYPE): IdentifierState.IN_TYPE,
    (IdentifierState.IN_IDENTIFIER, VALUE): IdentifierState.IN_VALUE,
}
_IDENTIFIER_END = {
    (IdentifierState.IN_TYPE, TYPE): IdentifierState.IN_IDENTIFIER,
    (IdentifierState.IN_VALUE, VALUE): IdentifierState.IN_IDENTIFIER,
    (IdentifierState.IN_IDENTIFIER, IDENTIFIER): IdentifierState.IN_BLOCK,
    (IdentifierState.IN_BLOCK, IDENTIFIERS): IdentifierState.OUTSIDE,
}

_AUTHOR_START = {
    (AuthorState.OUTSIDE, AUTHORS): AuthorState.IN_BLOCK,
    (AuthorState.IN_BLOCK, AUTHOR): AuthorState.IN_AUTHOR,
    (AuthorState.IN_AUTHOR, FIRST_NAME): AuthorState.IN_FIRST_NAME,
    (AuthorState.IN_AUTHOR, LAST_NAME): AuthorState.IN_LAST_NAME,
    (AuthorState.IN_AUTHOR, NAME): AuthorState.IN_DISPLAY_NAME,
}
_AUTHOR_END = {
    (AuthorState.IN_FIRST_NAME, FIRST_NAME): AuthorState.IN_AUTHOR,
    (AuthorState.IN_LAST_NAME, LAST_NAME): AuthorState.IN_AUTHOR,
    (AuthorState.IN_DISPLAY_NAME, NAME): AuthorState.IN_AUTHOR,
    (AuthorState.IN_AUTHOR, AUTHOR): AuthorState.IN_BLOCK,
    (AuthorState.IN_BLOCK, AUTHORS): AuthorState.OUTSIDE,
}

# simple leaf elements directly under <book>, mapped to their _ParseState flag
_FLAG_ELEMENTS = {
    TITLE: "in_title",
    COVER_URL: "in_cover_url",
    PAGE_COUNT: "in_page_count",
    PUBLISH_DATE: "in_publish_date",
    DESCRIPTION: "in_description",
}


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------

class IdentifierType(enum.Enum):
    ISBN_10 = "ISBN_10"
    ISBN_13 = "ISBN_13"
    GOOGLE_ID = "GOOGLE_ID"
    UNKNOWN = "UNKNOWN"


def classify_identifier(label: str) -> IdentifierType:
    """Classify the text of an ``<identifier><type>`` element (exact match)."""
    try:
        kind = IdentifierType(label)
    except ValueError:
        kind = IdentifierType.UNKNOWN
    if kind is IdentifierType.GOOGLE_ID:
        logger.info("Ignore Google identifier")
    elif kind is IdentifierType.UNKNOWN:
        logger.warning("Invalid ISBN type: %s", label)
    return kind


_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_DATE_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


def parse_unsigned(text: str, bits: int) -> int:
    """Parse *text* as an unsigned integer that fits in *bits* bits."""
    if not _UNSIGNED_RE.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    if value >= 1 << bits:
        raise ValueError("number too large to fit in target type")
    return value


def parse_publish_date(text: str) -> _dt.date:
    """Parse a ``YYYY-MM-DD`` date; anything else raises `ValueError`."""
    m = _DATE_RE.fullmatch(text)
    if m is None:
        raise ValueError("expected YYYY-MM-DD")
    year, month, day = map(int, m.groups())
    return _dt.date(year, month, day)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

@dataclass
class _ParseState:
    """Everything accumulated for the book currently open."""

    in_book: bool = False
    in_title: bool = False
    in_cover_url: bool = False
    in_page_count: bool = False
    in_publish_date: bool = False
    in_description: bool = False
    publisher: PublisherState = PublisherState.OUTSIDE
    categories: CategoryState = CategoryState.OUTSIDE
    identifiers: IdentifierState = IdentifierState.OUTSIDE
    authors: AuthorState = AuthorState.OUTSIDE
    declared_type: IdentifierType | None = None
    book: Book = field(default_factory=Book)
    author: Author = field(default_factory=Author)


class CodexExtractor:
    """Rebuild `Book` records from parse events.

    *on_book* is called once per closing ``<book>`` element, in document
    order, after which the whole accumulator is replaced by a fresh one.
    """

    def __init__(self, on_book: Callable[[Book], None]) -> None:
        self.on_book = on_book
        self.count = 0
        self._state = _ParseState()

    def feed(self, event: ParseEvent) -> None:
        if isinstance(event, StartElement):
            self._on_start(event.name)
        elif isinstance(event, EndElement):
            self._on_end(event.name)
        elif isinstance(event, Characters):
            self._on_text(event.text)
        else:
            logger.warning("Error = %s", event.error)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_start(self, name: str) -> None:
        s = self._state
        if name == BOOK:
            s.in_book = True
            return
        if not s.in_book:
            return
        if name in _FLAG_ELEMENTS:
            setattr(s, _FLAG_ELEMENTS[name], True)

        s.publisher = _PUBLISHER_START.get((s.publisher, name), s.publisher)
        s.categories = _CATEGORY_START.get((s.categories, name), s.categories)

        previous = s.identifiers
        s.identifiers = _IDENTIFIER_START.get((previous, name), previous)
        if previous is IdentifierState.IN_BLOCK and s.identifiers is IdentifierState.IN_IDENTIFIER:
            s.declared_type = None

        previous = s.authors
        s.authors = _AUTHOR_START.get((previous, name), previous)
        if previous is AuthorState.IN_BLOCK and s.authors is AuthorState.IN_AUTHOR:
            s.author = Author()

    def _on_end(self, name: str) -> None:
        s = self._state
        if name == BOOK:
            if s.in_book:
                self._emit()
            return
        if not s.in_book:
            return
        if name in _FLAG_ELEMENTS:
            setattr(s, _FLAG_ELEMENTS[name], False)

        s.publisher = _PUBLISHER_END.get((s.publisher, name), s.publisher)
        s.categories = _CATEGORY_END.get((s.categories, name), s.categories)
        s.identifiers = _IDENTIFIER_END.get((s.identifiers, name), s.identifiers)

        previous = s.authors
        s.authors = _AUTHOR_END.get((previous, name), previous)
        if previous is AuthorState.IN_AUTHOR and s.authors is AuthorState.IN_BLOCK:
            # one Author per <author>, every declared author is kept
            s.book.authors.append(s.author)
            s.author = Author()

    def _on_text(self, text: str) -> None:
        s = self._state
        book = s.book
        if s.in_title:
            book.title = text
        elif s.in_cover_url:
            book.cover_url = text
        elif s.publisher is PublisherState.IN_NAME:
            book.publisher = text
        elif s.categories is CategoryState.IN_CATEGORY:
            book.categories.append(text)
        elif s.authors is AuthorState.IN_FIRST_NAME:
            s.author.first_name = text
        elif s.authors is AuthorState.IN_LAST_NAME:
            s.author.last_name = text
        elif s.authors is AuthorState.IN_DISPLAY_NAME:
            s.author.display_name = text
        elif s.identifiers is IdentifierState.IN_TYPE:
            s.declared_type = classify_identifier(text)
        elif s.identifiers is IdentifierState.IN_VALUE:
            self._add_identifier(text)
        elif s.in_publish_date:
            try:
                book.publish_date = parse_publish_date(text)
            except ValueError as exc:
                logger.warning("Invalid publication date '%s': %s", text, exc)
        elif s.in_description:
            book.summary = text
        elif s.in_page_count:
            try:
                book.page_count = parse_unsigned(text, 16)
            except ValueError as exc:
                logger.warning("Invalid pageCount '%s': %s", text, exc)

    def _add_identifier(self, text: str) -> None:
        s = self._state
        if s.declared_type is IdentifierType.ISBN_10:
            s.book.identifiers.append(Isbn10(text))
        elif s.declared_type is IdentifierType.ISBN_13:
            try:
                s.book.identifiers.append(Isbn13(parse_unsigned(text, 64)))
            except ValueError as exc:
                logger.warning("Invalid ISBN13 '%s': %s", text, exc)

    def _emit(self) -> None:
        book = self._state.book
        self.count += 1
        logger.debug("%s", book)
        try:
            self.on_book(book)
        finally:
            self._state = _ParseState()


def parse(
    stream: BinaryIO,
    on_book: Callable[[Book], None],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Call *on_book* for every book of the Codex document in *stream*.

    Returns the number of books extracted.
    """
    extractor = CodexExtractor(on_book)
    for event in iter_events(stream, chunk_size):
        extractor.feed(event)
    return extractor.count
