"""Codex to Mylib conversion driver."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, TextIO, Tuple

import requests

from .covers import CoverError, CoverResolver
from .hashing import MissingAuthorError, book_hashcode
from .models import Book, isbn_value, preferred_isbn
from .mylib import MylibWriter
from .parser import parse

__all__ = [
    "DEFAULT_COVER_DIRECTORY",
    "INVALID_COVER",
    "BookHandler",
    "convert",
    "convert_file",
    "output_paths",
]

logger = logging.getLogger(__name__)

DEFAULT_COVER_DIRECTORY = "/MyLibrary/Images/Books"

# cover column value when a declared cover could not be exported
INVALID_COVER = "_invalid_"


class BookHandler:
    """Per-book callback: export the cover (if any), then write the CSV row."""

    def __init__(
        self,
        writer: MylibWriter,
        resolver: CoverResolver,
        image_sink: TextIO,
        cover_dir: str = DEFAULT_COVER_DIRECTORY,
    ) -> None:
        self.writer = writer
        self.resolver = resolver
        self.image_sink = image_sink
        self.cover_dir = cover_dir

    def __call__(self, book: Book) -> None:
        self.writer.write(book, self.cover_path(book))

    def cover_path(self, book: Book) -> str:
        """Return the Mylib cover path for *book*.

        Empty when no cover is declared, `INVALID_COVER` when the cover
        could not be exported.
        """
        url = book.cover_url
        if not url:
            return ""

        logger.info("Cover URL: %s", url)
        try:
            hashcode = book_hashcode(book.title, [a.display_name for a in book.authors])
            ext = self.resolver.resolve(url, hashcode, self.image_sink)
        except (MissingAuthorError, CoverError) as exc:
            logger.warning("Fails to resolve cover '%s': %s", url, exc)
            return INVALID_COVER

        ident = isbn_value(preferred_isbn(book.identifiers)) or str(hashcode)
        return f"{self.cover_dir}/{ident}.{ext}"


def output_paths(input_path: Path | str, output_dir: Path | str) -> Tuple[Path, Path]:
    """Return ``(csv_path, images_path)`` named after the input file."""
    stem = Path(input_path).stem
    out = Path(output_dir)
    return out / f"{stem}-mylib.csv", out / f"{stem}-mylib-images.txt"


def convert(
    source: BinaryIO,
    csv_sink: TextIO,
    image_sink: TextIO,
    session: requests.Session,
    cover_dir: str = DEFAULT_COVER_DIRECTORY,
) -> int:
    """Convert the Codex document read from *source*.

    Returns the number of books written to *csv_sink*.
    """
    handler = BookHandler(MylibWriter(csv_sink), CoverResolver(session), image_sink, cover_dir)
    return parse(source, handler)


def convert_file(
    input_path: Path | str,
    output_dir: Path | str,
    cover_dir: str = DEFAULT_COVER_DIRECTORY,
    session: requests.Session | None = None,
) -> int:
    """Convert the Codex file *input_path* into Mylib files under *output_dir*.

    Returns the number of converted books.
    """
    csv_path, images_path = output_paths(input_path, output_dir)
    own_session = session is None
    if own_session:
        session = requests.Session()
    try:
        with open(input_path, "rb") as source, \
                open(csv_path, "w", encoding="utf-8", newline="") as csv_sink, \
                open(images_path, "w", encoding="utf-8", newline="") as image_sink:
            return convert(source, csv_sink, image_sink, session, cover_dir)
    finally:
        if own_session:
            session.close()
