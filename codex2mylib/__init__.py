"""codex2mylib - convert Codex XML book exports into Mylib import files.

This package provides:
    • parse – streaming extraction of Book records from Codex XML.
    • CoverResolver – download covers into Mylib base64 image records.
    • MylibWriter – the ``;`` separated Mylib CSV rows.
    • convert_file – the whole conversion, also exposed as a Click CLI.

Extraction, cover export and serialisation are separate modules so each
can be tested without network or files.
"""

__all__ = [
    "Book",
    "CoverResolver",
    "MylibWriter",
    "convert_file",
    "parse",
]

from .converter import convert_file  # noqa: E402
from .covers import CoverResolver  # noqa: E402
from .models import Book  # noqa: E402
from .mylib import MylibWriter  # noqa: E402
from .parser import parse  # noqa: E402
