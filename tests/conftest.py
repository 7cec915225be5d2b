"""Pytest configuration for codex2mylib tests."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from requests.structures import CaseInsensitiveDict

# Ensure project root is importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

COVER_URL = (
    "http://bks0.books.google.fr/books?id=fwIHPwAACAAJ&printsec=frontcover"
    "&img=1&zoom=1&source=gbs_api"
)

SAMPLE_XML = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?><books version="2" itemsCount="1">
  <book>
    <title>Accros du roc</title>
    <authors>
      <author>
        <firstName>Terry</firstName>
        <lastName>Pratchett</lastName>
        <name>Terry Pratchett</name>
      </author>
    </authors>
    <publisher>
      <name>Pocket</name>
    </publisher>
    <identifiers>
      <identifier>
        <type>ISBN_13</type>
        <value>9782266211963</value>
      </identifier>
      <identifier>
        <type>ISBN_10</type>
        <value>226621196X</value>
      </identifier>
      <identifier>
        <type>GOOGLE_ID</type>
        <value>4iuTtwAACAAJ</value>
      </identifier>
    </identifiers>
    <publishDate>2012-07-10</publishDate>
    <description>Suzanne est une jeune étudiante discrète ...</description>
    <language>français</language>
    <pageCount>411</pageCount>
    <coverUrl>http://bks0.books.google.fr/books?id=fwIHPwAACAAJ&amp;printsec=frontcover&amp;img=1&amp;zoom=1&amp;source=gbs_api</coverUrl>
    <categories>
      <category>
        <name>General</name>
      </category>
      <category>
        <name>Science Fiction</name>
      </category>
      <category>
        <name>Fiction</name>
      </category>
    </categories>
  </book>
</books>"""


def books_xml(*books: str) -> bytes:
    """Wrap *books* (``<book>`` fragments) into a Codex document."""
    return ("<?xml version='1.0' encoding='UTF-8'?><books>" + "".join(books) + "</books>").encode()


class FakeResponse:
    """Stand-in for `requests.Response` serving *body* in small chunks."""

    def __init__(self, status_code: int = 200, body: bytes = b"", headers: dict | None = None):
        self.status_code = status_code
        self.body = body
        self.headers = CaseInsensitiveDict(headers or {})
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        # uneven chunks so the encoder has to carry partial groups
        for i in range(0, len(self.body), 5):
            yield self.body[i : i + 5]

    def close(self):
        self.closed = True


class FakeSession:
    """Map URLs to a `FakeResponse` or an exception to raise."""

    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, float | None]] = []

    def get(self, url, timeout=None, stream=False):
        self.calls.append((url, timeout))
        result = self.responses[url]
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        pass


@pytest.fixture()
def sample_xml() -> bytes:
    return SAMPLE_XML.encode("utf-8")


@pytest.fixture()
def png_session() -> FakeSession:
    return FakeSession(
        {COVER_URL: FakeResponse(200, b"\x89PNG fake cover", {"Content-Type": "image/png"})}
    )
