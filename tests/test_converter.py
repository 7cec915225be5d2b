"""Tests for the conversion driver."""
import io
import json
from pathlib import Path

import pytest

from codex2mylib.converter import INVALID_COVER, convert, convert_file, output_paths
from codex2mylib.hashing import book_hashcode

from conftest import COVER_URL, FakeResponse, FakeSession, books_xml

ROW_PREFIX = '"Accros du roc";"Terry Pratchett";"";"General, Science Fiction, Fiction";"10/07/2012";"Pocket";411;9782266211963;'


def _convert(data: bytes, session: FakeSession, **kwargs) -> tuple[int, list[str], str]:
    csv_sink, image_sink = io.StringIO(), io.StringIO()
    total = convert(io.BytesIO(data), csv_sink, image_sink, session, **kwargs)
    return total, csv_sink.getvalue().splitlines(), image_sink.getvalue()


def test_convert_sample(sample_xml, png_session):
    total, rows, images = _convert(sample_xml, png_session)

    assert total == 1
    assert rows == [
        ROW_PREFIX + '"";"";"";"Suzanne est une jeune étudiante discrète ...";'
        '"/MyLibrary/Images/Books/9782266211963.png"'
    ]
    assert images.endswith("\r\n")
    record = json.loads(images)
    assert record["elementHashcode"] == book_hashcode("Accros du roc", ["Terry Pratchett"])
    assert record["imageOrientation"] == 0
    assert record["type"] == "BOOK"
    assert png_session.calls == [(COVER_URL, 30)]


def test_cover_dir_option(sample_xml, png_session):
    _, rows, _ = _convert(sample_xml, png_session, cover_dir="/covers")
    assert rows[0].endswith('"/covers/9782266211963.png"')


def test_cover_not_found_keeps_row(sample_xml, caplog):
    session = FakeSession({COVER_URL: FakeResponse(404)})
    total, rows, images = _convert(sample_xml, session)

    assert total == 1
    assert rows[0].startswith(ROW_PREFIX)
    assert rows[0].endswith(f'"{INVALID_COVER}"')
    assert images == ""
    assert "Fails to resolve cover" in caplog.text


def test_cover_without_author_is_invalid():
    session = FakeSession()
    data = books_xml("<book><title>T</title><coverUrl>http://covers.example/1.jpg</coverUrl></book>")
    _, rows, images = _convert(data, session)
    assert rows == ['"T";"";"";"";"";"";0;"";"";"";"";"";"_invalid_"']
    assert images == ""
    assert session.calls == []


def test_book_without_cover_skips_fetch():
    session = FakeSession()
    data = books_xml("<book><title>T</title><authors><author><name>A</name></author></authors></book>")
    _, rows, images = _convert(data, session)
    assert rows == ['"T";"A";"";"";"";"";0;"";"";"";"";"";""']
    assert images == ""
    assert session.calls == []


def test_cover_named_after_hash_without_isbn():
    url = "http://covers.example/ally.jpg"
    session = FakeSession({url: FakeResponse(200, b"jpeg", {"Content-Type": "image/jpeg"})})
    data = books_xml(
        f"<book><title>Ally</title><authors><author><name>Karen Traviss</name></author></authors>"
        f"<coverUrl>{url}</coverUrl></book>"
    )
    _, rows, images = _convert(data, session)
    assert rows[0].endswith('"/MyLibrary/Images/Books/-1648148861.jpg"')
    assert json.loads(images)["elementHashcode"] == -1648148861


def test_one_row_per_book():
    data = books_xml(*(f"<book><title>Book {i}</title></book>" for i in range(5)))
    total, rows, _ = _convert(data, FakeSession())
    assert total == 5
    assert [r.split(";")[0] for r in rows] == [f'"Book {i}"' for i in range(5)]


def test_output_paths(tmp_path: Path):
    csv_path, images_path = output_paths("/exports/my-books.xml", tmp_path)
    assert csv_path == tmp_path / "my-books-mylib.csv"
    assert images_path == tmp_path / "my-books-mylib-images.txt"


def test_convert_file(tmp_path: Path, sample_xml, png_session):
    source = tmp_path / "codex.xml"
    source.write_bytes(sample_xml)
    out = tmp_path / "out"
    out.mkdir()

    total = convert_file(source, out, session=png_session)

    assert total == 1
    rows = (out / "codex-mylib.csv").read_text(encoding="utf-8").splitlines()
    assert rows[0].startswith(ROW_PREFIX)
    images = (out / "codex-mylib-images.txt").read_bytes()
    assert images.count(b"\r\n") == 1


def test_convert_file_missing_output_dir(tmp_path: Path, sample_xml):
    source = tmp_path / "codex.xml"
    source.write_bytes(sample_xml)
    with pytest.raises(OSError):
        convert_file(source, tmp_path / "missing", session=FakeSession())


class _BrokenSink(io.StringIO):
    def write(self, s):
        raise OSError("image sink closed")


def test_image_sink_failure_stops_conversion(png_session):
    data = books_xml(
        "<book><title>A</title><authors><author><name>X</name></author></authors>"
        f"<coverUrl>{COVER_URL.replace('&', '&amp;')}</coverUrl></book>",
        "<book><title>B</title></book>",
    )
    csv_sink = io.StringIO()
    with pytest.raises(OSError, match="image sink closed"):
        convert(io.BytesIO(data), csv_sink, _BrokenSink(), png_session)
    assert csv_sink.getvalue() == ""
