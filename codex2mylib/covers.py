"""Fetch remote cover images and export them as Mylib image records.

Mylib cannot follow remote URLs, so each cover is downloaded once, base64
encoded and written as one JSON line of the image side file::

    {"base64Image":"...","elementHashcode":-1648148861,"imageOrientation":0,"type":"BOOK"}

The line is CRLF terminated, as Mylib expects.
"""
from __future__ import annotations

import base64
import io
import json
import logging
from typing import Iterable, TextIO

import requests

__all__ = ["CoverError", "CoverResolver", "HTTP_TIMEOUT", "cover_extension"]

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 30  # seconds

DEFAULT_COVER_CONTENT_TYPE = "image/jpeg"

_CHUNK_SIZE = 3 * 1024  # multiple of 3 so chunks encode without padding


class CoverError(RuntimeError):
    pass


def cover_extension(content_type: str) -> str:
    return "png" if content_type == "image/png" else "jpg"


def _encode_base64(chunks: Iterable[bytes]) -> str:
    """Base64-encode a byte stream chunk by chunk."""
    out = io.StringIO()
    pending = b""
    for chunk in chunks:
        pending += chunk
        cut = len(pending) - len(pending) % 3
        if cut:
            out.write(base64.b64encode(pending[:cut]).decode("ascii"))
            pending = pending[cut:]
    if pending:
        out.write(base64.b64encode(pending).decode("ascii"))
    return out.getvalue()


class CoverResolver:
    """Download covers through *session* and append them to an image sink."""

    def __init__(self, session: requests.Session, timeout: float = HTTP_TIMEOUT) -> None:
        self.session = session
        self.timeout = timeout

    def resolve(self, url: str, hashcode: int, sink: TextIO) -> str:
        """Export the cover at *url* to *sink* and return its file extension.

        Raises `CoverError` when the cover cannot be fetched or is empty;
        nothing is written to *sink* in that case.
        """
        try:
            resp = self.session.get(url, timeout=self.timeout, stream=True)
        except requests.RequestException as exc:
            raise CoverError(f"Fails to get cover '{url}': {exc}") from exc

        try:
            if not 200 <= resp.status_code < 300:
                raise CoverError(f"Fails to get cover: {url} (HTTP {resp.status_code})")
            try:
                encoded = _encode_base64(resp.iter_content(chunk_size=_CHUNK_SIZE))
            except requests.RequestException as exc:
                raise CoverError(f"Fails to read cover '{url}': {exc}") from exc
            content_type = resp.headers.get("Content-Type")
        finally:
            resp.close()

        if not encoded:
            raise CoverError(f"Missing cover data: {url}")

        if content_type is None:
            logger.warning("Fails to determine type for cover '%s': no Content-Type", url)
            content_type = DEFAULT_COVER_CONTENT_TYPE

        record = {
            "base64Image": encoded,
            "elementHashcode": hashcode,
            "imageOrientation": 0,
            "type": "BOOK",
        }
        sink.write(json.dumps(record, separators=(",", ":")) + "\r\n")
        return cover_extension(content_type)
