"""
Some utilities for serving files from disk.
"""

import os
import asyncio
import mimetypes
from email.utils import formatdate, parsedate_to_datetime

from ._app import normalize_response, guess_content_type_from_body

__all__ = [
    "normalize_response",
    "guess_content_type_from_body",
    "guess_content_type",
    "make_etag",
    "is_not_modified",
    "iter_file",
    "file_response",
]

CHUNK_SIZE = 64 * 1024


def guess_content_type(path):
    """ Get the content-type for a file name, based on its extension.
    Falls back to "application/octet-stream".
    """
    ctype, _ = mimetypes.guess_type(path)
    return ctype or "application/octet-stream"


def make_etag(st):
    """ Create a weak etag from a stat result, based on size and mtime.
    """
    return f'W/"{st.st_size:x}-{int(st.st_mtime * 1000):x}"'


def is_not_modified(request_headers, etag, mtime):
    """ Get whether the client's cached copy is still fresh, based on
    the ``if-none-match`` and ``if-modified-since`` request headers.
    The former takes precedence when both are given.
    """
    if_none_match = request_headers.get("if-none-match")
    if if_none_match is not None:
        if if_none_match.strip() == "*":
            return True
        tags = [tag.strip() for tag in if_none_match.split(",")]
        return _opaque_tag(etag) in [_opaque_tag(tag) for tag in tags]

    if_modified_since = request_headers.get("if-modified-since")
    if if_modified_since:
        try:
            since = parsedate_to_datetime(if_modified_since).timestamp()
        except (TypeError, ValueError, IndexError):
            return False
        return int(mtime) <= since

    return False


def _opaque_tag(tag):
    # Weak comparison ignores the weakness indicator
    return tag[2:] if tag.startswith("W/") else tag


async def iter_file(path, chunk_size=CHUNK_SIZE):
    """ Async generator that yields the contents of a file in chunks. The
    file is opened on first iteration and closed when the generator ends
    or is closed. Reads happen in an executor to not block the event loop.
    """
    loop = asyncio.get_event_loop()
    with open(path, "rb") as f:
        while True:
            chunk = await loop.run_in_executor(None, f.read, chunk_size)
            if not chunk:
                break
            yield chunk


def file_response(request, path, headers=None, cache_control="no-cache"):
    """ Get a (status, headers, body) response for the file at the given
    path. Sets the content-type, content-length, etag, last-modified and
    cache-control headers, and responds with 304 for conditional
    requests that match. The body is an async generator streaming the
    file, or empty bytes for HEAD and 304 responses.

    Raises ``OSError`` if the file cannot be stat'ed.
    """
    st = os.stat(path)
    etag = make_etag(st)

    headers = dict(headers or {})
    headers["cache-control"] = cache_control
    headers["etag"] = etag
    headers["last-modified"] = formatdate(st.st_mtime, usegmt=True)
    headers["content-type"] = guess_content_type(path)

    # If client already has the exact file, send confirmation now
    if is_not_modified(request.headers, etag, st.st_mtime):
        return 304, headers, b""

    headers["content-length"] = str(st.st_size)

    # The response to a head request should not include a body
    if request.method == "HEAD":
        return 200, headers, b""

    return 200, headers, iter_file(path)
