"""
This module implements the request dispatcher: the handler that answers
the fixed routes (health, status, favicon), and maps the outcome of the
path resolver to an HTTP response for all other requests.
"""

import os
import time
import logging
from datetime import datetime, timezone

from ._resolver import (
    LocalFileSystem,
    FileSystemError,
    ServeFile,
    ServeFallback,
    NotFound,
    ResolveError,
    resolve,
)
from ._app import GENERIC_ERROR_MESSAGE
from .utils import file_response


logger = logging.getLogger("spaserve")

SECURITY_HEADERS = {
    "x-content-type-options": "nosniff",
    "x-frame-options": "DENY",
    "x-xss-protection": "1; mode=block",
}

READ_METHODS = "GET", "HEAD"

# Set on import, which is close enough to process start
START_TIME = time.monotonic()


def utc_timestamp():
    """ The current time as an ISO 8601 string in UTC.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def make_spa_handler(config, fs=None):
    """
    Get a coroutine function that serves the directory of a single-page
    application, as specified by the given ``ServerConfig``. Usage:

    .. code-block:: python

        config = ServerConfig.from_env()
        app = spaserve.to_asgi(make_spa_handler(config))

    Handler behavior:

    * ``GET /health`` and ``GET /api/status`` return a JSON status record,
      without touching the filesystem.
    * ``GET /favicon.ico`` returns the icon if present, else a 204.
    * Methods other than GET and HEAD get a 405.
    * ``/`` serves the fallback document.
    * Paths ending with ``.html`` serve that document, or 404.
    * Other paths serve the matching file, or the fallback document, or 404.
    * Files are served with etag / last-modified headers, and 304 for
      matching conditional requests.

    The ``fs`` argument is the filesystem query capability used by the
    resolver (default ``LocalFileSystem()``).
    """
    from . import __version__

    if fs is None:
        fs = LocalFileSystem()

    favicon_path = os.path.join(config.root, "favicon.ico")
    fallback_path = os.path.join(config.root, config.fallback)

    async def health(request):
        return (
            200,
            {"cache-control": "no-store"},
            {
                "status": "healthy",
                "timestamp": utc_timestamp(),
                "uptimeSeconds": round(time.monotonic() - START_TIME, 3),
                "version": __version__,
                "environment": config.environment,
                "port": config.port,
            },
        )

    async def api_status(request):
        return (
            200,
            {"cache-control": "no-store"},
            {
                "message": "SPA server is running",
                "timestamp": utc_timestamp(),
                "environment": config.environment,
                "version": __version__,
                "status": "online",
            },
        )

    async def favicon(request):
        try:
            present = fs.is_regular_file(favicon_path)
        except FileSystemError as err:
            logger.warning(f"Cannot check favicon: {err}")
            present = False
        if not present:
            return 204, {}, b""
        return file_response(request, favicon_path, cache_control=config.cache_control)

    fixed_routes = {
        "/health": health,
        "/api/status": api_status,
        "/favicon.ico": favicon,
    }

    def error_message(detail):
        return GENERIC_ERROR_MESSAGE if config.is_production else detail

    async def spa_handler(request):
        method, path = request.method, request.path

        if method in READ_METHODS and path in fixed_routes:
            return await fixed_routes[path](request)

        headers = dict(SECURITY_HEADERS)

        if method not in READ_METHODS:
            headers["allow"] = ", ".join(READ_METHODS)
            return 405, headers, {"error": "Method not allowed"}

        outcome = resolve(
            path, config.root, config.fallback, fs, serve_dotfiles=config.serve_dotfiles
        )

        if isinstance(outcome, (ServeFile, ServeFallback)):
            # The entry document is always revalidated
            if outcome.path == fallback_path:
                cache_control = "no-cache"
            else:
                cache_control = config.cache_control
            return file_response(request, outcome.path, headers, cache_control)
        elif isinstance(outcome, NotFound):
            if outcome.rejected:
                logger.warning(outcome.detail)
            else:
                logger.debug(outcome.detail)
            if path.endswith(".html"):
                return 404, headers, {"error": "Page not found"}
            return 404, headers, {"error": "File not found"}
        elif isinstance(outcome, ResolveError):
            logger.error(f"Cannot resolve {path!r}: {outcome.detail}")
            body = {
                "error": "Internal Server Error",
                "message": error_message(outcome.detail),
            }
            return 500, headers, body
        else:  # pragma: no cover
            raise RuntimeError(f"Unexpected resolution outcome {outcome!r}")

    return spa_handler
