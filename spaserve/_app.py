"""
This module implements the adapter between the request handler function
and the ASGI server. It is the outermost boundary for faults that occur
while handling a request.
"""

import os
import sys
import json
import asyncio
import logging
import inspect
from . import _request
from ._request import HttpRequest, DisconnectedError

# Initialize the logger
logger = logging.getLogger("spaserve")
logger.propagate = False
logger.setLevel(logging.INFO)
_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(
    logging.Formatter(
        fmt="[%(levelname)s %(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
)
logger.addHandler(_handler)

GENERIC_ERROR_MESSAGE = "Something went wrong!"

# Responses with these statuses never carry content
BODYLESS_STATUSES = (204, 304)


def normalize_response(response):
    """ Normalize the given response, by always returning a 3-element tuple
    (status, headers, body). The body is not "resolved"; it is safe
    to call this function multiple times on the same response.
    """
    if isinstance(response, tuple):
        if len(response) == 3:
            status, headers, body = response
        elif len(response) == 2:
            status = 200
            headers, body = response
        elif len(response) == 1:
            status, headers, body = 200, {}, response[0]
        else:
            raise ValueError(f"Handler returned {len(response)}-tuple.")
    else:
        status, headers, body = 200, {}, response

    if not isinstance(status, int):
        raise ValueError(f"Status code must be an int, not {type(status)}")
    if not isinstance(headers, dict):
        raise ValueError(f"Headers must be a dict, not {type(headers)}")

    return status, headers, body


def guess_content_type_from_body(body):
    """ Guess the content-type based of the body.

    * "text/html" for str bodies starting with ``<!DOCTYPE html>`` or ``<html>``.
    * "text/plain" for other str bodies.
    * "application/json" for dict bodies.
    * "application/octet-stream" otherwise.
    """
    if isinstance(body, str):
        if body.startswith(("<!DOCTYPE html>", "<!doctype html>", "<html>")):
            return "text/html"
        else:
            return "text/plain"
    elif isinstance(body, dict):
        return "application/json"
    else:
        return "application/octet-stream"


def error_body(err, expose_errors):
    """ Get the JSON body for a 500 response. The error detail is only
    included when ``expose_errors`` is set.
    """
    message = str(err) if expose_errors else GENERIC_ERROR_MESSAGE
    return {"error": "Internal Server Error", "message": message}


def to_asgi(handler, *, expose_errors=False, on_startup=None, on_shutdown=None):
    """ Convert a request handler (a coroutine function) to an ASGI
    application, which can be served with an ASGI server, such as
    Uvicorn or Hypercorn.

    * ``expose_errors``: whether 500 responses include the error message.
    * ``on_startup``, ``on_shutdown``: optional functions called (without
      arguments) on the lifespan startup and shutdown events.
    """

    if not inspect.iscoroutinefunction(handler):
        raise TypeError(
            "spaserve.to_asgi() handler function must be a coroutine function."
        )

    async def application_wrapper(scope, receive, send):
        if scope["type"] == "http":
            request = HttpRequest(scope, receive, send)
            await _handle_http(handler, request, expose_errors)
        elif scope["type"] == "lifespan":
            await _handle_lifespan(receive, send, on_startup, on_shutdown)
        else:
            logger.warning(f"Unknown ASGI type {scope['type']}")

    application_wrapper.__module__ = handler.__module__
    application_wrapper.__name__ = handler.__name__
    application_wrapper.__doc__ = handler.__doc__
    application_wrapper.spaserve_handler = handler
    return application_wrapper


async def _handle_lifespan(receive, send, on_startup, on_shutdown):
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            try:
                logger.info("Server is starting up")
                if on_startup is not None:
                    on_startup()
            except Exception as err:
                logger.error(f"Startup failed: {err}", exc_info=err)
                await send({"type": "lifespan.startup.failed", "message": str(err)})
            else:
                await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            try:
                logger.info("Server is shutting down")
                if on_shutdown is not None:
                    on_shutdown()
            except Exception as err:  # pragma: no cover
                await send({"type": "lifespan.shutdown.failed", "message": str(err)})
            else:
                await send({"type": "lifespan.shutdown.complete"})
            return
        else:
            logger.warning(f"Unknown lifespan message {message['type']}")


def install_fatal_exception_handler(loop=None):
    """ Make faults that happen outside of any request (i.e. that reach the
    event loop's exception handler) fatal: they are logged and the
    process exits with status 1. Connection errors and reports without
    an exception are only logged.
    """
    loop = loop or asyncio.get_event_loop()

    def fatal_exception_handler(loop, context):
        err = context.get("exception")
        msg = context.get("message", "Unhandled exception in event loop")
        if err is None or isinstance(err, OSError):
            logger.error(f"Error outside of request: {msg}", exc_info=err)
            return
        logger.critical(f"Fatal error outside of request: {msg}", exc_info=err)
        for h in logger.handlers:
            h.flush()
        os._exit(1)

    loop.set_exception_handler(fatal_exception_handler)
    return fatal_exception_handler


async def _handle_http(handler, request, expose_errors):

    body = None

    try:

        # Call request handler to get the result
        where = "request handler"
        result = await handler(request)

        # Process the handler output
        where = "processing handler output"
        status, headers, body = normalize_response(result)
        if "content-type" not in headers and status not in BODYLESS_STATUSES:
            headers["content-type"] = guess_content_type_from_body(body)
        if isinstance(body, bytes):
            pass
        elif isinstance(body, str):
            body = body.encode()
        elif isinstance(body, dict):
            try:
                body = json.dumps(body).encode()
            except Exception as err:
                raise ValueError(f"Could not JSON encode body: {err}")
        elif inspect.isasyncgen(body):
            pass
        else:
            if inspect.iscoroutine(body):
                body.close()
                raise ValueError("Body cannot be a coroutine, forgot await?")
            raise ValueError(f"Body cannot be {type(body)}.")

        # The response to a head request should not include a body
        if request.method == "HEAD":
            if isinstance(body, bytes):
                headers.setdefault("content-length", str(len(body)))
            else:
                await body.aclose()
            where = "sending response"
            await request.accept(status, headers)
            await request.send(b"", more=False)

        # Send response. If we do not specify the content-length, the
        # server sets Transfer-Encoding to chunked.
        elif isinstance(body, bytes):
            where = "sending response"
            headers.setdefault("content-length", str(len(body)))
            await request.accept(status, headers)
            await request.send(body, more=False)
        else:
            where = "sending chunked response"
            async for chunk in body:
                if not isinstance(chunk, (bytes, str)):
                    raise ValueError("Response chunks must be bytes or str.")
                if request._app_state == _request.CONNECTING:
                    await request.accept(status, headers)
                await request.send(chunk)
            if request._app_state == _request.CONNECTING:
                await request.accept(status, headers)

        # Mark end of data, if needed
        if request._app_state == _request.CONNECTED:
            where = "finalizing response"
            await request.send(b"", more=False)

    except DisconnectedError:
        pass  # Not really an error

    except Exception as err:
        # Process errors. We log them, and if possible send a 500
        logger.error(f"{type(err).__name__} in {where}: {str(err)}", exc_info=err)
        try:
            if request._app_state == _request.CONNECTING:
                error_bytes = json.dumps(error_body(err, expose_errors)).encode()
                headers = {
                    "content-type": "application/json",
                    "content-length": str(len(error_bytes)),
                }
                if request.method == "HEAD":
                    error_bytes = b""
                await request.accept(500, headers)
                await request.send(error_bytes, more=False)
            elif request._app_state == _request.CONNECTED:
                await request.send(b"", more=False)  # At least close it
        except DisconnectedError:
            pass

    finally:

        # Release resources held by a streamed body (e.g. an open file),
        # also when cancelled or disconnected halfway.
        if inspect.isasyncgen(body):
            await body.aclose()
