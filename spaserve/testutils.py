"""
Spaserve test utilities.
"""

import sys
import time
import asyncio
from collections import namedtuple
from wsgiref.handlers import format_date_time
from urllib.parse import unquote, urlparse

import requests

import spaserve


Response = namedtuple("Response", ["status", "headers", "body"])

URL = "http://127.0.0.1:3000"


class MockTestServer:
    """ Object representing a mocked ASGI server that operates in-process.
    It is fast and allows tracking test coverage, so it's suited for unit
    tests.

    The ``app`` object passed to the constructor can be an ASGI application
    or an async handler.

    The server can be started/stopped by using it as a context manager.
    When the server has stopped, the ``out`` attribute contains the server
    output (stdout and stderr).

    Requests *must* be done via the methods of this object. The used url
    can be anything.
    """

    def __init__(self, app):
        self._app = app
        self._loop = None
        self._out = ""
        self._out_writes = []
        # Get stdout funcs because we hijack them
        self._stdout_write = sys.stdout.write
        self._stdout_flush = sys.stdout.flush

        if app.__code__.co_argcount == 3:
            self._asgi_app = app
        else:
            self._asgi_app = spaserve.to_asgi(app)

    @property
    def app(self):
        """ The application object that was given at instantiation.
        """
        return self._app

    @property
    def url(self):
        """ The url at which the server pretends to listen.
        """
        return URL

    @property
    def out(self):
        """ The stdout / stderr of the server. This gets set when the
        with-statement using this object exits.
        """
        return self._out

    def __enter__(self):
        self._out = ""
        self._loop = asyncio.new_event_loop()
        self._start_server()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            out = self._stop_server()
        finally:
            self._loop.close()
            self._loop = None
        self._out = "\n".join(self.filter_lines(out.splitlines()))
        if exc_value is not None:
            self.log("Server output:")
            self.log(self.out)

    def get(self, path, data=None, headers=None, **kwargs):
        """ Send a GET request to the server. See request() for detais.
        """
        return self.request("GET", path, data=data, headers=headers, **kwargs)

    def head(self, path, headers=None, **kwargs):
        """ Send a HEAD request to the server. See request() for detais.
        """
        return self.request("HEAD", path, headers=headers, **kwargs)

    def post(self, path, data=None, headers=None, **kwargs):
        """ Send a POST request to the server. See request() for detais.
        """
        return self.request("POST", path, data=data, headers=headers, **kwargs)

    def request(self, method, path, data=None, headers=None, **kwargs):
        """ Send a request to the server. Returns a named tuple ``(status, headers, body)``.

        Arguments:
            method (str): the HTTP method (e.g. "GET")
            path (str): path or url (also see the ``url`` property).
            data: the bytes to send (optional).
            headers: headers to send (optional).
            kwargs: additional arguments to pass to ``requests.Request()``.

        """
        assert isinstance(method, str)
        assert isinstance(path, str)
        if self._loop is None:
            raise RuntimeError("Use the server as a context manager.")
        if path.startswith("http"):
            url = path
        else:
            url = self.url + "/" + path.lstrip("/")

        co = self._co_request(method, url, data=data, headers=headers, **kwargs)
        status, headers, body = self._loop.run_until_complete(co)
        return Response(status, headers, body)

    def log(self, *messages, sep=" ", end="\n"):
        """ Log a message. Overloadable. Default write to stdout.
        """
        msg = sep.join(str(m) for m in messages)
        self._stdout_write(msg + end)
        self._stdout_flush()

    def filter_lines(self, lines):
        """ Overloadable line filter.
        """
        return lines

    def _write(self, msg):
        self._out_writes.append(msg)

    def _start_server(self):
        self._out_writes = []
        self._ori_streams = sys.stdout.write, sys.stderr.write
        sys.stdout.write = sys.stderr.write = self._write

        try:
            self._lifespan_messages = []
            self._lifespan_completes = []
            self._lifespan_task = self._make_lifespan_task()
            self._wait_for_lifespan_complete("startup")
        except Exception as err:
            self._restore_streams()
            raise err

    def _restore_streams(self):
        sys.stdout.write, sys.stderr.write = self._ori_streams

    def _stop_server(self):
        try:
            self._wait_for_lifespan_complete("shutdown")
        finally:
            self._restore_streams()
        return "".join(self._out_writes)

    def _make_lifespan_task(self):
        scope = {"type": "lifespan"}

        async def receive():
            while True:
                if self._lifespan_messages:
                    return self._lifespan_messages.pop(0)
                await asyncio.sleep(0.02)

        async def send(m):
            self._lifespan_completes.append(m["type"])

        return self._loop.create_task(self._asgi_app(scope, receive, send))

    def _wait_for_lifespan_complete(self, what, timeout=5):
        what_complete = f"lifespan.{what}.complete"

        async def waiter():
            etime = time.time() + timeout
            while what_complete not in self._lifespan_completes:
                if self._lifespan_task.done():
                    raise RuntimeError(
                        f"Lifespan task finished without producing {what}"
                    )
                if time.time() > etime:
                    raise RuntimeError(
                        f"Timeout for {what}, has {self._lifespan_completes}"
                    )
                await asyncio.sleep(0.02)

        self._lifespan_messages.append({"type": f"lifespan.{what}"})
        self._loop.run_until_complete(waiter())

    def _make_scope(self, request):
        scheme, netloc, path, params, query, fragement = urlparse(request.url)
        if ":" in netloc:
            host, port = netloc.split(":", 1)
            port = int(port)
        else:
            host = netloc
            port = {"http": 80, "https": 443}[scheme]

        # Include the 'host' header.
        if "host" in request.headers:
            headers = []
        elif port == 80:
            headers = [[b"host", host.encode()]]
        else:
            headers = [[b"host", ("%s:%d" % (host, port)).encode()]]

        # Include other request headers.
        headers += [
            [key.lower().encode(), value.encode()]
            for key, value in request.headers.items()
        ]

        return {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.3"},
            "http_version": "1.1",
            "method": request.method,
            "scheme": scheme,
            "path": unquote(path),
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": query.encode(),
            "headers": headers,
            "client": ["testclient", 50000],
            "server": [host, port],
        }

    async def _co_request(self, method, url, **kwargs):
        req = requests.Request(method, url, **kwargs)
        p = req.prepare()  # Get the "resolved" request
        p.headers.setdefault("user-agent", "spaserve_mock_server")
        scope = self._make_scope(p)

        client_to_server = [p.body if p.body is not None else b""]
        server_to_client = []

        async def receive():
            if client_to_server:
                chunk = client_to_server.pop(0)
                if isinstance(chunk, str):
                    chunk = chunk.encode()
                return {
                    "type": "http.request",
                    "body": chunk,
                    "more_body": bool(client_to_server),
                }
            # We wait ... this is us mimicking an open connection
            await asyncio.sleep(9999)

        async def send(m):
            if m["type"] == "http.response.start":
                headers = dict((h[0].decode(), h[1].decode()) for h in m["headers"])
                headers.setdefault("date", format_date_time(time.time()))
                headers.setdefault("server", "spaserve_mock_server")
                response.extend([m["status"], headers])
            elif m["type"] == "http.response.body":
                server_to_client.append(m["body"])

        response = []
        await self._asgi_app(scope, receive, send)
        if not response:
            response.extend([9999, {}])
        response.append(b"".join(server_to_client))

        return tuple(response)
