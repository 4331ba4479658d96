"""
This module implements the HttpRequest class that is passed as an
argument into the request handler.
"""

CONNECTING = 0
CONNECTED = 1
DONE = 2
DISCONNECTED = 3


class DisconnectedError(IOError):
    """ An error raised when the connection is disconnected by the client.
    Subclass of IOError. You don't need to catch these - it is considered
    ok for a handler to exit by this.
    """


class HttpRequest:
    """ Object representing an HTTP request. Provides access to the
    request metadata, and the means to send a response.
    """

    __slots__ = ("_scope", "_receive", "_send", "_headers", "_client_state", "_app_state")

    def __init__(self, scope, receive, send):
        self._scope = scope
        self._receive = receive
        self._send = send
        self._headers = None
        self._client_state = CONNECTED  # CONNECTED -> DISCONNECTED
        self._app_state = CONNECTING  # CONNECTING -> CONNECTED -> DONE

    @property
    def scope(self):
        """ A dict representing the raw ASGI scope.
        """
        return self._scope

    @property
    def method(self):
        """ The HTTP method (string). E.g. 'HEAD', 'GET', 'PUT', 'POST', 'DELETE'.
        """
        return self._scope["method"]

    @property
    def headers(self):
        """ A dictionary representing the headers. Both keys and values are
        lowercase strings.
        """
        if self._headers is None:
            self._headers = dict(
                (key.decode().lower(), val.decode()) for key, val in self._scope["headers"]
            )
        return self._headers

    @property
    def path(self):
        """ The path part of the URL (a string, with percent escapes decoded).
        """
        return self._scope["path"]

    async def accept(self, status=200, headers={}):
        """ Accept this http request. Sends the status code and headers.
        Handlers normally return status, headers and body instead, and let
        the application call this.
        """
        if self._app_state != CONNECTING:
            raise IOError("Cannot accept an already accepted connection.")
        status = int(status)
        try:
            rawheaders = [(k.encode(), v.encode()) for k, v in headers.items()]
        except Exception:
            raise TypeError("Header keys and values must all be strings.")
        self._app_state = CONNECTED
        msg = {"type": "http.response.start", "status": status, "headers": rawheaders}
        await self._send_message(msg)

    async def send(self, data, more=True):
        """ Send (a chunk of) data, representing the response. Note that
        ``accept()`` must be called first.
        """
        more = bool(more)
        if isinstance(data, str):
            data = data.encode()
        elif not isinstance(data, bytes):
            raise TypeError(f"Can only send bytes/str over http, not {type(data)}.")
        message = {"type": "http.response.body", "body": data, "more_body": more}
        if self._app_state == CONNECTED:
            if not more:
                self._app_state = DONE
            await self._send_message(message)
        elif self._app_state == CONNECTING:
            raise IOError("Cannot send before calling accept.")
        else:
            raise IOError("Cannot send to a closed connection.")

    async def _send_message(self, message):
        # Servers raise an OSError (e.g. uvicorn's ClientDisconnected) when
        # the client is gone. Turn that into our own error.
        if self._client_state == DISCONNECTED:
            raise DisconnectedError()
        try:
            await self._send(message)
        except DisconnectedError:
            raise
        except OSError as err:
            self._client_state = DISCONNECTED
            raise DisconnectedError(str(err))
