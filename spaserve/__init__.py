"""
Spaserve - Serve a single-page application with its static assets over ASGI
"""

from ._request import HttpRequest, DisconnectedError
from ._app import to_asgi
from ._config import ServerConfig, ConfigError
from ._resolver import ServeFile, ServeFallback, NotFound, ResolveError, resolve
from ._dispatch import make_spa_handler
from ._run import run, create_app, main
from . import utils


__all__ = [
    "HttpRequest",
    "DisconnectedError",
    "to_asgi",
    "ServerConfig",
    "ConfigError",
    "ServeFile",
    "ServeFallback",
    "NotFound",
    "ResolveError",
    "resolve",
    "make_spa_handler",
    "run",
    "create_app",
    "main",
    "utils",
]


__version__ = "1.0.0"
