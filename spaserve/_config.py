"""
This module implements the server configuration, which is read once
from the environment at startup, and then passed around explicitly.
"""

import os
from collections import namedtuple


DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_ENVIRONMENT = "production"
DEFAULT_FALLBACK = "index.html"
DEFAULT_MAX_AGE = 86400
DEFAULT_SERVER = "uvicorn"

DEVELOPMENT_LABELS = "development", "dev", "local"
LOG_LEVELS = "critical", "error", "warning", "info", "debug"
SERVER_NAMES = "uvicorn", "hypercorn"


class ConfigError(ValueError):
    """ Raised when the configuration is invalid. The message names the
    offending environment variable.
    """


_ServerConfigBase = namedtuple(
    "_ServerConfigBase",
    [
        "root",
        "host",
        "port",
        "environment",
        "fallback",
        "max_age",
        "serve_dotfiles",
        "server",
        "log_level",
    ],
)


class ServerConfig(_ServerConfigBase):
    """ Immutable server configuration. Use ``ServerConfig.from_env()``
    to build it from environment variables, or ``ServerConfig.create()``
    to build it programatically with defaults for unspecified fields.
    """

    __slots__ = ()

    @classmethod
    def create(
        cls,
        root=".",
        *,
        host=DEFAULT_HOST,
        port=DEFAULT_PORT,
        environment=DEFAULT_ENVIRONMENT,
        fallback=DEFAULT_FALLBACK,
        max_age=DEFAULT_MAX_AGE,
        serve_dotfiles=False,
        server=DEFAULT_SERVER,
        log_level="info",
    ):
        if not os.path.isdir(root):
            raise ConfigError(f"SPA_ROOT {root!r} is not a directory")
        if fallback in ("", ".", "..") or "/" in fallback or os.sep in fallback:
            raise ConfigError(f"SPA_FALLBACK must be a plain file name, not {fallback!r}")
        if not (isinstance(port, int) and 0 < port < 65536):
            raise ConfigError(f"PORT must be in 1..65535, not {port!r}")
        if log_level not in LOG_LEVELS:
            raise ConfigError(f"SPA_LOG_LEVEL must be one of {LOG_LEVELS}, not {log_level!r}")
        if server not in SERVER_NAMES:
            raise ConfigError(f"SPA_SERVER must be one of {SERVER_NAMES}, not {server!r}")
        if not (isinstance(max_age, int) and max_age >= 0):
            raise ConfigError(f"SPA_MAX_AGE must be a positive int, not {max_age!r}")
        return cls(
            os.path.abspath(root),
            host,
            port,
            environment,
            fallback,
            max_age,
            bool(serve_dotfiles),
            server,
            log_level,
        )

    @classmethod
    def from_env(cls, environ=None):
        """ Build the config from the given mapping (default ``os.environ``).
        """
        env = os.environ if environ is None else environ

        environment = env.get("SPA_ENV") or env.get("NODE_ENV") or DEFAULT_ENVIRONMENT
        dotfiles = env.get("SPA_DOTFILES", "ignore").strip().lower()
        if dotfiles not in ("allow", "ignore"):
            raise ConfigError(f"SPA_DOTFILES must be 'allow' or 'ignore', not {dotfiles!r}")

        return cls.create(
            env.get("SPA_ROOT", os.getcwd()),
            port=_get_int(env, "PORT", DEFAULT_PORT),
            environment=environment.strip().lower(),
            fallback=env.get("SPA_FALLBACK", DEFAULT_FALLBACK),
            max_age=_get_int(env, "SPA_MAX_AGE", DEFAULT_MAX_AGE),
            serve_dotfiles=dotfiles == "allow",
            server=env.get("SPA_SERVER", DEFAULT_SERVER).strip().lower(),
            log_level=env.get("SPA_LOG_LEVEL", "info").strip().lower(),
        )

    @property
    def is_production(self):
        """ Whether this is not a development environment. Affects cache
        headers and the verbosity of error responses.
        """
        return self.environment not in DEVELOPMENT_LABELS

    @property
    def cache_control(self):
        """ The cache-control header value for static files.
        """
        if self.is_production:
            return f"public, max-age={self.max_age:d}"
        return "no-cache"


def _get_int(env, name, default):
    value = env.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, not {value!r}")
