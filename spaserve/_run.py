"""
This module implements a ``run()`` function to start an ASGI server of choice,
and the ``main()`` entry point that serves a single-page application
configured from the environment.
"""

import signal

from ._app import to_asgi, logger, install_fatal_exception_handler
from ._config import ServerConfig, ConfigError
from ._dispatch import make_spa_handler

GRACEFUL_TIMEOUT = 10


def _stop_on_signal(signum, frame):
    # Uvicorn re-raises the signal once it has shut down gracefully
    raise SystemExit(0)


def run(app, server, bind="localhost:8080", **kwargs):
    """ Run the given ASGI app with the given ASGI server. (This works for
    any ASGI app, not just spaserve apps.)

    Arguments:

    * ``app`` (required): The ASGI application object, or a string ``"module.path:appname"``.
    * ``server`` (required): The name of the server to use, "uvicorn" or "hypercorn".
    * ``bind``: The address to listen on, as "host:port".
    * ``factory``: If True, ``app`` refers to a function that returns the app.
    * ``graceful_timeout``: The number of seconds that in-flight requests get
      to complete on shutdown.
    * ``kwargs``: additional arguments to pass to the underlying server.
    """

    # Compose application name
    if isinstance(app, str):
        appname = app
        if ":" not in appname:
            raise ValueError("If specifying an app by name, give its full path!")
    else:
        appname = app.__module__ + ":" + app.__name__

    # Check server and bind
    assert isinstance(server, str), "spaserve.run() server arg must be a string."
    assert isinstance(bind, str), "spaserve.run() bind arg must be a string."
    assert ":" in bind, "spaserve.run() bind arg must be 'host:port'"
    bind = bind.replace("localhost", "127.0.0.1")

    # Select server function
    try:
        func = SERVERS[server.lower()]
    except KeyError:
        raise ValueError(f"Invalid server specified: {server!r}")

    # Delegate
    return func(appname, bind, **kwargs)


def _to_args(kwargs):
    args = []
    for key, val in kwargs.items():
        if val is True:
            args.append(f"--{key.replace('_', '-')}")
        elif val is not False and val is not None:
            args.append(f"--{key.replace('_', '-')}={str(val)}")
    return args


def _run_hypercorn(appname, bind, *, factory=False, graceful_timeout=None, **kwargs):
    from hypercorn.__main__ import main

    kwargs["bind"] = bind
    kwargs["graceful_timeout"] = graceful_timeout

    # Hypercorn calls the factory when the app name ends with "()"
    if factory:
        appname += "()"

    return main(_to_args(kwargs) + [appname])


def _run_uvicorn(appname, bind, *, factory=False, graceful_timeout=None, **kwargs):
    from uvicorn.main import main

    host, _, port = bind.partition(":")
    kwargs["host"] = host
    kwargs["port"] = port
    kwargs["factory"] = factory
    kwargs["timeout_graceful_shutdown"] = graceful_timeout

    # Default to an error log_level, otherwise uvicorn is quite verbose
    kwargs.setdefault("log_level", "warning")

    return main(_to_args(kwargs) + [appname])


SERVERS = {"hypercorn": _run_hypercorn, "uvicorn": _run_uvicorn}


def create_app(config=None):
    """ Create the ASGI application that serves the single-page application
    described by the given ``ServerConfig`` (default: read from the
    environment). Faults outside of requests are made fatal once the
    server starts.
    """
    if config is None:
        config = ServerConfig.from_env()
    handler = make_spa_handler(config)
    return to_asgi(
        handler,
        expose_errors=not config.is_production,
        on_startup=install_fatal_exception_handler,
    )


def main():
    """ Serve the single-page application configured via environment
    variables. Returns the exit status: 0 on clean shutdown, non-zero if
    the server could not start.
    """
    try:
        config = ServerConfig.from_env()
    except ConfigError as err:
        logger.error(f"Invalid configuration: {err}")
        return 1

    logger.setLevel(config.log_level.upper())
    logger.info(f"SPA server is running on port {config.port}")
    logger.info(f"Environment: {config.environment}")
    logger.info(f"Serving {config.root} (fallback {config.fallback})")
    logger.info(f"Access your app at: http://localhost:{config.port}")

    ori_handlers = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        ori_handlers[signum] = signal.signal(signum, _stop_on_signal)

    try:
        code = run(
            "spaserve._run:create_app",
            config.server,
            f"{config.host}:{config.port}",
            factory=True,
            graceful_timeout=GRACEFUL_TIMEOUT,
            log_level=config.log_level,
        )
    except SystemExit as err:
        # The server CLIs exit via sys.exit()
        code = err.code
    except Exception as err:
        logger.error(f"Server failed: {err}", exc_info=err)
        return 1
    finally:
        for signum, handler in ori_handlers.items():
            signal.signal(signum, handler)

    if code is None:
        code = 0
    elif not isinstance(code, int):
        code = 1
    if code:
        logger.error(f"Server exited with status {code}")
    else:
        logger.info("Server stopped")
    return code
