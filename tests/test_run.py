"""
Test some specifics of the run function and the main entry point.
"""

import pytest

import spaserve
from spaserve import _run


async def handler(request):
    return "ok"


def test_run():

    with pytest.raises(ValueError) as err:
        spaserve.run("foo", "nonexistingserver")
    assert "full path" in str(err).lower()

    with pytest.raises(ValueError) as err:
        spaserve.run("foo:bar", "nonexistingserver")
    assert "invalid server" in str(err).lower()

    with pytest.raises(ValueError) as err:
        spaserve.run(handler, "nonexistingserver")
    assert "invalid server" in str(err).lower()


def test_run_delegates(monkeypatch):
    calls = []

    def fake_server(appname, bind, **kwargs):
        calls.append((appname, bind, kwargs))
        return 0

    monkeypatch.setitem(_run.SERVERS, "uvicorn", fake_server)

    assert spaserve.run("foo:bar", "uvicorn", "localhost:3000", factory=True) == 0
    assert calls == [("foo:bar", "127.0.0.1:3000", {"factory": True})]


def test_to_args():
    args = _run._to_args(
        {"factory": True, "reload": False, "log_level": "info", "x": None, "port": 80}
    )
    assert args == ["--factory", "--log-level=info", "--port=80"]


def test_main(tmp_path, monkeypatch):
    calls = []

    def fake_server(appname, bind, **kwargs):
        calls.append((appname, bind, kwargs))

    monkeypatch.setitem(_run.SERVERS, "uvicorn", fake_server)
    monkeypatch.setenv("SPA_ROOT", str(tmp_path))
    monkeypatch.setenv("PORT", "8123")
    monkeypatch.delenv("SPA_SERVER", raising=False)
    monkeypatch.delenv("SPA_LOG_LEVEL", raising=False)

    assert spaserve.main() == 0
    appname, bind, kwargs = calls[0]
    assert appname == "spaserve._run:create_app"
    assert bind == "0.0.0.0:8123"
    assert kwargs["factory"] is True
    assert kwargs["graceful_timeout"] > 0


def test_main_exit_status(tmp_path, monkeypatch):
    def failing_server(appname, bind, **kwargs):
        raise SystemExit(3)

    def stopping_server(appname, bind, **kwargs):
        raise SystemExit(0)

    monkeypatch.setenv("SPA_ROOT", str(tmp_path))
    monkeypatch.delenv("SPA_SERVER", raising=False)
    monkeypatch.delenv("SPA_LOG_LEVEL", raising=False)

    monkeypatch.setitem(_run.SERVERS, "uvicorn", failing_server)
    assert spaserve.main() == 3

    monkeypatch.setitem(_run.SERVERS, "uvicorn", stopping_server)
    assert spaserve.main() == 0


def test_main_invalid_config(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    assert spaserve.main() != 0

    monkeypatch.setenv("PORT", "3000")
    monkeypatch.setenv("SPA_ROOT", "/this/does/not/exist")
    assert spaserve.main() != 0


def test_create_app(tmp_path, monkeypatch):
    monkeypatch.setenv("SPA_ROOT", str(tmp_path))
    app = spaserve.create_app()
    assert callable(app)
    assert app.__code__.co_argcount == 3

    config = spaserve.ServerConfig.create(str(tmp_path))
    assert callable(spaserve.create_app(config))
