"""
Test the construction of the server config from the environment.
"""

import os

import pytest

from spaserve import ServerConfig, ConfigError


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = ServerConfig.from_env({})

    assert config.root == os.getcwd()
    assert config.host == "0.0.0.0"
    assert config.port == 3000
    assert config.environment == "production"
    assert config.fallback == "index.html"
    assert config.max_age == 86400
    assert config.serve_dotfiles is False
    assert config.server == "uvicorn"
    assert config.log_level == "info"

    assert config.is_production
    assert config.cache_control == "public, max-age=86400"


def test_from_env(tmp_path):
    env = {
        "PORT": "8080",
        "SPA_ROOT": str(tmp_path),
        "SPA_ENV": "Development",
        "SPA_FALLBACK": "app.html",
        "SPA_MAX_AGE": "60",
        "SPA_DOTFILES": "allow",
        "SPA_SERVER": "hypercorn",
        "SPA_LOG_LEVEL": "DEBUG",
    }
    config = ServerConfig.from_env(env)

    assert config.port == 8080
    assert config.root == str(tmp_path)
    assert config.environment == "development"
    assert config.fallback == "app.html"
    assert config.max_age == 60
    assert config.serve_dotfiles is True
    assert config.server == "hypercorn"
    assert config.log_level == "debug"

    assert not config.is_production
    assert config.cache_control == "no-cache"


def test_environment_label(tmp_path):
    env = {"SPA_ROOT": str(tmp_path)}
    assert ServerConfig.from_env(env).environment == "production"
    env["NODE_ENV"] = "dev"
    assert ServerConfig.from_env(env).environment == "dev"
    assert not ServerConfig.from_env(env).is_production
    env["SPA_ENV"] = "staging"
    assert ServerConfig.from_env(env).environment == "staging"
    assert ServerConfig.from_env(env).is_production


def test_config_is_immutable(tmp_path):
    config = ServerConfig.create(str(tmp_path))
    with pytest.raises(AttributeError):
        config.port = 80
    assert config._replace(port=80).port == 80
    assert config.port == 3000


@pytest.mark.parametrize(
    "name, value",
    [
        ("PORT", "abc"),
        ("PORT", "0"),
        ("PORT", "70000"),
        ("SPA_ROOT", "/this/does/not/exist"),
        ("SPA_FALLBACK", "sub/index.html"),
        ("SPA_FALLBACK", ".."),
        ("SPA_MAX_AGE", "-1"),
        ("SPA_MAX_AGE", "1.5"),
        ("SPA_DOTFILES", "sometimes"),
        ("SPA_SERVER", "nginx"),
        ("SPA_LOG_LEVEL", "loud"),
    ],
)
def test_invalid_config(tmp_path, name, value):
    env = {"SPA_ROOT": str(tmp_path)}
    env[name] = value
    with pytest.raises(ConfigError) as err:
        ServerConfig.from_env(env)
    assert name in str(err.value)


def test_root_must_be_directory(tmp_path):
    filename = tmp_path / "file.txt"
    filename.write_text("x")
    with pytest.raises(ConfigError):
        ServerConfig.create(str(filename))
