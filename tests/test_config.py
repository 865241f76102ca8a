"""Tests for loader configuration."""

import logging

import pytest

import scriptload


def test_defaults():
    config = scriptload.LoaderConfig()
    assert config.environment is scriptload.Environment.BACKGROUND
    assert config.mode is scriptload.Mode.RUN
    assert config.cache_bust is False
    assert config.log_level is None


def test_coerces_strings():
    config = scriptload.LoaderConfig(environment="Foreground", mode="export")
    assert config.environment is scriptload.Environment.FOREGROUND
    assert config.mode is scriptload.Mode.EXPORT


def test_from_env():
    config = scriptload.LoaderConfig.from_env({
        "SCRIPTLOAD_ENVIRONMENT": "foreground",
        "SCRIPTLOAD_CACHE_BUST": "yes",
        "SCRIPTLOAD_LOG_LEVEL": "debug",
    })
    assert config.environment is scriptload.Environment.FOREGROUND
    assert config.cache_bust is True
    assert config.log_level == "DEBUG"


def test_overrides_beat_environment():
    config = scriptload.LoaderConfig.from_env(
        {"SCRIPTLOAD_ENVIRONMENT": "foreground", "SCRIPTLOAD_CACHE_BUST": "1"},
        environment="background", cache_bust=None)
    assert config.environment is scriptload.Environment.BACKGROUND
    assert config.cache_bust is True


def test_from_empty_env():
    assert scriptload.LoaderConfig.from_env({}) == scriptload.LoaderConfig()


@pytest.mark.parametrize("name,value", [
    ("SCRIPTLOAD_ENVIRONMENT", "server"),
    ("SCRIPTLOAD_CACHE_BUST", "maybe"),
    ("SCRIPTLOAD_LOG_LEVEL", "chatty"),
])
def test_invalid_values_name_the_setting(name, value):
    with pytest.raises(scriptload.ConfigError, match=name):
        scriptload.LoaderConfig.from_env({name: value})


def test_invalid_mode():
    with pytest.raises(scriptload.ConfigError):
        scriptload.LoaderConfig(mode="compile")


def test_with_changes():
    config = scriptload.LoaderConfig()
    changed = config.with_changes(mode=scriptload.Mode.EXPORT)
    assert changed.mode is scriptload.Mode.EXPORT
    assert config.mode is scriptload.Mode.RUN


def test_session_options_override_config():
    config = scriptload.LoaderConfig(cache_bust=True)
    session = scriptload.Session("/app/main.py", config, environment="foreground")
    assert session.environment is scriptload.Environment.FOREGROUND
    assert session.cache_bust is True
    assert isinstance(session.fetcher, scriptload.AsyncFetcher)


def test_log_level_installs_handler():
    logger = scriptload.get_logger(level="warning")
    base = logging.getLogger("scriptload")
    try:
        assert base.level == logging.WARNING
        assert any(isinstance(h, logging.StreamHandler) for h in base.handlers)
        assert logger is base
    finally:
        for handler in list(base.handlers):
            base.removeHandler(handler)
        base.setLevel(logging.NOTSET)
        base.propagate = True
