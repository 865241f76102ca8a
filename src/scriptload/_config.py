"""Loader configuration.

Settings come from keyword arguments or the environment:

    SCRIPTLOAD_ENVIRONMENT  "foreground" or "background"
    SCRIPTLOAD_CACHE_BUST   "1"/"true"/"yes"/"on" or "0"/"false"/"no"/"off"
    SCRIPTLOAD_LOG_LEVEL    logging level name, e.g. "DEBUG"

Invalid values fail fast with a ConfigError naming the offending setting.
"""

__all__ = ["LoaderConfig", "Mode"]

import enum
import logging
import os
from dataclasses import dataclass, replace

import scriptload


class Mode(enum.Enum):
    """What a session does once the tree is resolved."""

    RUN = "run"
    EXPORT = "export"


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class LoaderConfig:
    """Settings for one session.

    Attributes:
        environment: Environment the session runs in
        mode: Mode.RUN executes the tree, Mode.EXPORT serializes it
        cache_bust: Decorate fetch locations with a uniqueness token
        log_level: Level name for the "scriptload" logger, None to leave it
    """

    environment: "scriptload.Environment" = None
    mode: Mode = Mode.RUN
    cache_bust: bool = False
    log_level: str | None = None

    def __post_init__(self):
        if self.environment is None:
            object.__setattr__(self, "environment", scriptload.Environment.BACKGROUND)
        elif not isinstance(self.environment, scriptload.Environment):
            object.__setattr__(self, "environment",
                               _as_environment(self.environment, "environment"))
        if not isinstance(self.mode, Mode):
            try:
                object.__setattr__(self, "mode", Mode(str(self.mode).lower()))
            except ValueError:
                raise scriptload.ConfigError(
                    f"Invalid value for mode: {self.mode!r} (expected run or export)") from None
        if self.log_level is not None:
            _as_level(self.log_level, "log_level")

    @classmethod
    def from_env(cls, environ=None, **overrides):
        """Build a config from SCRIPTLOAD_* variables.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Fields that take precedence over the environment

        Raises:
            ConfigError: A variable holds an invalid value
        """
        if environ is None:
            environ = os.environ
        values = {}
        if "SCRIPTLOAD_ENVIRONMENT" in environ:
            values["environment"] = _as_environment(
                environ["SCRIPTLOAD_ENVIRONMENT"], "SCRIPTLOAD_ENVIRONMENT")
        if "SCRIPTLOAD_CACHE_BUST" in environ:
            values["cache_bust"] = _as_bool(
                environ["SCRIPTLOAD_CACHE_BUST"], "SCRIPTLOAD_CACHE_BUST")
        if "SCRIPTLOAD_LOG_LEVEL" in environ:
            values["log_level"] = _as_level(
                environ["SCRIPTLOAD_LOG_LEVEL"], "SCRIPTLOAD_LOG_LEVEL")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_changes(self, **changes):
        """Copy of this config with some fields replaced."""
        return replace(self, **changes)


def _as_environment(value, path):
    try:
        return scriptload.Environment(str(value).strip().lower())
    except ValueError:
        raise scriptload.ConfigError(
            f"Invalid value for {path}: {value!r} (expected foreground or background)") from None


def _as_bool(value, path):
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise scriptload.ConfigError(f"Invalid value for {path}: expected a boolean, got {value!r}")


def _as_level(value, path):
    text = str(value).strip().upper()
    if not isinstance(logging.getLevelName(text), int):
        raise scriptload.ConfigError(f"Invalid value for {path}: unknown log level {value!r}")
    return text
