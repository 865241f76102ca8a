"""Hosting environments and the constants bound into code blocks."""

__all__ = [
    "Environment",
    "Constant",
    "GLOBAL",
    "CONSTANT_NAMES",
    "get_constant",
    "bind_constants",
    "parse_environments",
]

import enum
import types
from typing import Any, NamedTuple


class Environment(enum.Enum):
    """Where a session runs.

    FOREGROUND: interactive context on an asyncio event loop; units are
        fetched asynchronously and completion arrives by callback.
    BACKGROUND: isolated worker context; each fetch blocks until the unit's
        body has run.
    """

    FOREGROUND = "foreground"
    BACKGROUND = "background"

    def __str__(self):
        return self.value


# Process-wide shared scope. Namespaces are materialized here unless a
# session is given its own scope.
GLOBAL = types.SimpleNamespace()

CONSTANT_NAMES = (
    "SL_DIRECTORY",
    "SL_GLOBAL",
    "SL_FOREGROUND",
    "SL_BACKGROUND",
    "SL_ENVIRONMENT",
)


class Constant(NamedTuple):
    """Result of a constant lookup."""

    exists: bool
    value: Any = None


def get_constant(unit, name, environment, scope):
    """Look up one constant for a code block declared by unit.

    Args:
        unit: Unit that declared the block
        name: (str) Constant name requested by the block
        environment: (Environment) Session environment
        scope: Shared scope object of the session

    Returns:
        Constant with ``exists=False`` for unknown names
    """
    if name == "SL_DIRECTORY":
        return Constant(True, unit.directory)
    if name == "SL_GLOBAL":
        return Constant(True, scope)
    if name == "SL_FOREGROUND":
        return Constant(True, environment is Environment.FOREGROUND)
    if name == "SL_BACKGROUND":
        return Constant(True, environment is Environment.BACKGROUND)
    if name == "SL_ENVIRONMENT":
        return Constant(True, environment.value)
    return Constant(False)


def bind_constants(unit, names, environment, scope):
    """Build keyword arguments for a code block body.

    Unknown names bind to None rather than failing; a block may request any
    subset of the known constants.

    Returns:
        dict: {name: value} in the order of names
    """
    bound = {}
    for name in names:
        bound[name] = get_constant(unit, name, environment, scope).value
    return bound


def parse_environments(environments):
    """Normalize an environment filter.

    Accepts None (any environment), an Environment, a tag string, a
    comma-separated string of tags, or an iterable of either.

    Returns:
        frozenset[Environment] | None

    Raises:
        ValueError: Unknown environment tag
    """
    if environments is None:
        return None
    if isinstance(environments, (Environment, str)):
        environments = [environments]
    result = set()
    for item in environments:
        if isinstance(item, Environment):
            result.add(item)
            continue
        for tag in str(item).split(","):
            tag = tag.strip().lower()
            if tag:
                result.add(Environment(tag))
    return frozenset(result)
