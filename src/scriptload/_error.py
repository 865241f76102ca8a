"""Error classes and helpers"""

__all__ = [
    "LoaderError",
    "FetchFailure",
    "DeclarationOutsideContext",
    "GuardEvaluationFailure",
    "InvalidNamespaceName",
    "BlockExecutionFailure",
    "ExportError",
    "ConfigError",
]


class LoaderError(Exception):
    """Base for errors raised by the script loader."""


class FetchFailure(LoaderError):
    """A unit's source could not be read or its body raised.

    Args:
        key: (str) Canonical key of the unit that failed
        cause: (Exception | None) Underlying error from the reader or body

    Attributes:
        key: (str) Canonical key of the unit that failed
        cause: (Exception | None) Underlying error
    """

    def __init__(self, key, cause=None):
        self.key = key
        self.cause = cause
        message = f"failed to load script: {key}"
        if cause is not None:
            message += f" ({type(cause).__name__}: {cause})"
        super().__init__(message)


class DeclarationOutsideContext(LoaderError):
    """Declaration made with no unit currently being loaded."""


class GuardEvaluationFailure(LoaderError):
    """A code block guard raised. Logged and the block skipped, never raised."""

    def __init__(self, key, block, cause):
        self.key = key
        self.block = block
        self.cause = cause
        super().__init__(
            f"error evaluating guard for {block.name} in {key}: "
            f"{type(cause).__name__}: {cause}")


class InvalidNamespaceName(LoaderError, ValueError):
    """Dotted namespace name with an empty segment."""


class BlockExecutionFailure(LoaderError):
    """A code block body raised during the execution pass."""

    def __init__(self, key, block, cause):
        self.key = key
        self.block = block
        self.cause = cause
        super().__init__(
            f"code block {block.name} in {key} failed: "
            f"{type(cause).__name__}: {cause}")


class ExportError(LoaderError):
    """A code block could not be converted back into source text."""


class ConfigError(LoaderError, ValueError):
    """Loader configuration is missing or invalid."""
