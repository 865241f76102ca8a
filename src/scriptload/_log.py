"""Logging setup for the loader.

Library modules only fetch named loggers. Handlers are installed when a
level is configured, which the command line does; embedding applications
keep control of their own logging.
"""

__all__ = ["get_logger"]

import logging
import sys


def get_logger(name="scriptload", level=None):
    """Create (or return) a logger under the "scriptload" hierarchy.

    Args:
        name: Logger name.
        level: Optional log level string (e.g. "DEBUG"). When given, the
            "scriptload" logger gets that level and a stderr handler.

    Returns:
        logging.Logger
    """
    logger = logging.getLogger(name)
    if level is None:
        return logger

    base = logging.getLogger("scriptload")
    base.setLevel(level.upper())
    if not any(isinstance(h, logging.StreamHandler) for h in base.handlers):
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(
            logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        base.addHandler(handler)
        base.propagate = False
    return logger
