"""
Logging configuration for the ``finance_tracker`` package.

Library modules only call ``logging.getLogger(__name__)``. Entry points (the
CLI and the API server) call ``configure_logging`` once at startup to attach a
single stream handler to the package logger.
"""

import logging
import sys
from typing import IO, Optional, Union

_PKG_LOGGER_NAME = "finance_tracker"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

logging.getLogger(_PKG_LOGGER_NAME).addHandler(logging.NullHandler())


def _parse_level(level: Union[int, str, None]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: Union[int, str, None] = None,
    fmt: Optional[str] = None,
    stream: IO[str] = sys.stderr,
) -> logging.Logger:
    """
    Configure the package logger. Calling it again replaces the handler.

    Args:
        level: Level as int or name (e.g. "DEBUG"); defaults to INFO
        fmt: Optional format string
        stream: Output stream for the handler

    Returns:
        The package logger
    """
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(_parse_level(level))
    # Avoid double emission via the root logger
    logger.propagate = False
    return logger
