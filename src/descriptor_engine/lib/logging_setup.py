"""Logging for the descriptor engine.

Modules log through ``get_logger(__name__)`` and stay silent until an entry
point (bin/descriptor, bin/mcp) calls ``configure_logging``. The level comes
from the argument, else DESCRIPTOR_ENGINE_LOG_LEVEL, else WARNING.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

LOGGER_NAME = "descriptor_engine"
LEVEL_ENV_VAR = "DESCRIPTOR_ENGINE_LOG_LEVEL"

FORMAT = "%(levelname)s [%(name)s] %(message)s"
DEBUG_FORMAT = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_handler: logging.StreamHandler | None = None

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def resolve_level(level: int | str | None = None) -> int:
    """Numeric level for an int or level name; unknown names mean WARNING."""
    if level is None:
        level = os.getenv(LEVEL_ENV_VAR) or logging.WARNING
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    level: int | str | None = None, stream: IO[str] | None = None
) -> logging.Logger:
    """Send package records to ``stream`` (stderr if None) at ``level``.

    Repeated calls reuse one handler and only update its level and stream.
    """
    global _handler
    resolved = resolve_level(level)
    pkg_logger = logging.getLogger(LOGGER_NAME)
    if _handler is None:
        _handler = logging.StreamHandler()
        pkg_logger.addHandler(_handler)
        pkg_logger.propagate = False
    _handler.setStream(stream if stream is not None else sys.stderr)
    _handler.setFormatter(logging.Formatter(DEBUG_FORMAT if resolved <= logging.DEBUG else FORMAT))
    pkg_logger.setLevel(resolved)
    return pkg_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
