"""Logging setup shared by the host server and its engine."""

from __future__ import annotations

import logging
from logging import Logger

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-request access lines drown out session events unless debugging.
_CHATTY_LOGGERS = ("uvicorn.access",)


def configure_logging(level: str | int = logging.INFO) -> Logger:
    """Configure root logging once and return the ``quiz_live`` logger."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
    return logging.getLogger("quiz_live")
