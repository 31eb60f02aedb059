"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from venuebook.utils.config import get_settings


_LOGGER_INITIALIZED = False
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty transport libraries only surface warnings.
_QUIET_LOGGERS = ("urllib3", "httpx", "httpcore")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; later calls are no-ops."""

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT, stream=sys.stdout)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the process on first use."""
    configure_logging()
    return logging.getLogger(name)
