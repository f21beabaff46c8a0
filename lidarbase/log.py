"""Process-wide SDK logger with optional console and rotating-file sinks."""

from __future__ import annotations

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "lidarbase"
DEFAULT_LOG_FILE = "lidar_log.txt"
MAX_LOG_FILE_BYTES = 1024 * 1024 * 5
LOG_FILE_BACKUPS = 2

_FORMAT = "%(message)s  [%(filename)s] [%(funcName)s] [%(lineno)d]"

_lock = threading.Lock()
_logger: logging.Logger | None = None


def init_logger(
    console_enabled: bool = False,
    save_to_file: bool = False,
    file_path: str = DEFAULT_LOG_FILE,
) -> logging.Logger:
    """Configure the shared logger once and return it.

    If the logger is already configured, the existing one is returned and
    the arguments are ignored.
    """
    global _logger
    with _lock:
        if _logger is not None:
            return _logger

        logger = logging.getLogger(LOGGER_NAME)
        logger.propagate = False
        logger.setLevel(logging.DEBUG)
        formatter = logging.Formatter(_FORMAT)

        handlers: list[logging.Handler] = []
        if console_enabled:
            handlers.append(logging.StreamHandler(sys.stdout))
        if save_to_file:
            handlers.append(
                RotatingFileHandler(
                    file_path,
                    maxBytes=MAX_LOG_FILE_BYTES,
                    backupCount=LOG_FILE_BACKUPS,
                    encoding="utf-8",
                )
            )
        if not handlers:
            handlers.append(logging.NullHandler())

        for handler in handlers:
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        _logger = logger
        return logger


def uninit_logger() -> None:
    """Detach and close every sink of the shared logger."""
    global _logger
    with _lock:
        logger = logging.getLogger(LOGGER_NAME)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        _logger = None


def get_logger() -> logging.Logger:
    """Return the shared logger, configuring a silent one if none exists."""
    if _logger is not None:
        return _logger
    return init_logger()