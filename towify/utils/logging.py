"""Centralized logging configuration."""

import logging
import sys
from typing import Optional

_ROOT_LOGGER_NAME = "towify"
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def _ensure_root_handler() -> logging.Logger:
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Package loggers share a single stdout handler installed on the ``towify``
    logger, so records are never emitted twice.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Configured logger instance
    """
    root = _ensure_root_handler()
    if name == _ROOT_LOGGER_NAME or name.startswith(f"{_ROOT_LOGGER_NAME}."):
        logger = logging.getLogger(name)
    else:
        logger = root.getChild(name)

    if level:
        logger.setLevel(getattr(logging, level.upper()))

    return logger


def set_log_level(level: str) -> None:
    """Apply a log level to every package logger."""
    _ensure_root_handler().setLevel(getattr(logging, level.upper()))
