"""
Centralized logging configuration for histimagery.

Diagnostics go to stderr so stdout stays clean for maps, menus and GeoJSON.

Usage:
    from histimagery.logging_config import get_logger

    logger = get_logger(__name__)
    logger.debug("Querying layer %s", layer.title)
"""

import logging
import os
import sys
from typing import Optional, Union


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

PACKAGE_LOGGER = "histimagery"
HANDLER_NAME = "histimagery-stderr"

_configured = False


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("LOG_LEVEL") or "WARNING").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.WARNING


def _package_handler(logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in logger.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    return None


def setup_logging(level: Optional[Union[int, str]] = None, detailed: bool = False) -> logging.Logger:
    """Configure the package logger.

    Level precedence: explicit `level` arg, then env LOG_LEVEL, then WARNING.
    Calling again updates the level and format of the one stderr handler.

    Args:
        level: Logging level name or number
        detailed: Use detailed format with filename and line numbers

    Returns:
        The package logger
    """
    global _configured

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_resolve_level(level))

    handler = _package_handler(logger)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(HANDLER_NAME)
        logger.addHandler(handler)
        logger.propagate = False
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT if detailed else DEFAULT_FORMAT))
    _configured = True

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (typically `__name__`); ensures the package logger is configured."""
    if not _configured:
        setup_logging()
    return logging.getLogger(name)


def silence_library_loggers() -> None:
    """Reduce verbosity of third-party library loggers."""
    for logger_name in ("urllib3", "requests", "shapely"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
