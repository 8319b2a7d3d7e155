"""
Logging helpers.

Usage:
    from feature_toolkit.utils.logging_config import get_logger, setup_logging

    setup_logging("DEBUG")
    logger = get_logger(__name__)
"""

import logging
from typing import Optional, Union

PACKAGE_LOGGER = "feature_toolkit"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Stream handler installed by setup_logging, if any
_handler: Optional[logging.Handler] = None


def get_logger(name: str) -> logging.Logger:
    """Return a logger for *name* (normally ``__name__``)."""
    return logging.getLogger(name)


def setup_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Configure the package logger with a single stream handler.

    Calling it again only updates the level, so it is safe to call from
    every script entry point.

    Args:
        level: Logging level name or number. Defaults to ``config.log_level``.

    Returns:
        The configured package logger.
    """
    global _handler

    if level is None:
        from ..config import config

        level = config.log_level
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if _handler is None or _handler not in logger.handlers:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(_handler)
    return logger
