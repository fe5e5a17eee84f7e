"""Logging configuration for LumenPath."""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL = os.getenv("LUMENPATH_LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LUMENPATH_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def setup_logging(level: Optional[str] = None, name: str = "lumenpath") -> logging.Logger:
    """
    Set up console logging for the package.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to
            the LUMENPATH_LOG_LEVEL environment variable
        name: Logger name

    Returns:
        Configured logger instance
    """
    if level is None:
        level = LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    # Calling twice must not duplicate output
    for handler in list(logger.handlers):
        if getattr(handler, "_lumenpath_handler", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._lumenpath_handler = True
    logger.addHandler(console_handler)

    return logger
