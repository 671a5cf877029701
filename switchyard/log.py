"""Logging setup for switchyard."""

import logging
import os
import sys

LOGGER_NAME = "switchyard"


def init_logging(debug: bool = False) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    The level comes from ``SWITCHYARD_LOG_LEVEL`` (default WARNING); ``debug``
    forces DEBUG.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level_name = os.getenv("SWITCHYARD_LOG_LEVEL", "WARNING").upper()
    level = logging.DEBUG if debug else getattr(logging, level_name, logging.WARNING)
    logger.setLevel(level)
    logger.propagate = False

    # Reuse the handler when called twice in one process.
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)
    return logger
