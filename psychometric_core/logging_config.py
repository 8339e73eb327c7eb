"""
Logging Configuration
=====================

Consistent logging across the psychometric modules.

Usage:
    from psychometric_core.logging_config import get_logger, setup_logging

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Starting parallel analysis")
"""

import logging
import sys
from typing import Optional

FORMATS = {
    "standard": "%(asctime)s | %(levelname)-8s | %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
}

PACKAGE_LOGGER = "psychometric_core"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_style: str = "standard"
) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the package logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        format_style: "standard" or "detailed"

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(FORMATS.get(format_style, FORMATS["standard"]),
                          datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(FORMATS["detailed"], datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name."""
    return logging.getLogger(name)
