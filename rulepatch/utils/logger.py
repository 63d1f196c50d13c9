"""Logging configuration for rulepatch."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

PACKAGE_LOGGER = "rulepatch"

# Default log format
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"
SIMPLE_FORMAT = "%(levelname)s: %(message)s"


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    stream: TextIO | None = None,
    quiet: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (e.g., logging.INFO, "DEBUG", "warning")
        format_string: Custom format string (uses default if None)
        stream: Output stream (defaults to stderr)
        quiet: If True, suppress all output except errors
    """
    if quiet:
        level = logging.ERROR

    level = _resolve_level(level)

    if format_string is None:
        format_string = SIMPLE_FORMAT if level >= logging.INFO else DEFAULT_FORMAT

    if stream is None:
        stream = sys.stderr

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    package_logger.handlers.clear()

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string))
    package_logger.addHandler(handler)

    # Prevent propagation to root logger
    package_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance under the package namespace
    """
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"

    return logging.getLogger(name)

