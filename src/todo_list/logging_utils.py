"""Logging utilities with custom trace level."""

import logging
from typing import Any

# Define custom TRACE level (lower than DEBUG)
TRACE_LEVEL = 5

VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def add_trace_level() -> None:
    """Add a custom TRACE logging level."""
    logging.addLevelName(TRACE_LEVEL, "TRACE")

    def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message with severity 'TRACE'."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, message, args, **kwargs)

    # Monkey patch the Logger class
    logging.Logger.trace = trace  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Get a logger with trace support."""
    if not hasattr(logging.Logger, "trace"):
        add_trace_level()

    return logging.getLogger(name)


def configure_logging(verbose: bool = False, trace: bool = False) -> int:
    """
    Configure root logging for the application.

    Args:
        verbose: Log at DEBUG level, including logger names
        trace: Log at TRACE level (most verbose, includes live query dispatch)

    Returns:
        The level that was applied
    """
    add_trace_level()

    if trace:
        level = TRACE_LEVEL
        log_format = VERBOSE_FORMAT
    elif verbose:
        level = logging.DEBUG
        log_format = VERBOSE_FORMAT
    else:
        level = logging.INFO
        log_format = DEFAULT_FORMAT

    logging.basicConfig(level=level, format=log_format)
    # aiosqlite logs every statement at DEBUG
    logging.getLogger("aiosqlite").setLevel(
        logging.DEBUG if trace else logging.WARNING
    )
    return level
