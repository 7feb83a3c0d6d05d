from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every line the CLI prints is prefixed with a label (INFO|WARN|ERROR|SUMMARY)
so wrappers can grep the output. Standard logging only; library modules log
through ``logging.getLogger(__name__)`` below the ``csv_reconcile`` logger
configured here.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
]

APP_LOGGER_NAME = "csv_reconcile"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

# Global logger instance
_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formatter producing ``LABEL message`` lines."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{level_label} {record.getMessage()}"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure the application logger (idempotent).

    Output goes to stdout, matching the CLI contract; propagation to the root
    logger is disabled to avoid duplicate lines.

    Returns:
        Configured logger instance for the application
    """
    global _logger

    if _logger is not None:
        _logger.setLevel(level)
        for handler in _logger.handlers:
            handler.setLevel(level)
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured application logger, configuring it on first use."""
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
    _logger = None
