from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Logging initialization with labeled prefixes.

Every line written by the application logger starts with one of the labels
INFO | WARN | ERROR | SUMMARY (DEBUG when ``--debug`` is given). Output goes
to stdout so the SUMMARY line and the log share one stream. Modules log via
``logging.getLogger(__name__)``; those loggers sit under the ``budget_recon``
application logger and inherit its handler.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

APP_LOGGER_NAME = "budget_recon"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; WARNING is shortened to WARN."""

    LEVEL_LABELS = {
        logging.WARNING: "WARN",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def _stdout_handler(level: int, stream: TextIO | None = None) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    return handler


def _detach_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


def setup_logging() -> logging.Logger:
    """Configure the application logger once; later calls return the same logger.

    Returns:
        The ``budget_recon`` logger with a single stdout handler.
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(logging.INFO)
    _detach_handlers(app_logger)
    app_logger.addHandler(_stdout_handler(logging.INFO))
    # the stdout handler is the only sink; root handlers would print twice
    app_logger.propagate = False

    _logger = app_logger
    return app_logger


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def log_summary(message: str) -> None:
    """Log ``message`` at SUMMARY level (the formatter adds the label)."""
    get_logger().log(SUMMARY_LEVEL, message)


def set_debug(enabled: bool = True) -> None:
    level = logging.DEBUG if enabled else logging.INFO
    app_logger = get_logger()
    app_logger.setLevel(level)
    for handler in app_logger.handlers:
        handler.setLevel(level)


def reset_logging() -> None:
    """Forget the configured logger and detach its handler. Mainly for tests."""
    global _logger
    if _logger is not None:
        _detach_handlers(_logger)
        _logger.setLevel(logging.NOTSET)
    _logger = None
