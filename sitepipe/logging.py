"""Logging utilities for sitepipe runs."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "sitepipe"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the sitepipe hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the sitepipe logger.

    Stage progress is written to stdout only when ``verbose`` is set; otherwise
    the console shows warnings and above. The optional file sink always records
    at DEBUG level so CI artifacts keep the full trace.
    """
    console_level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if (verbose or log_file is not None) else logging.WARNING)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stdout if verbose else sys.stderr)
    stream_handler.setLevel(console_level)
    stream_handler.setFormatter(logging.Formatter("[sitepipe] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
