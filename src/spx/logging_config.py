"""Logging configuration for spx."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "spx"


def setup_logging(level: str | None = None, quiet: bool = False) -> None:
    """Configure the ``spx`` logger hierarchy for command-line use.

    Library code only creates loggers; handlers are attached here, once, by the
    CLI entry point.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR). Falls back to the
            SPX_LOG_LEVEL environment variable, then INFO.
        quiet: Raise the effective level to WARNING unless a level is given
            explicitly.
    """
    if level is None:
        level = os.getenv("SPX_LOG_LEVEL")
    if level is None:
        level = "WARNING" if quiet else "INFO"

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get logger for specific module."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
