"""Loggers for the cachelock components."""

from __future__ import annotations

import logging
import sys

from rich.logging import RichHandler


# RichHandler renders its own time and level columns.
RICH_FORMAT = "%(name)s: %(message)s"
PLAIN_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def _build_handler(level: int, rich: bool) -> logging.Handler:
    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter(RICH_FORMAT))
        return handler

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def get_logger(name: str, level: int = logging.INFO, *, rich: bool = True) -> logging.Logger:
    """Return ``cachelock.<name>``, attaching a handler the first time it is requested."""
    logger = logging.getLogger(f"cachelock.{name}")
    if not logger.handlers:
        logger.setLevel(level)
        logger.addHandler(_build_handler(level, rich))
        logger.propagate = False
    return logger
