"""Centralized logging configuration for the ``budget_import`` package.

Entrypoints (the CLI, or a host application) call ``configure_logging`` once
at startup; it attaches a single ``StreamHandler`` to the ``"budget_import"``
logger. Library modules only ever call ``get_logger(__name__)`` and never
attach handlers of their own.

The level resolves in order: explicit argument, the
``BUDGET_IMPORT_LOG_LEVEL`` environment variable, then ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "budget_import"
_ENV_LEVEL = "BUDGET_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_ENV_LEVEL)
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
    force: bool = False,
) -> logging.Logger:
    """Attach the package handler and return the package logger.

    Calling this again is a no-op unless ``force`` is set, in which case the
    previous handler is replaced (the CLI does this when ``--verbose`` is
    passed after the root callback already configured logging).
    """

    global _handler
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None and not force:
        return logger

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler) or h is _handler:
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False
    _handler = handler
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name; silent until ``configure_logging`` runs."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
