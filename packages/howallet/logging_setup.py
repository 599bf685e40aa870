"""Centralized logging configuration for the ``howallet`` package.

Public helpers:

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger (``"howallet"``), and optionally to SQLAlchemy's engine logger
  so emitted SQL lands in the same stream. Called once by entrypoints (the
  CLI, or a host web app) at process startup.
- ``get_logger(name)``: acquire a logger by name, ensuring that the package
  root logger has at least a ``NullHandler`` attached when not configured to
  avoid "No handler" warnings in library contexts.
- ``kv(**fields)``: render ``key=value`` pairs for structured-ish messages,
  e.g. ``logger.info("transaction created %s", kv(id=..., kind=...))``.

Library modules must never attach their own handlers. They should only call
``get_logger("howallet.<module>")`` and rely on the centralized
configuration performed by the CLI or host application.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any

_PKG_LOGGER_NAME = "howallet"
_SQL_LOGGER_NAME = "sqlalchemy.engine"
_DEFAULT_FMT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        # Accept numeric strings or standard level names (INFO/DEBUG/etc.).
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = getattr(logging, name, None)
        if isinstance(numeric, int):
            return numeric
        raise ValueError(f"unknown log level: {level!r}")
    env_val = os.getenv("HOWALLET_LOG_LEVEL")
    if env_val:
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    sql_echo: bool = False,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level-name string (e.g., ``"INFO"``). If
        ``None``, defaults to the ``HOWALLET_LOG_LEVEL`` environment variable
        when set, otherwise ``logging.INFO``.
    fmt:
        Optional logging format string.
    stream:
        The output stream for the single ``StreamHandler`` (defaults to
        ``sys.stderr``).
    sql_echo:
        When True, also route ``sqlalchemy.engine`` at INFO through the same
        handler (one line per statement issued inside a unit of work).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _parse_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    # Remove any existing NullHandlers to avoid swallowing logs after config.
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FMT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    if sql_echo:
        sql_logger = logging.getLogger(_SQL_LOGGER_NAME)
        sql_logger.setLevel(logging.INFO)
        sql_logger.addHandler(handler)
        sql_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, ensuring safe defaults for library use."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


def kv(**fields: Any) -> str:
    """Render keyword arguments as ``k=v`` pairs, skipping ``None`` values."""

    return " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)


__all__ = ["configure_logging", "get_logger", "kv"]
