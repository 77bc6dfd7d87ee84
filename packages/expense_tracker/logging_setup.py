"""Logging for ``expense_tracker``.

Library modules log through ``get_logger("expense_tracker.<module>")`` and
never attach handlers. The CLI calls ``configure_logging`` once at startup;
until then the package logger only carries a ``NullHandler``.

Log lines use a ``component:event key=value`` message shape, e.g.
``channel:open uid=...`` or ``gateway:create_failed uid=... error=...``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "expense_tracker"
LEVEL_ENV = "EXPENSE_TRACKER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``EXPENSE_TRACKER_LOG_LEVEL`` when ``None``) into a number.

    Accepts ints, digit strings and level names in any case. Anything
    unrecognized resolves to ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelNamesMapping().get(name)
    return value if value is not None else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Send package logs to ``stream`` (stderr by default); later calls are no-ops.

    Replaces any ``NullHandler`` placed by :func:`get_logger` and stops
    propagation to the root logger so host applications do not print twice.
    """

    global _configured
    if _configured:
        return

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    package = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not package.handlers:
        package.addHandler(logging.NullHandler())
    return logging.getLogger(name)
