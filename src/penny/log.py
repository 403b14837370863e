"""Logging configuration for the ``penny`` package.

``configure_logging`` attaches one ``StreamHandler`` to the package logger and
is called once by entrypoints (the CLI). Library modules only call
``get_logger("penny.<module>")`` and never attach handlers of their own.
"""

import logging
import os
from typing import IO

PKG_LOGGER_NAME = "penny"
LOG_LEVEL_ENV = "PENNY_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def _to_level(value: int | str | None) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        value = value.strip().upper()
        if value.isdigit():
            return int(value)
        numeric = getattr(logging, value, None)
        if isinstance(numeric, int):
            return numeric
    return None


def parse_level(level: int | str | None, default: int = logging.WARNING) -> int:
    """Resolve an int, a numeric string or a level name to a logging level.

    Falls back to ``PENNY_LOG_LEVEL`` and then ``default``.
    """
    for candidate in (level, os.getenv(LOG_LEVEL_ENV)):
        resolved = _to_level(candidate)
        if resolved is not None:
            return resolved
    return default


def configure_logging(
    level: int | str | None = None,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure the package logger. Later calls only adjust the level.

    ``stream`` defaults to ``sys.stderr`` as it is when this first runs.
    """
    global _configured
    logger = logging.getLogger(PKG_LOGGER_NAME)
    resolved = parse_level(level)

    if _configured:
        logger.setLevel(resolved)
        return

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger, keeping the package silent until configured."""
    pkg_logger = logging.getLogger(PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
