"""Process logging configuration for the API runtime."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_LIBRARY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx")


def resolve_log_level(level: str) -> int:
    """Map a level name such as `debug` to its numeric value, defaulting to INFO."""

    normalized_level = level.strip().upper() or "INFO"
    resolved_level = logging.getLevelName(normalized_level)
    return resolved_level if isinstance(resolved_level, int) else logging.INFO


def configure_logging(*, level: str) -> None:
    """Configure root logging once and keep chatty library loggers at WARNING."""

    resolved_level = resolve_log_level(level)
    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))
