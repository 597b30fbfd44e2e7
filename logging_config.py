from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Iterable, Sequence

from settings import get_settings

# Rendered as a ``[station/file#row]`` prefix ahead of the message.
_LOCATION_KEYS = ("station", "file_name", "row_number")

_DEFAULT_EXTRA_KEYS = (
    "station_id",
    "parameter",
    "reason",
    "row_count",
    "elapsed_ms",
    "error",
)

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Formatter that surfaces ingestion context passed through ``extra=``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or _DEFAULT_EXTRA_KEYS)

    @staticmethod
    def location(record: logging.LogRecord) -> str | None:
        station = getattr(record, "station", None)
        file_name = getattr(record, "file_name", None)
        row_number = getattr(record, "row_number", None)
        if station is None and file_name is None:
            return None
        location = "/".join(str(part) for part in (station, file_name) if part is not None)
        if row_number is not None:
            location = f"{location}#{row_number}"
        return location

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        location = self.location(record)
        if location:
            message = f"{message} [{location}]"
        context = " ".join(
            f"{key}={getattr(record, key)}"
            for key in self._extra_keys
            if key not in _LOCATION_KEYS and getattr(record, key, None) is not None
        )
        return f"{message} | {context}" if context else message


def configure_logging(level: str | int | None = None) -> None:
    """Route every logger through the contextual formatter once per process."""
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "extra_keys": list(_DEFAULT_EXTRA_KEYS),
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": log_level},
        }
    )

    _configured = True
