from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DATABASE_URL_ENV = "HYDROLOGY_DATABASE_URL"
_STATION_ROOT_ENV = "STATION_ROOT_PATH"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_WRITE_TIMEOUT_ENV = "DB_WRITE_TIMEOUT_SECONDS"
_WORKER_COUNT_ENV = "INGEST_WORKER_COUNT"
_INGESTION_ENABLED_ENV = "INGESTION_ENABLED"
_FORECAST_HISTORY_ENV = "FORECAST_HISTORY_ROWS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    station_root_path: Optional[str]
    poll_interval_seconds: float
    write_timeout_seconds: float
    ingest_workers: int
    ingestion_enabled: bool
    forecast_history_rows: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite:///./tmp/hydrology.db"),
        station_root_path=_read_optional_env(_STATION_ROOT_ENV, None),
        poll_interval_seconds=_read_positive_float(_POLL_INTERVAL_ENV, 60.0),
        write_timeout_seconds=_read_positive_float(_WRITE_TIMEOUT_ENV, 10.0),
        ingest_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        ingestion_enabled=_read_bool(_INGESTION_ENABLED_ENV, True),
        forecast_history_rows=_read_positive_int(_FORECAST_HISTORY_ENV, 120),
        log_level=_read_log_level("INFO"),
    )
