from __future__ import annotations

from pathlib import Path
from typing import Iterable

from datastore.readings_db import build_default_database
from services.ingestion import build_default_ingestion_service
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


CACHES = (get_settings, build_default_database, build_default_ingestion_service)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    database_path = tmp_path / "custom.db"
    station_root = tmp_path / "stations"

    monkeypatch.setenv("HYDROLOGY_DATABASE_URL", f"sqlite:///{database_path}")
    monkeypatch.setenv("STATION_ROOT_PATH", str(station_root))
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("DB_WRITE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("INGEST_WORKER_COUNT", "2")
    monkeypatch.setenv("INGESTION_ENABLED", "off")
    monkeypatch.setenv("FORECAST_HISTORY_ROWS", "64")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    _clear_caches(CACHES)

    settings = get_settings()
    database = build_default_database()
    service = build_default_ingestion_service()

    try:
        assert settings.poll_interval_seconds == 15.0
        assert settings.ingestion_enabled is False
        assert settings.forecast_history_rows == 64
        assert settings.log_level == "DEBUG"
        assert database.url == f"sqlite:///{database_path}"
        assert service.database is database
        assert service.executor._max_workers == 2
        assert service.write_timeout == 2.5
        assert all(Path(station.folder).parent == station_root for station in service.stations)
        assert {Path(station.folder).name for station in service.stations} >= {"Mana_EWS", "Vasudhara_AWS"}
    finally:
        service.shutdown()
        database.dispose()
        _clear_caches(CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "soon")
    monkeypatch.setenv("DB_WRITE_TIMEOUT_SECONDS", "-1")
    monkeypatch.setenv("INGEST_WORKER_COUNT", "0")
    monkeypatch.setenv("INGESTION_ENABLED", "maybe")
    monkeypatch.setenv("HYDROLOGY_DATABASE_URL", "   ")
    monkeypatch.delenv("STATION_ROOT_PATH", raising=False)
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.poll_interval_seconds == 60.0
        assert settings.write_timeout_seconds == 10.0
        assert settings.ingest_workers == 4
        assert settings.ingestion_enabled is True
        assert settings.database_url == "sqlite:///./tmp/hydrology.db"
        assert settings.station_root_path is None
    finally:
        get_settings.cache_clear()
