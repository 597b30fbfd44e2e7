from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.readings_db import build_default_database
from models.records import GaugeRecord, WeatherRecord
from services.ingestion import build_default_ingestion_service
from settings import get_settings

BASE_TIME = datetime(2024, 6, 1, 0, 0, 0)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


_CACHES = (get_settings, build_default_database, build_default_ingestion_service)


@pytest.fixture
def api_client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    monkeypatch.setenv("HYDROLOGY_DATABASE_URL", f"sqlite:///{tmp_path / 'hydrology.db'}")
    monkeypatch.setenv("STATION_ROOT_PATH", str(tmp_path / "stations"))
    monkeypatch.setenv("INGESTION_ENABLED", "false")
    _clear_caches(_CACHES)

    app = create_app()
    with TestClient(app) as client:
        yield client

    build_default_database().dispose()
    _clear_caches(_CACHES)


def _weather_rows(count: int) -> list[WeatherRecord]:
    return [
        WeatherRecord(
            station_id="ST019",
            device_id="31929",
            service_id="AWS",
            uid="U001",
            observed_at=BASE_TIME + timedelta(minutes=15 * i),
            temperature=float(i + 1),
            relative_humidity=80.0,
            pressure=780.0,
            windspeed=2.0,
            rain=0.0,
        )
        for i in range(count)
    ]


def test_forecast_for_station_with_history(api_client: TestClient) -> None:
    result = build_default_database().insert_weather(_weather_rows(40))
    assert result.ok

    response = api_client.get("/forecast/ST019")

    assert response.status_code == 200
    payload = response.json()
    assert payload["station"] == "ST019"
    assert payload["forecastHours"] == 12
    assert payload["interval"] == "15 minutes"
    assert len(payload["temperature"]) == 48
    assert payload["temperature"][0] == 43.0
    assert payload["temperature"][1] == 46.0
    assert payload["humidity"] == [80.0] * 48
    assert payload["rain"] == [0.0] * 48


def test_forecast_for_unknown_station_returns_not_found(api_client: TestClient) -> None:
    response = api_client.get("/forecast/ST999")

    assert response.status_code == 404
    assert response.json()["detail"] == "No data found for this station."


def test_latest_weather_and_gauge_rows(api_client: TestClient) -> None:
    database = build_default_database()
    database.insert_weather(_weather_rows(3))
    database.insert_gauge(
        [
            GaugeRecord(
                station_id="ST020",
                device_id="32930",
                uid="U001",
                observed_at=BASE_TIME,
                water_discharge=0.0,
            )
        ]
    )

    weather = api_client.get("/stations/ST019/weather/latest", params={"limit": 2})
    gauge = api_client.get("/stations/ST020/gauge/latest")
    missing = api_client.get("/stations/ST019/gauge/latest")

    assert weather.status_code == 200
    assert weather.json()["count"] == 2
    assert weather.json()["data"][0]["temperature"] == 3.0
    assert gauge.status_code == 200
    assert gauge.json()["data"][0]["water_discharge"] == 0.0
    assert missing.status_code == 404


def test_ingestion_status_lists_configured_stations(api_client: TestClient, tmp_path) -> None:
    response = api_client.get("/ingestion/status")

    assert response.status_code == 200
    payload = response.json()
    assert payload["scheduler_running"] is False
    names = [entry["station"] for entry in payload["stations"]]
    assert "Mana EWS" in names and "Lambagad AWS" in names
    assert all(entry["folder"].startswith(str(tmp_path / "stations")) for entry in payload["stations"])
    assert all(entry["last_file"] is None for entry in payload["stations"])


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_lifespan_starts_scheduler_and_clears_service_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HYDROLOGY_DATABASE_URL", f"sqlite:///{tmp_path / 'hydrology.db'}")
    monkeypatch.setenv("STATION_ROOT_PATH", str(tmp_path / "stations"))
    monkeypatch.setenv("INGESTION_ENABLED", "true")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "3600")
    _clear_caches(_CACHES)

    app = create_app()
    try:
        with TestClient(app) as client:
            service_during = build_default_ingestion_service()
            assert client.get("/ingestion/status").json()["scheduler_running"] is True

        assert app.state.scheduler.running is False
        assert service_during.executor._shutdown is True
        service_after = build_default_ingestion_service()
        assert service_after is not service_during
        service_after.shutdown()
    finally:
        build_default_database().dispose()
        _clear_caches(_CACHES)
