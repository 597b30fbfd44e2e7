"""Persistence sink tests against a throwaway SQLite file."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from datastore.readings_db import GAUGE_TABLE, WEATHER_TABLE, ReadingsDatabase
from models.records import GaugeRecord, WeatherRecord

BASE_TIME = datetime(2024, 6, 1, 0, 0, 0)


@pytest.fixture()
def database(tmp_path: Path) -> ReadingsDatabase:
    db = ReadingsDatabase(f"sqlite:///{tmp_path / 'readings.db'}")
    db.create_tables()
    yield db
    db.dispose()


def _gauge(minutes: int, **values) -> GaugeRecord:
    return GaugeRecord(
        station_id=values.pop("station_id", "ST019"),
        device_id="32929",
        uid="U001",
        observed_at=BASE_TIME + timedelta(minutes=minutes),
        **values,
    )


def _weather(minutes: int, temperature: float) -> WeatherRecord:
    return WeatherRecord(
        station_id="ST019",
        device_id="31929",
        service_id="AWS",
        uid="U001",
        observed_at=BASE_TIME + timedelta(minutes=minutes),
        temperature=temperature,
    )


def test_insert_gauge_batch_and_read_back(database: ReadingsDatabase) -> None:
    result = database.insert_gauge([_gauge(0, snr=12.0), _gauge(15, snr=13.0, water_discharge=0.0)])

    assert result.ok
    assert result.row_count == 2
    rows = database.latest_gauge("ST019")
    assert [row["SNR"] for row in rows] == [13.0, 12.0]
    assert rows[0]["water_discharge"] == 0.0
    assert rows[0]["DeviceID"] == "32929"


def test_empty_batch_is_a_no_op(database: ReadingsDatabase) -> None:
    result = database.insert_weather([])

    assert result.ok
    assert result.row_count == 0
    assert database.latest_weather("ST019") == []


def test_latest_non_zero_skips_nulls_and_zeros(database: ReadingsDatabase) -> None:
    database.insert_gauge(
        [
            _gauge(0, water_discharge=8.0),
            _gauge(15, water_discharge=9.5),
            _gauge(30, water_discharge=0.0),
            _gauge(45),
            _gauge(60, water_discharge=3.0, station_id="ST020"),
        ]
    )

    assert database.latest_non_zero(GAUGE_TABLE, "ST019", "water_discharge") == 9.5
    assert database.latest_non_zero(GAUGE_TABLE, "ST019", "SNR") is None
    assert database.latest_non_zero(GAUGE_TABLE, "ST999", "water_discharge") is None


def test_latest_non_zero_rejects_unknown_names(database: ReadingsDatabase) -> None:
    with pytest.raises(ValueError):
        database.latest_non_zero(GAUGE_TABLE, "ST019", "water_discharge; DROP TABLE x")
    with pytest.raises(ValueError):
        database.latest_non_zero(GAUGE_TABLE, "ST019", "StationID")
    with pytest.raises(ValueError):
        database.latest_non_zero("users", "ST019", "water_discharge")


def test_recent_weather_is_oldest_first(database: ReadingsDatabase) -> None:
    database.insert_weather([_weather(minutes, float(minutes)) for minutes in (30, 0, 15, 45)])

    rows = database.recent_weather("ST019", limit=3)

    assert [row["temperature"] for row in rows] == [15.0, 30.0, 45.0]
    assert rows[0]["ServicesID"] == "AWS"
    assert rows[0]["eventStateID"] == "Instant"


def test_insert_failure_returns_error_result(tmp_path: Path) -> None:
    db = ReadingsDatabase(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        result = db.insert_weather([_weather(0, 1.0)])
    finally:
        db.dispose()

    assert not result.ok
    assert result.table == WEATHER_TABLE
    assert result.row_count == 0
    assert result.error


def test_in_memory_database_is_shared_across_connections() -> None:
    db = ReadingsDatabase("sqlite://")
    db.create_tables()

    db.insert_weather([_weather(0, 4.0)])

    assert db.latest_weather("ST019")[0]["temperature"] == 4.0
    db.dispose()
