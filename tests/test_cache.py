"""Unit tests for the last-known-good value cache and its seeding."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import OperationalError

from models.stations import DEFAULT_STATIONS
from services.cache import StaleValueCache, is_valid_reading, seed_from_history
from services.parsers import SUBSTITUTED_PARAMETERS


class StubHistory:
    def __init__(self, values: Dict[Tuple[str, str], float], fail: bool = False) -> None:
        self.values = values
        self.fail = fail
        self.calls: list[Tuple[str, str, str]] = []

    def latest_non_zero(self, table: str, station_id: str, column: str) -> Optional[float]:
        self.calls.append((table, station_id, column))
        if self.fail:
            raise OperationalError("SELECT", {}, Exception("database is down"))
        return self.values.get((station_id, column))


def test_is_valid_reading() -> None:
    assert is_valid_reading(1.5)
    assert is_valid_reading(-0.2)
    assert not is_valid_reading(0.0)
    assert not is_valid_reading(None)
    assert not is_valid_reading(float("nan"))


def test_substitute_stores_valid_values_and_masks_dropouts() -> None:
    cache = StaleValueCache()

    assert cache.substitute("ST019", "snr", None) is None
    assert cache.substitute("ST019", "snr", 18.0) == 18.0
    assert cache.substitute("ST019", "snr", 0.0) == 18.0
    assert cache.substitute("ST019", "snr", None) == 18.0
    assert cache.get("ST019", "snr") == 18.0


def test_stations_are_isolated() -> None:
    cache = StaleValueCache()
    cache.set("ST019", "water_discharge", 5.0)

    assert cache.get("ST020", "water_discharge") is None
    assert cache.substitute("ST020", "water_discharge", 0.0) is None


def test_seed_ignores_zero_values() -> None:
    cache = StaleValueCache()
    cache.seed("ST019", "tilt_angle", 0.0)

    assert cache.get("ST019", "tilt_angle") is None
    assert ("ST019", "tilt_angle") in cache.snapshot()


def test_seed_from_history_covers_substituted_gauge_parameters() -> None:
    history = StubHistory(
        {
            ("ST020", "avg_surface_velocity"): 0.9,
            ("ST019", "SNR"): 17.0,
            ("ST019", "water_discharge"): 22.5,
        }
    )
    cache = StaleValueCache()

    seed_from_history(cache, history, DEFAULT_STATIONS, SUBSTITUTED_PARAMETERS, "EWS_retrieved_db_data")

    assert cache.get("ST020", "avg_surface_velocity") == 0.9
    assert cache.get("ST019", "snr") == 17.0
    assert cache.get("ST019", "water_discharge") == 22.5
    assert cache.get("ST019", "surface_velocity") is None
    queried_columns = {column for _, _, column in history.calls}
    assert "water_discharge" in queried_columns
    expected_calls = sum(
        len(SUBSTITUTED_PARAMETERS.get(station.family, ())) for station in DEFAULT_STATIONS
    )
    assert len(history.calls) == expected_calls


def test_seed_from_history_survives_database_errors(caplog) -> None:
    cache = StaleValueCache()
    cache.set("ST019", "snr", 3.0)

    with caplog.at_level(logging.WARNING):
        seed_from_history(
            cache,
            StubHistory({}, fail=True),
            DEFAULT_STATIONS,
            SUBSTITUTED_PARAMETERS,
            "EWS_retrieved_db_data",
        )

    assert cache.get("ST019", "snr") is None
    records = [record for record in caplog.records if record.name == "services.cache"]
    assert records
    assert all(record.levelno == logging.WARNING for record in records)
    assert {getattr(record, "parameter", None) for record in records} >= {"snr", "avg_surface_velocity"}
