"""Station table for the deployed weather and gauge installations."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import PurePath
from typing import Iterable, Optional, Tuple


class StationFamily(str, Enum):
    """Decoding policy applied to a station's CSV exports."""

    weather = "weather"
    gauge_triplet = "gauge_triplet"
    gauge_columns = "gauge_columns"


@dataclass(frozen=True)
class StationConfig:
    name: str
    folder: str
    station_id: str
    device_id: str
    uid: str
    family: StationFamily
    service_id: str = ""

    @property
    def is_gauge(self) -> bool:
        return self.family is not StationFamily.weather


DEFAULT_STATIONS: Tuple[StationConfig, ...] = (
    StationConfig(
        name="Lambagad AWS",
        folder="/Hydrology_Backup/Lambagad_AWS",
        station_id="ST015",
        device_id="31928",
        uid="U001",
        family=StationFamily.weather,
        service_id="AWS",
    ),
    StationConfig(
        name="Mana AWS",
        folder="/Hydrology_Backup/Mana_AWS",
        station_id="ST019",
        device_id="31929",
        uid="U001",
        family=StationFamily.weather,
        service_id="AWS",
    ),
    StationConfig(
        name="Vasudhara AWS",
        folder="/Hydrology_Backup/Vasudhara_AWS",
        station_id="ST020",
        device_id="31930",
        uid="U001",
        family=StationFamily.weather,
        service_id="AWS",
    ),
    StationConfig(
        name="Vasudhara EWS",
        folder="/Hydrology/Vasudhara_EWS",
        station_id="ST020",
        device_id="32930",
        uid="U001",
        family=StationFamily.gauge_triplet,
        service_id="EWS",
    ),
    StationConfig(
        name="Mana EWS",
        folder="/Hydrology_Backup/Mana_EWS",
        station_id="ST019",
        device_id="32929",
        uid="U001",
        family=StationFamily.gauge_columns,
        service_id="EWS",
    ),
)


def resolve_stations(
    root_path: Optional[str] = None,
    stations: Iterable[StationConfig] = DEFAULT_STATIONS,
) -> Tuple[StationConfig, ...]:
    """Relocate every station folder under ``root_path`` when one is given."""
    resolved = []
    seen: set[str] = set()
    for station in stations:
        if station.name in seen:
            raise ValueError(f"Duplicate station name {station.name!r}.")
        seen.add(station.name)
        if root_path:
            folder = str(PurePath(root_path) / PurePath(station.folder).name)
            station = replace(station, folder=folder)
        resolved.append(station)
    return tuple(resolved)


def find_station(name: str, stations: Iterable[StationConfig] = DEFAULT_STATIONS) -> StationConfig:
    lowered = name.strip().lower()
    for station in stations:
        if station.name.lower() == lowered:
            return station
    raise KeyError(f"Station {name!r} is not configured.")
