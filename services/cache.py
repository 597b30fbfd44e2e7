"""Last-known-good values used to mask gauge sensor dropouts."""

from __future__ import annotations

import logging
import math
from threading import Lock
from typing import Dict, Iterable, Mapping, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError

from models.stations import StationConfig, StationFamily

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


def is_valid_reading(value: Optional[float]) -> bool:
    """Non-null, finite and non-zero."""
    return value is not None and math.isfinite(value) and value != 0


class StaleValueCache:
    """Per-station, per-parameter store of the last valid reading.

    Entries are only ever overwritten, never expired. Stations are independent
    slices of the store keyed by station id.
    """

    def __init__(self) -> None:
        self._values: Dict[CacheKey, Optional[float]] = {}
        self._lock = Lock()

    def get(self, station_id: str, param: str) -> Optional[float]:
        with self._lock:
            return self._values.get((station_id, param))

    def set(self, station_id: str, param: str, value: Optional[float]) -> None:
        with self._lock:
            self._values[(station_id, param)] = value

    def seed(self, station_id: str, param: str, value: Optional[float]) -> None:
        self.set(station_id, param, value if is_valid_reading(value) else None)

    def substitute(self, station_id: str, param: str, fresh: Optional[float]) -> Optional[float]:
        """Store ``fresh`` when it is valid; otherwise fall back to the cached value."""
        key = (station_id, param)
        with self._lock:
            if is_valid_reading(fresh):
                self._values[key] = fresh
                return fresh
            return self._values.get(key)

    def snapshot(self) -> Dict[CacheKey, Optional[float]]:
        with self._lock:
            return dict(self._values)


class HistorySource(Protocol):
    def latest_non_zero(self, table: str, station_id: str, column: str) -> Optional[float]:
        ...


def seed_from_history(
    cache: StaleValueCache,
    source: HistorySource,
    stations: Iterable[StationConfig],
    parameters: Mapping[StationFamily, Tuple[Tuple[str, str], ...]],
    table: str,
) -> None:
    """Seed ``cache`` from the newest non-zero stored value of every substituted parameter.

    ``parameters`` maps a station family to ``(attribute, column)`` pairs. A
    lookup that fails leaves the entry as ``None``; the first fresh reading then
    becomes the baseline.
    """
    for station in stations:
        for attribute, column in parameters.get(station.family, ()):
            try:
                value = source.latest_non_zero(table, station.station_id, column)
            except SQLAlchemyError as exc:
                logger.warning(
                    "Could not seed cached value",
                    extra={
                        "station": station.name,
                        "parameter": attribute,
                        "error": exc.__class__.__name__,
                    },
                )
                value = None
            cache.seed(station.station_id, attribute, value)
            logger.debug(
                "Seeded cached value %s",
                value,
                extra={"station": station.name, "parameter": attribute},
            )
