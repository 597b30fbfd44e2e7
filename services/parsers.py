"""Per-station decoding of logger CSV exports into records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from models.records import GAUGE_COLUMN_NAMES, GaugeRecord, WeatherRecord
from models.stations import StationConfig, StationFamily
from services.cache import StaleValueCache
from services.tokenizer import (
    resolve_column,
    split_lines,
    to_float,
    to_index,
    token_at,
    tokenize_line,
)

logger = logging.getLogger(__name__)

HEADER_MARKER = "date time"
TRIPLET_FLAG = "B"

_LOGGER_TIMESTAMP = re.compile(
    r"(\d{2})/(\d{2})/(\d{2})/(\d{2})/(\d{4})/\s*(\d{2}):(\d{2}):(\d{2})"
)

# Record attribute -> header labels tried in order.
WEATHER_FIELDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("pir", ("PIR",)),
    ("avg_pir", ("Avg PIR",)),
    ("windspeed", ("wind speed",)),
    ("winddirection", ("Wind Direction",)),
    ("rain", ("Rain",)),
    ("temperature", ("Temp", "TEMPERATURE")),
    ("relative_humidity", ("Relative Humidity",)),
    ("pressure", ("Pressure",)),
    ("bucket_weight", ("Bucket Weight",)),
    ("precipitation", ("Current Precipitation", "Total Amount of Precipitation")),
)


def parse_logger_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Decode the weather logger's ``xx/DD/MM/xx/YYYY/ HH:MM:SS`` stamp."""
    if not raw:
        return None
    match = _LOGGER_TIMESTAMP.search(raw)
    if match is None:
        return None
    _, day, month, _, year, hour, minute, second = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def _header_lookup(header: Sequence[str], values: Sequence[str], labels: Sequence[str]) -> Optional[float]:
    # Labels are alternates for the same column; the first one present is used as read.
    for label in labels:
        index = resolve_column(header, label)
        if index >= 0:
            return to_float(token_at(values, index))
    return None


def parse_weather_file(
    text: str,
    station: StationConfig,
    now: Optional[datetime] = None,
) -> Optional[WeatherRecord]:
    """Decode the last data row following the ``Date Time`` header.

    Returns ``None`` when the header cannot be found or no data row follows it.
    """
    lines = split_lines(text)
    header_index = next(
        (index for index, line in enumerate(lines) if HEADER_MARKER in line.lower()),
        None,
    )
    if header_index is None:
        logger.warning(
            "Skipping file without a header row",
            extra={"station": station.name, "reason": "missing header"},
        )
        return None

    data_lines = lines[header_index + 1:]
    if not data_lines:
        logger.info(
            "Skipping file without data rows",
            extra={"station": station.name, "reason": "no data"},
        )
        return None

    header = tokenize_line(lines[header_index])
    values = tokenize_line(data_lines[-1])
    readings = {
        attribute: _header_lookup(header, values, labels)
        for attribute, labels in WEATHER_FIELDS
    }

    observed_at = parse_logger_timestamp(token_at(values, 0))
    if observed_at is None:
        logger.info(
            "Unparseable logger timestamp, using ingestion time",
            extra={"station": station.name, "reason": token_at(values, 0)},
        )
        observed_at = now or datetime.now()

    return WeatherRecord(
        station_id=station.station_id,
        device_id=station.device_id,
        service_id=station.service_id,
        uid=station.uid,
        observed_at=observed_at,
        **readings,
    )


@dataclass(frozen=True)
class IndexValuePair:
    index: int
    value: float


@dataclass(frozen=True)
class OtherToken:
    raw: str


TripletToken = Union[IndexValuePair, OtherToken]


def scan_triplets(tokens: Sequence[str]) -> List[TripletToken]:
    """Classify a gauge row into ``index, B, value`` pairs and leftover tokens."""
    stream: List[TripletToken] = []
    position = 0
    while position < len(tokens):
        index = to_index(tokens[position])
        if index is not None and token_at(tokens, position + 1) == TRIPLET_FLAG:
            value = to_float(token_at(tokens, position + 2))
            if value is not None:
                stream.append(IndexValuePair(index=index, value=value))
                position += 3
                continue
        stream.append(OtherToken(raw=tokens[position]))
        position += 1
    return stream


@dataclass(frozen=True)
class GaugeLayout:
    """Where each gauge measurement lives in a row.

    ``columns`` are absolute token positions, ``pairs`` are triplet indices.
    Fields named in ``substituted`` fall back to the cached last valid value
    when the row has them as zero or missing; every other field is reported
    exactly as read.
    """

    columns: Mapping[str, int] = field(default_factory=dict)
    pairs: Mapping[str, int] = field(default_factory=dict)
    substituted: Tuple[str, ...] = ()
    constants: Mapping[str, Optional[float]] = field(default_factory=dict)

    def substituted_columns(self) -> Tuple[Tuple[str, str], ...]:
        return tuple((name, GAUGE_COLUMN_NAMES.get(name, name)) for name in self.substituted)


GAUGE_LAYOUTS: Dict[StationFamily, GaugeLayout] = {
    StationFamily.gauge_triplet: GaugeLayout(
        columns={
            "surface_velocity": 10,
            "internal_temperature": 31,
            "charge_current": 34,
            "observed_current": 37,
            "battery_voltage": 40,
            "solar_panel_tracking": 43,
        },
        pairs={
            "avg_surface_velocity": 2,
            "water_dist_sensor": 3,
            "water_level": 4,
            "tilt_angle": 5,
            "flow_direction": 6,
            # Zero discharge is a real reading on this device.
            "water_discharge": 7,
        },
        substituted=("avg_surface_velocity",),
        constants={"snr": None},
    ),
    StationFamily.gauge_columns: GaugeLayout(
        columns={
            "surface_velocity": 1,
            "avg_surface_velocity": 2,
            "tilt_angle": 3,
            "snr": 5,
            "water_discharge": 6,
            "water_dist_sensor": 7,
            "water_level": 8,
        },
        substituted=(
            "surface_velocity",
            "avg_surface_velocity",
            "tilt_angle",
            "snr",
            "water_discharge",
            "water_dist_sensor",
            "water_level",
        ),
        constants={"flow_direction": 0.0},
    ),
}

SUBSTITUTED_PARAMETERS: Dict[StationFamily, Tuple[Tuple[str, str], ...]] = {
    family: layout.substituted_columns() for family, layout in GAUGE_LAYOUTS.items()
}


def decode_gauge_tokens(
    tokens: Sequence[str],
    station_id: str,
    layout: GaugeLayout,
    cache: StaleValueCache,
) -> Dict[str, Optional[float]]:
    values: Dict[str, Optional[float]] = {
        name: to_float(token_at(tokens, position)) for name, position in layout.columns.items()
    }
    if layout.pairs:
        by_index: Dict[int, float] = {}
        for token in scan_triplets(tokens):
            if isinstance(token, IndexValuePair):
                by_index[token.index] = token.value
        for name, index in layout.pairs.items():
            values[name] = by_index.get(index)
    for name in layout.substituted:
        values[name] = cache.substitute(station_id, name, values.get(name))
    values.update(layout.constants)
    return values


def parse_gauge_file(
    text: str,
    station: StationConfig,
    cache: StaleValueCache,
    now: Optional[datetime] = None,
) -> List[GaugeRecord]:
    """Decode every row in file order, carrying the cache forward row by row."""
    layout = GAUGE_LAYOUTS[station.family]
    observed_at = now or datetime.now()
    records: List[GaugeRecord] = []
    for row_number, line in enumerate(split_lines(text), start=1):
        tokens = tokenize_line(line)
        if all(to_float(token) is None for token in tokens):
            logger.debug(
                "Skipping line without numeric fields",
                extra={"station": station.name, "row_number": row_number},
            )
            continue
        values = decode_gauge_tokens(tokens, station.station_id, layout, cache)
        records.append(
            GaugeRecord(
                station_id=station.station_id,
                device_id=station.device_id,
                uid=station.uid,
                observed_at=observed_at,
                **values,
            )
        )
    return records


StationParser = Callable[
    [str, StationConfig, StaleValueCache, Optional[datetime]],
    List[Union[WeatherRecord, GaugeRecord]],
]


def _parse_weather_rows(
    text: str,
    station: StationConfig,
    cache: StaleValueCache,
    now: Optional[datetime] = None,
) -> List[Union[WeatherRecord, GaugeRecord]]:
    record = parse_weather_file(text, station, now=now)
    return [record] if record is not None else []


PARSERS: Dict[StationFamily, StationParser] = {
    StationFamily.weather: _parse_weather_rows,
    StationFamily.gauge_triplet: parse_gauge_file,
    StationFamily.gauge_columns: parse_gauge_file,
}


def parse_station_file(
    text: str,
    station: StationConfig,
    cache: StaleValueCache,
    now: Optional[datetime] = None,
) -> List[Union[WeatherRecord, GaugeRecord]]:
    return PARSERS[station.family](text, station, cache, now)
