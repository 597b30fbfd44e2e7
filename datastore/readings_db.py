from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from models.records import GaugeRecord, WeatherRecord
from settings import get_settings

logger = logging.getLogger(__name__)

WEATHER_TABLE = "AWS_retrieved_db_data"
GAUGE_TABLE = "EWS_retrieved_db_data"

metadata = MetaData()

weather_table = Table(
    WEATHER_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("DeviceID", String(32)),
    Column("StationID", String(16), index=True),
    Column("ServicesID", String(16)),
    Column("eventStateID", String(32)),
    Column("windspeed", Float),
    Column("winddirection", Float),
    Column("temperature", Float),
    Column("relative_humidity", Float),
    Column("pressure", Float),
    Column("PIR", Float),
    Column("avg_PIR", Float),
    Column("bucket_weight", Float),
    Column("precipitation", Float),
    Column("rain", Float),
    Column("timestamp", DateTime, index=True),
    Column("UID", String(16)),
)

gauge_table = Table(
    GAUGE_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("StationID", String(16), index=True),
    Column("DeviceID", String(32)),
    Column("surface_velocity", Float),
    Column("avg_surface_velocity", Float),
    Column("water_dist_sensor", Float),
    Column("water_level", Float),
    Column("water_discharge", Float),
    Column("tilt_angle", Float),
    Column("flow_direction", Float),
    Column("SNR", Float),
    Column("internal_temperature", Float),
    Column("charge_current", Float),
    Column("observed_current", Float),
    Column("battery_voltage", Float),
    Column("solar_panel_tracking", Float),
    Column("timestamp", DateTime, index=True),
    Column("UID", String(16)),
)

_TABLES: Dict[str, Table] = {WEATHER_TABLE: weather_table, GAUGE_TABLE: gauge_table}


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one batched insert."""

    table: str
    row_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _engine_for(url: str) -> Engine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, pool_recycle=3600)
    if parsed.database in (None, "", ":memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args={"check_same_thread": False})


class ReadingsDatabase:
    """Relational store for decoded weather and gauge readings."""

    def __init__(self, url: str, engine: Optional[Engine] = None) -> None:
        self.url = url
        self.engine = engine or _engine_for(url)

    def create_tables(self) -> None:
        metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def insert_weather(self, records: Sequence[WeatherRecord]) -> WriteResult:
        return self._insert(weather_table, [record.to_row() for record in records])

    def insert_gauge(self, records: Sequence[GaugeRecord]) -> WriteResult:
        return self._insert(gauge_table, [record.to_row() for record in records])

    def latest_non_zero(self, table: str, station_id: str, column: str) -> Optional[float]:
        """Most recent stored value of ``column`` that is neither NULL nor zero."""
        source = self._table(table)
        target = self._column(source, column)
        statement = (
            select(target)
            .where(source.c.StationID == station_id)
            .where(target.is_not(None))
            .where(target != 0)
            .order_by(source.c.timestamp.desc())
            .limit(1)
        )
        with self.engine.connect() as conn:
            value = conn.execute(statement).scalar_one_or_none()
        return float(value) if value is not None else None

    def recent_weather(self, station_id: str, limit: int) -> List[Dict[str, Any]]:
        """Newest ``limit`` weather rows for a station, ordered oldest first."""
        rows = self.latest_weather(station_id, limit)
        rows.reverse()
        return rows

    def latest_weather(self, station_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self._latest(weather_table, station_id, limit)

    def latest_gauge(self, station_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self._latest(gauge_table, station_id, limit)

    def _latest(self, table: Table, station_id: str, limit: int) -> List[Dict[str, Any]]:
        statement = (
            select(table)
            .where(table.c.StationID == station_id)
            .order_by(table.c.timestamp.desc(), table.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(statement).mappings()]

    def _insert(self, table: Table, rows: List[Dict[str, Any]]) -> WriteResult:
        if not rows:
            return WriteResult(table=table.name)
        try:
            with self.engine.begin() as conn:
                conn.execute(table.insert(), rows)
        except SQLAlchemyError as exc:
            logger.error(
                "Batch insert failed",
                extra={"row_count": len(rows), "error": exc.__class__.__name__},
            )
            return WriteResult(table=table.name, error=str(exc))
        return WriteResult(table=table.name, row_count=len(rows))

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return _TABLES[name]
        except KeyError as exc:
            raise ValueError(f"Unknown readings table {name!r}.") from exc

    @staticmethod
    def _column(table: Table, name: str) -> Column:
        if name in {"id", "StationID", "DeviceID", "UID", "timestamp"} or name not in table.c:
            raise ValueError(f"Column {name!r} is not a measurement of {table.name!r}.")
        return table.c[name]


@lru_cache
def build_default_database(url: Optional[str] = None) -> ReadingsDatabase:
    settings = get_settings()
    database_url = settings.database_url if url is None else url
    return ReadingsDatabase(database_url)
