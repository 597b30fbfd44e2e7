"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ForecastResponse(BaseModel):
    """Twelve-hour extrapolation of a weather station's recent readings."""

    model_config = ConfigDict(populate_by_name=True)

    station: str
    forecast_hours: int = Field(..., alias="forecastHours")
    interval: str
    temperature: List[float]
    humidity: List[float]
    pressure: List[float]
    windspeed: List[float]
    rain: List[float]


class StationReadings(BaseModel):
    """Newest stored rows for one station."""

    station: str
    count: int = Field(..., ge=0)
    data: List[Dict[str, Any]] = Field(default_factory=list)


class StationStatus(BaseModel):
    """Ingestion progress for one configured station."""

    station: str
    station_id: str
    family: str
    folder: str
    last_file: Optional[str] = None
    last_status: Optional[str] = None
    last_row_count: int = 0
    last_tick_at: Optional[datetime] = None


class IngestionStatus(BaseModel):
    scheduler_running: bool
    stations: List[StationStatus] = Field(default_factory=list)
