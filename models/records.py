"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(slots=True, frozen=True)
class WeatherRecord:
    """Latest reading decoded from a weather-station (AWS) export."""

    station_id: str
    device_id: str
    service_id: str
    uid: str
    observed_at: datetime
    event_type: str = "Instant"
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    relative_humidity: Optional[float] = None
    windspeed: Optional[float] = None
    winddirection: Optional[float] = None
    rain: Optional[float] = None
    precipitation: Optional[float] = None
    bucket_weight: Optional[float] = None
    pir: Optional[float] = None
    avg_pir: Optional[float] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "DeviceID": self.device_id,
            "StationID": self.station_id,
            "ServicesID": self.service_id,
            "eventStateID": self.event_type,
            "windspeed": self.windspeed,
            "winddirection": self.winddirection,
            "temperature": self.temperature,
            "relative_humidity": self.relative_humidity,
            "pressure": self.pressure,
            "PIR": self.pir,
            "avg_PIR": self.avg_pir,
            "bucket_weight": self.bucket_weight,
            "precipitation": self.precipitation,
            "rain": self.rain,
            "timestamp": self.observed_at,
            "UID": self.uid,
        }


@dataclass(slots=True, frozen=True)
class GaugeRecord:
    """One row decoded from a river-gauge (EWS) export."""

    station_id: str
    device_id: str
    uid: str
    observed_at: datetime
    surface_velocity: Optional[float] = None
    avg_surface_velocity: Optional[float] = None
    water_dist_sensor: Optional[float] = None
    water_level: Optional[float] = None
    water_discharge: Optional[float] = None
    tilt_angle: Optional[float] = None
    flow_direction: Optional[float] = None
    snr: Optional[float] = None
    internal_temperature: Optional[float] = None
    charge_current: Optional[float] = None
    observed_current: Optional[float] = None
    battery_voltage: Optional[float] = None
    solar_panel_tracking: Optional[float] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "StationID": self.station_id,
            "DeviceID": self.device_id,
            "surface_velocity": self.surface_velocity,
            "avg_surface_velocity": self.avg_surface_velocity,
            "water_dist_sensor": self.water_dist_sensor,
            "water_level": self.water_level,
            "water_discharge": self.water_discharge,
            "tilt_angle": self.tilt_angle,
            "flow_direction": self.flow_direction,
            "SNR": self.snr,
            "internal_temperature": self.internal_temperature,
            "charge_current": self.charge_current,
            "observed_current": self.observed_current,
            "battery_voltage": self.battery_voltage,
            "solar_panel_tracking": self.solar_panel_tracking,
            "timestamp": self.observed_at,
            "UID": self.uid,
        }


# Record attributes whose column name in the gauge table differs.
GAUGE_COLUMN_NAMES = {"snr": "SNR"}
