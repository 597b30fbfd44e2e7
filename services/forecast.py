"""Short-horizon linear extrapolation from two moving averages."""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

FORECAST_HORIZON = 48
FORECAST_HOURS = 12
FORECAST_INTERVAL = "15 minutes"

MIN_HISTORY = 10
SHORT_WINDOW = 8
LONG_WINDOW = 32
DAMPING = 0.25

# Response key -> weather table column.
FORECAST_PARAMETERS: Mapping[str, str] = {
    "temperature": "temperature",
    "humidity": "relative_humidity",
    "pressure": "pressure",
    "windspeed": "windspeed",
    "rain": "rain",
}


def moving_average(series: Sequence[float], size: int) -> Optional[float]:
    """Mean of the last ``size`` points, or ``None`` when there are fewer."""
    if size <= 0 or len(series) < size:
        return None
    window = series[-size:]
    return sum(window) / len(window)


def _window_average(series: Sequence[float], size: int) -> float:
    average = moving_average(series, size)
    if average is None:
        return sum(series) / len(series)
    return average


def trend_for(series: Sequence[float]) -> float:
    short = _window_average(series, SHORT_WINDOW)
    long = _window_average(series, LONG_WINDOW)
    return (short - long) * DAMPING


def forecast(series: Sequence[float], horizon_steps: int = FORECAST_HORIZON) -> List[float]:
    """Extend ``series`` by ``horizon_steps`` points along a constant trend.

    Short histories give a flat line at the last observed value (0 when empty).
    """
    if horizon_steps <= 0:
        return []
    if len(series) < MIN_HISTORY:
        last = float(series[-1]) if series else 0.0
        return [round(last, 2)] * horizon_steps

    trend = trend_for(series)
    value = float(series[-1])
    points: List[float] = []
    for _ in range(horizon_steps):
        value += trend
        points.append(round(value, 2))
    return points


def clean_series(values: Iterable[Any]) -> List[float]:
    """Drop missing or non-numeric history values."""
    cleaned: List[float] = []
    for value in values:
        if value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            cleaned.append(number)
    return cleaned


def build_station_forecast(
    station_id: str,
    rows: Sequence[Mapping[str, Any]],
    horizon_steps: int = FORECAST_HORIZON,
) -> Dict[str, Any]:
    """Forecast every weather parameter from rows ordered oldest to newest."""
    payload: Dict[str, Any] = {
        "station": station_id,
        "forecastHours": FORECAST_HOURS,
        "interval": FORECAST_INTERVAL,
    }
    for key, column in FORECAST_PARAMETERS.items():
        series = clean_series(row.get(column) for row in rows)
        payload[key] = forecast(series, horizon_steps)
    return payload
