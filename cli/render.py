from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Sequence

import typer

_FORECAST_SERIES = ("temperature", "humidity", "pressure", "windspeed", "rain")


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_forecast(payload: Dict[str, Any]) -> None:
    echo_heading("Forecast")
    echo_key_values(
        [
            ("station", payload.get("station")),
            ("forecastHours", payload.get("forecastHours")),
            ("interval", payload.get("interval")),
        ]
    )
    for name in _FORECAST_SERIES:
        series = payload.get(name) or []
        typer.echo()
        echo_heading(name)
        if series:
            typer.echo(f"  next: {series[0]}  end: {series[-1]}  points: {len(series)}")
            typer.echo("  " + ", ".join(str(value) for value in series))
        else:
            typer.echo("  No forecast available.")


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Ingestion Status")
    echo_key_values([("scheduler_running", payload.get("scheduler_running"))])
    stations = payload.get("stations") or []
    if not stations:
        typer.echo("No stations configured.")
        return
    for entry in stations:
        typer.echo(
            f"  - {entry.get('station')} ({entry.get('station_id')}): "
            f"file={entry.get('last_file')} status={entry.get('last_status')} "
            f"rows={entry.get('last_row_count')}"
        )


def render_records(records: Sequence[Any]) -> None:
    echo_heading(f"Decoded {len(records)} record(s)")
    for number, record in enumerate(records, start=1):
        typer.echo()
        echo_heading(f"Record {number}")
        echo_key_values(asdict(record).items())


def render_outcomes(outcomes: Sequence[Any]) -> None:
    echo_heading("Tick Outcomes")
    for outcome in outcomes:
        line = f"  - {outcome.station}: {outcome.status.value}"
        if outcome.file_name:
            line += f" file={outcome.file_name}"
        if outcome.row_count:
            line += f" rows={outcome.row_count}"
        if outcome.error:
            line += f" error={outcome.error}"
        typer.echo(line)
