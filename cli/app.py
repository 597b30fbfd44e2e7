from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_forecast, render_outcomes, render_records, render_status
from datastore.readings_db import build_default_database
from logging_config import configure_logging
from models.stations import find_station
from services.cache import StaleValueCache
from services.ingestion import build_default_ingestion_service
from services.parsers import parse_station_file


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for operating the hydrology ingestion service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("forecast")
def forecast_command(
    ctx: typer.Context,
    station_id: str = typer.Argument(..., help="Station code, e.g. ST019."),
) -> None:
    """Fetch the twelve-hour forecast for a weather station."""
    state = _get_state(ctx)
    payload = state.client.get_forecast(station_id)
    render_forecast(payload)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the last ingested file and tick outcome per station."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("parse")
def parse_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
    station: str = typer.Option(..., "--station", "-s", help="Configured station name, e.g. 'Mana EWS'."),
) -> None:
    """Decode a local CSV with a station's parser without storing anything."""
    try:
        config = find_station(station)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0]), param_hint="--station") from exc
    text = file.read_text(encoding="utf-8-sig")
    records = parse_station_file(text, config, StaleValueCache())
    if not records:
        typer.secho("No records decoded.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    render_records(records)


@app.command("ingest-once")
def ingest_once_command() -> None:
    """Run one ingestion tick for every configured station."""
    configure_logging()
    database = build_default_database()
    database.create_tables()
    service = build_default_ingestion_service()
    try:
        service.seed_cache()
        outcomes = service.run_all()
    finally:
        service.shutdown()
    render_outcomes(outcomes)
