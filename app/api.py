"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from app.schemas import ForecastResponse, IngestionStatus, StationReadings, StationStatus
from datastore.readings_db import ReadingsDatabase, build_default_database
from services.forecast import build_station_forecast
from services.ingestion import IngestionService, build_default_ingestion_service
from settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


def get_database() -> ReadingsDatabase:
    return build_default_database()


def get_ingestion_service() -> IngestionService:
    return build_default_ingestion_service()


@router.get(
    "/forecast/{station_id}",
    response_model=ForecastResponse,
    summary="Twelve-hour forecast (48 x 15 minutes) for a weather station.",
)
async def get_forecast(
    station_id: str,
    database: ReadingsDatabase = Depends(get_database),
) -> ForecastResponse:
    history_rows = get_settings().forecast_history_rows
    try:
        rows = database.recent_weather(station_id, history_rows)
    except SQLAlchemyError as exc:
        logger.error(
            "Forecast query failed",
            extra={"station_id": station_id, "error": exc.__class__.__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while generating forecast.",
        ) from exc

    if not rows:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No data found for this station.",
        )
    return ForecastResponse.model_validate(build_station_forecast(station_id, rows))


def _latest_readings(
    fetch: Callable[[str, int], List[Dict[str, Any]]],
    station_id: str,
    limit: int,
) -> StationReadings:
    try:
        rows = fetch(station_id, limit)
    except SQLAlchemyError as exc:
        logger.error(
            "Latest readings query failed",
            extra={"station_id": station_id, "error": exc.__class__.__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error",
        ) from exc
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No data found for station {station_id!r}.",
        )
    return StationReadings(station=station_id, count=len(rows), data=rows)


@router.get(
    "/stations/{station_id}/weather/latest",
    response_model=StationReadings,
    summary="Newest weather-station rows.",
)
async def get_latest_weather(
    station_id: str,
    limit: int = Query(50, ge=1, le=1000),
    database: ReadingsDatabase = Depends(get_database),
) -> StationReadings:
    return _latest_readings(database.latest_weather, station_id, limit)


@router.get(
    "/stations/{station_id}/gauge/latest",
    response_model=StationReadings,
    summary="Newest river-gauge rows.",
)
async def get_latest_gauge(
    station_id: str,
    limit: int = Query(50, ge=1, le=1000),
    database: ReadingsDatabase = Depends(get_database),
) -> StationReadings:
    return _latest_readings(database.latest_gauge, station_id, limit)


@router.get(
    "/ingestion/status",
    response_model=IngestionStatus,
    summary="Last file and tick outcome for every configured station.",
)
async def get_ingestion_status(
    request: Request,
    service: IngestionService = Depends(get_ingestion_service),
) -> IngestionStatus:
    scheduler = getattr(request.app.state, "scheduler", None)
    return IngestionStatus(
        scheduler_running=bool(scheduler and scheduler.running),
        stations=[StationStatus(**entry) for entry in service.status()],
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
