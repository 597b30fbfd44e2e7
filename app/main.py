from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from app.api import router
from datastore.readings_db import build_default_database
from logging_config import configure_logging
from services.ingestion import IngestionScheduler, build_default_ingestion_service
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    try:
        build_default_database().create_tables()
    except SQLAlchemyError as exc:
        # Polling still runs; inserts fail and are logged until the database is back.
        logger.error("Could not prepare readings tables", extra={"error": exc.__class__.__name__})
    service = build_default_ingestion_service()
    service.seed_cache()

    scheduler = IngestionScheduler(service, interval=settings.poll_interval_seconds)
    app.state.scheduler = scheduler
    if settings.ingestion_enabled:
        scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()
        service.shutdown()
        build_default_ingestion_service.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Hydrology Ingest",
        description="Station CSV ingestion with last-known-good caching and short-range forecasts.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
