"""Per-station poll, parse and persist cycle."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import lru_cache
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from datastore.readings_db import GAUGE_TABLE, ReadingsDatabase, WriteResult, build_default_database
from models.stations import StationConfig, resolve_stations
from services.cache import StaleValueCache, seed_from_history
from services.parsers import SUBSTITUTED_PARAMETERS, parse_station_file
from settings import get_settings
from storage.directory import IngestionCursor, poll_latest_file, read_text

logger = logging.getLogger(__name__)


class TickStatus(str, Enum):
    """How a single station tick ended."""

    skipped_no_file = "skipped_no_file"
    skipped_unchanged = "skipped_unchanged"
    read_failed = "read_failed"
    parse_skipped = "parse_skipped"
    written = "written"
    write_failed = "write_failed"
    write_timeout = "write_timeout"


@dataclass(frozen=True)
class TickOutcome:
    station: str
    status: TickStatus
    file_name: Optional[str] = None
    row_count: int = 0
    error: Optional[str] = None
    finished_at: datetime = field(default_factory=datetime.now)


class IngestionService:
    """Runs station ticks and hands decoded rows to the readings database."""

    def __init__(
        self,
        database: ReadingsDatabase,
        cache: StaleValueCache,
        stations: Sequence[StationConfig],
        workers: int = 4,
        write_timeout: float = 10.0,
        cursor: Optional[IngestionCursor] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.database = database
        self.cache = cache
        self.stations = tuple(stations)
        self.cursor = cursor or IngestionCursor()
        self.write_timeout = write_timeout
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="readings-write")
        self._clock = clock
        self._station_locks: Dict[str, Lock] = {station.name: Lock() for station in self.stations}
        self._outcomes: Dict[str, TickOutcome] = {}
        self._outcomes_lock = Lock()

    def seed_cache(self) -> None:
        """Load last non-zero gauge values so substitution survives restarts."""
        gauge_stations = [station for station in self.stations if station.is_gauge]
        seed_from_history(
            self.cache,
            self.database,
            gauge_stations,
            SUBSTITUTED_PARAMETERS,
            GAUGE_TABLE,
        )

    def run_tick(self, station: StationConfig) -> TickOutcome:
        """Poll one station folder and ingest its newest file if it changed.

        A station's ticks never overlap; different stations run independently.
        """
        lock = self._station_locks.setdefault(station.name, Lock())
        with lock:
            outcome = self._run_tick(station)
        with self._outcomes_lock:
            self._outcomes[station.name] = outcome
        return outcome

    def run_all(self) -> List[TickOutcome]:
        return [self.run_tick(station) for station in self.stations]

    def status(self) -> List[Dict[str, Any]]:
        cursor = self.cursor.snapshot()
        with self._outcomes_lock:
            outcomes = dict(self._outcomes)
        report = []
        for station in self.stations:
            outcome = outcomes.get(station.name)
            report.append(
                {
                    "station": station.name,
                    "station_id": station.station_id,
                    "family": station.family.value,
                    "folder": station.folder,
                    "last_file": cursor.get(station.name),
                    "last_status": outcome.status.value if outcome else None,
                    "last_row_count": outcome.row_count if outcome else 0,
                    "last_tick_at": outcome.finished_at if outcome else None,
                }
            )
        return report

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _run_tick(self, station: StationConfig) -> TickOutcome:
        latest = poll_latest_file(station.folder)
        if latest is None:
            return TickOutcome(station=station.name, status=TickStatus.skipped_no_file)

        if not self.cursor.is_new(station.name, latest):
            return TickOutcome(
                station=station.name, status=TickStatus.skipped_unchanged, file_name=latest
            )
        self.cursor.advance(station.name, latest)
        logger.info("Processing new file", extra={"station": station.name, "file_name": latest})

        try:
            text = read_text(station.folder, latest)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "Cannot read station file",
                extra={"station": station.name, "file_name": latest, "error": str(exc)},
            )
            return TickOutcome(
                station=station.name,
                status=TickStatus.read_failed,
                file_name=latest,
                error=str(exc),
            )

        records = parse_station_file(text, station, self.cache, now=self._clock())
        if not records:
            return TickOutcome(station=station.name, status=TickStatus.parse_skipped, file_name=latest)

        return self._write(station, latest, records)

    def _write(self, station: StationConfig, file_name: str, records: Sequence[Any]) -> TickOutcome:
        writer = self.database.insert_gauge if station.is_gauge else self.database.insert_weather
        start_time = time.perf_counter()
        future = self.executor.submit(writer, records)
        try:
            result: WriteResult = future.result(timeout=self.write_timeout)
        except FutureTimeoutError:
            # The insert keeps running; this tick just stops waiting for it.
            logger.warning(
                "Timed out waiting for batch insert",
                extra={"station": station.name, "file_name": file_name, "row_count": len(records)},
            )
            return TickOutcome(
                station=station.name,
                status=TickStatus.write_timeout,
                file_name=file_name,
                row_count=len(records),
            )

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        if not result.ok:
            logger.error(
                "Dropped batch after insert failure",
                extra={
                    "station": station.name,
                    "file_name": file_name,
                    "row_count": len(records),
                    "error": result.error,
                },
            )
            return TickOutcome(
                station=station.name,
                status=TickStatus.write_failed,
                file_name=file_name,
                error=result.error,
            )

        logger.info(
            "Inserted readings",
            extra={
                "station": station.name,
                "file_name": file_name,
                "row_count": result.row_count,
                "elapsed_ms": elapsed_ms,
            },
        )
        return TickOutcome(
            station=station.name,
            status=TickStatus.written,
            file_name=file_name,
            row_count=result.row_count,
        )


class IngestionScheduler:
    """One repeating asyncio task per station."""

    def __init__(self, service: IngestionService, interval: float = 60.0) -> None:
        self.service = service
        self.interval = interval
        self._tasks: Dict[str, asyncio.Task[None]] = {}

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def start(self, stations: Optional[Iterable[StationConfig]] = None) -> None:
        for station in stations or self.service.stations:
            if station.name in self._tasks:
                continue
            self._tasks[station.name] = asyncio.create_task(
                self._run_station(station), name=f"ingest:{station.name}"
            )
        logger.info("Ingestion scheduler started for %d stations", len(self._tasks))

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_station(self, station: StationConfig) -> None:
        while True:
            try:
                await asyncio.to_thread(self.service.run_tick, station)
            except Exception:  # noqa: BLE001 - a failed tick must not stop polling
                logger.exception("Ingestion tick failed", extra={"station": station.name})
            await asyncio.sleep(self.interval)


@lru_cache
def build_default_ingestion_service(workers: Optional[int] = None) -> IngestionService:
    """Factory that wires the ingestion service from settings."""
    settings = get_settings()
    return IngestionService(
        database=build_default_database(),
        cache=StaleValueCache(),
        stations=resolve_stations(settings.station_root_path),
        workers=workers or settings.ingest_workers,
        write_timeout=settings.write_timeout_seconds,
    )
