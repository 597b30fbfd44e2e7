from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CSV_SUFFIX = ".csv"


def poll_latest_file(directory: PathLike) -> Optional[str]:
    """Return the name of the most recently modified CSV file in ``directory``.

    Unreadable directories are logged and reported as ``None`` so the caller
    simply tries again on its next tick.
    """
    root = Path(directory)
    try:
        entries = list(root.iterdir())
    except OSError as exc:
        logger.warning(
            "Cannot list station folder",
            extra={"file_name": str(root), "error": exc.strerror or str(exc)},
        )
        return None

    latest_name: Optional[str] = None
    latest_mtime: Optional[float] = None
    for entry in entries:
        if entry.suffix.lower() != CSV_SUFFIX:
            continue
        try:
            if not entry.is_file():
                continue
            mtime = entry.stat().st_mtime
        except OSError as exc:
            # The logger may rotate files while we are listing.
            logger.debug(
                "Skipping unreadable entry",
                extra={"file_name": entry.name, "error": str(exc)},
            )
            continue
        if latest_mtime is None or mtime > latest_mtime:
            latest_name = entry.name
            latest_mtime = mtime
    return latest_name


def read_text(directory: PathLike, name: str, encoding: str = "utf-8-sig") -> str:
    return (Path(directory) / name).read_text(encoding=encoding)


class IngestionCursor:
    """Remembers the last file name processed for each station."""

    def __init__(self) -> None:
        self._seen: Dict[str, str] = {}
        self._lock = Lock()

    def is_new(self, station: str, file_name: str) -> bool:
        with self._lock:
            return self._seen.get(station) != file_name

    def advance(self, station: str, file_name: str) -> None:
        with self._lock:
            self._seen[station] = file_name

    def get(self, station: str) -> Optional[str]:
        with self._lock:
            return self._seen.get(station)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._seen)
