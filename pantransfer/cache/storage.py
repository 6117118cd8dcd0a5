"""Snapshot storage backends for cache and history tables.

A storage backend persists whole-table snapshots. Writes always replace the
previous snapshot of a table as a unit, so an interrupted write can never
leave a partially updated table behind.
"""

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from ..exceptions import CacheStorageError

logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    """Durable key-value storage holding one snapshot per table."""

    def load_snapshot(self, table: str) -> Optional[dict[str, Any]]:
        """Return the stored snapshot of a table, or None if absent."""
        ...

    def persist_snapshot(self, table: str, data: dict[str, Any]) -> None:
        """Atomically replace the stored snapshot of a table."""
        ...


class JsonFileStorage:
    """Stores each table as a JSON file in a directory.

    Files are written to a temporary file in the same directory and then
    moved over the previous snapshot with ``os.replace``.
    """

    def __init__(self, directory: Path):
        """Initialize JSON file storage.

        Args:
            directory: Directory for the snapshot files (created on demand)
        """
        self.directory = Path(directory)

    def _path_for(self, table: str) -> Path:
        return self.directory / f"{table}.json"

    def load_snapshot(self, table: str) -> Optional[dict[str, Any]]:
        path = self._path_for(table)
        if not path.exists():
            logger.debug(f"No snapshot for table {table} at {path}")
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CacheStorageError(f"Failed to load snapshot {path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheStorageError(f"Snapshot {path} is not a JSON object")
        return data

    def persist_snapshot(self, table: str, data: dict[str, Any]) -> None:
        path = self._path_for(table)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{table}.", suffix=".tmp", dir=self.directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise CacheStorageError(f"Failed to persist snapshot {path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug(f"Persisted snapshot for table {table} to {path}")


class MemoryStorage:
    """In-process storage, mainly for tests and ephemeral runs."""

    def __init__(self, snapshots: Optional[dict[str, dict[str, Any]]] = None):
        self.snapshots: dict[str, dict[str, Any]] = dict(snapshots or {})

    def load_snapshot(self, table: str) -> Optional[dict[str, Any]]:
        data = self.snapshots.get(table)
        return copy.deepcopy(data) if data is not None else None

    def persist_snapshot(self, table: str, data: dict[str, Any]) -> None:
        self.snapshots[table] = copy.deepcopy(data)
