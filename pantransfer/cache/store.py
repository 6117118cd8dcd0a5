"""Persistent idempotency caches for transfer jobs.

The store keeps three independent tables:

- directory listings: normalized path -> file names in that directory
- ensured directories: normalized path -> time the directory was confirmed
- completed transfers: share signature -> time the transfer completed

In-memory state is authoritative. ``flush()`` writes the current snapshot of
every changed table through the storage backend; storage failures are logged
and never raised, so a job always completes against the in-memory state.
"""

import logging
import threading
import time
from collections.abc import Iterable
from typing import Any, Callable, Optional

from ..config import Config
from ..exceptions import CacheStorageError
from ..utils import (
    CACHE_VERSION,
    DEFAULT_MAX_COMPLETED_ENTRIES,
    DEFAULT_MAX_DIRECTORY_ENTRIES,
    DEFAULT_MAX_ENSURED_ENTRIES,
    ROOT_PATH,
    is_same_or_related_path,
    normalize_path,
)
from .storage import JsonFileStorage, SnapshotStorage

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class BoundedTable:
    """Key -> timestamp table pruned oldest-first to a fixed capacity.

    Every mutating call prunes before returning, so the table never holds
    more than ``capacity`` entries. The key written by the call itself is
    never evicted by that call.
    """

    table_name = ""

    def __init__(self, capacity: int, clock: Clock = time.time):
        if capacity < 1:
            raise ValueError(f"Table capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._clock = clock
        self._timestamps: dict[str, float] = {}
        self._lock = threading.RLock()
        self.dirty = False

    def __len__(self) -> int:
        return len(self._timestamps)

    def __contains__(self, key: object) -> bool:
        return key in self._timestamps

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._timestamps)

    def timestamp(self, key: str) -> Optional[float]:
        return self._timestamps.get(key)

    def _touch(self, key: str) -> None:
        # Re-insert so dict order doubles as recency for equal timestamps
        self._timestamps.pop(key, None)
        self._timestamps[key] = self._clock()
        self.dirty = True
        self._prune(protect=key)

    def _prune(self, protect: Optional[str] = None) -> int:
        excess = len(self._timestamps) - self.capacity
        if excess <= 0:
            return 0
        candidates = sorted(
            (key for key in self._timestamps if key != protect),
            key=lambda key: self._timestamps[key],
        )
        for key in candidates[:excess]:
            self._evict(key)
        logger.debug(f"Pruned {excess} entries from cache table {self.table_name}")
        return excess

    def _evict(self, key: str) -> None:
        self._timestamps.pop(key, None)

    def discard(self, key: str) -> bool:
        """Remove a key; returns True if it was present."""
        with self._lock:
            if key not in self._timestamps:
                return False
            self._evict(key)
            self.dirty = True
            return True

    def clear(self) -> None:
        with self._lock:
            for key in list(self._timestamps):
                self._evict(key)
            self.dirty = True

    def to_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": CACHE_VERSION,
                "entries": {key: ts for key, ts in self._timestamps.items()},
            }

    def load_snapshot(self, data: Optional[dict[str, Any]]) -> None:
        """Replace the table content with a stored snapshot.

        Snapshots of another version or with an unexpected shape load as an
        empty table.
        """
        with self._lock:
            for key in list(self._timestamps):
                self._evict(key)
            self.dirty = False
            if not data or data.get("version") != CACHE_VERSION:
                if data:
                    logger.warning(
                        f"Discarding cache table {self.table_name}: "
                        f"unsupported version {data.get('version')!r}"
                    )
                return
            entries = data.get("entries")
            if not isinstance(entries, dict):
                return
            ordered = sorted(
                entries.items(), key=lambda item: self._entry_time(item[1])
            )
            for key, value in ordered:
                if isinstance(key, str) and key:
                    self._load_entry(key, value)
            self._prune()

    @staticmethod
    def _entry_time(value: Any) -> float:
        if isinstance(value, dict):
            value = value.get("updated_at", 0)
        return float(value) if isinstance(value, (int, float)) else 0.0

    def _load_entry(self, key: str, value: Any) -> None:
        self._timestamps[key] = self._entry_time(value)


class DirectoryListingTable(BoundedTable):
    """Cached file names of remote directories.

    ``get`` returning None means the listing is unknown and the directory
    must be listed again; it never means the directory is empty.
    """

    table_name = "directories"

    def __init__(self, capacity: int, clock: Clock = time.time):
        super().__init__(capacity, clock)
        self._files: dict[str, frozenset[str]] = {}

    def get(self, path: str) -> Optional[frozenset[str]]:
        with self._lock:
            return self._files.get(normalize_path(path))

    def put(self, path: str, names: Iterable[str]) -> None:
        """Overwrite the listing of a directory."""
        key = normalize_path(path)
        files = frozenset(name for name in names if isinstance(name, str) and name)
        with self._lock:
            self._files[key] = files
            self._touch(key)

    def add_names(self, path: str, names: Iterable[str]) -> bool:
        """Merge names into a cached listing; no-op if the listing is unknown."""
        key = normalize_path(path)
        with self._lock:
            current = self._files.get(key)
            if current is None:
                return False
            self._files[key] = current | frozenset(n for n in names if n)
            self._touch(key)
            return True

    def _evict(self, key: str) -> None:
        super()._evict(key)
        self._files.pop(key, None)

    def to_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": CACHE_VERSION,
                "entries": {
                    key: {"files": sorted(self._files.get(key, ())), "updated_at": ts}
                    for key, ts in self._timestamps.items()
                },
            }

    def _load_entry(self, key: str, value: Any) -> None:
        if not isinstance(value, dict) or not isinstance(value.get("files"), list):
            return
        super()._load_entry(key, value)
        self._files[key] = frozenset(
            name for name in value["files"] if isinstance(name, str) and name
        )


class EnsuredDirectoryTable(BoundedTable):
    """Directories confirmed to exist on the remote side. Root always is."""

    table_name = "ensured"

    def is_ensured(self, path: str) -> bool:
        key = normalize_path(path)
        return key == ROOT_PATH or key in self._timestamps

    def mark_ensured(self, path: str) -> None:
        key = normalize_path(path)
        if key == ROOT_PATH:
            return
        with self._lock:
            self._touch(key)


class CompletedTransferTable(BoundedTable):
    """Signatures of shares whose transfer has completed."""

    table_name = "completed"

    def has(self, signature: Optional[str]) -> bool:
        return bool(signature) and signature in self._timestamps

    def record(self, signature: Optional[str]) -> None:
        if not signature:
            return
        with self._lock:
            self._touch(signature)

    def remove_many(self, signatures: Iterable[Optional[str]]) -> int:
        """Remove signatures; returns how many were present."""
        removed = 0
        for signature in signatures:
            normalized = signature.strip() if isinstance(signature, str) else ""
            if normalized and self.discard(normalized):
                removed += 1
        return removed


class CacheStore:
    """Directory-listing, ensured-directory and completed-transfer caches."""

    def __init__(
        self,
        storage: SnapshotStorage,
        max_directory_entries: int = DEFAULT_MAX_DIRECTORY_ENTRIES,
        max_ensured_entries: int = DEFAULT_MAX_ENSURED_ENTRIES,
        max_completed_entries: int = DEFAULT_MAX_COMPLETED_ENTRIES,
        clock: Clock = time.time,
    ):
        """Initialize the cache store.

        Args:
            storage: Snapshot storage backend
            max_directory_entries: Capacity of the directory listing table
            max_ensured_entries: Capacity of the ensured-directory table
            max_completed_entries: Capacity of the completed-transfer table
            clock: Time source (seconds), injectable for tests
        """
        self.storage = storage
        self.directories = DirectoryListingTable(max_directory_entries, clock)
        self.ensured = EnsuredDirectoryTable(max_ensured_entries, clock)
        self.completed = CompletedTransferTable(max_completed_entries, clock)

    @classmethod
    def from_config(cls, cfg: Config) -> "CacheStore":
        """Create a store persisting JSON snapshots under the config directory."""
        return cls(
            JsonFileStorage(cfg.cache_dir),
            max_directory_entries=cfg.max_directory_entries,
            max_ensured_entries=cfg.max_ensured_entries,
            max_completed_entries=cfg.max_completed_entries,
        )

    @property
    def tables(self) -> tuple[BoundedTable, ...]:
        return (self.directories, self.ensured, self.completed)

    def init(self) -> None:
        """Load all tables from storage, replacing in-memory state.

        A table that cannot be loaded starts empty.
        """
        for table in self.tables:
            try:
                data = self.storage.load_snapshot(table.table_name)
            except CacheStorageError as e:
                logger.warning(f"Failed to load cache table {table.table_name}: {e}")
                data = None
            table.load_snapshot(data)
        logger.debug(
            f"Cache loaded: {len(self.directories)} listings, "
            f"{len(self.ensured)} ensured, {len(self.completed)} completed"
        )

    def flush(self, force: bool = False) -> bool:
        """Persist every changed table as a whole snapshot.

        Args:
            force: Persist all tables even if unchanged

        Returns:
            True if every write succeeded
        """
        ok = True
        for table in self.tables:
            if not (force or table.dirty):
                continue
            try:
                self.storage.persist_snapshot(table.table_name, table.to_snapshot())
                table.dirty = False
            except CacheStorageError as e:
                ok = False
                logger.warning(f"Failed to persist cache table {table.table_name}: {e}")
        return ok

    def invalidate(self, paths: Iterable[Optional[str]]) -> int:
        """Drop listing and ensured entries related to the given paths.

        An entry is dropped when its path equals a target, is a descendant of
        a target, or is an ancestor of a target. Root is never dropped and
        is ignored as a target.

        Returns:
            Number of entries removed across both tables
        """
        targets = {
            normalize_path(path) for path in paths if isinstance(path, str) and path
        }
        targets.discard(ROOT_PATH)
        if not targets:
            return 0

        removed = 0
        for table in (self.ensured, self.directories):
            for key in table.keys():
                if key == ROOT_PATH:
                    continue
                if any(is_same_or_related_path(key, target) for target in targets):
                    if table.discard(key):
                        removed += 1
        if removed:
            logger.debug(f"Invalidated {removed} cache entries for {sorted(targets)}")
        return removed

    def clear_completed(self) -> None:
        """Forget every completed-transfer signature."""
        self.completed.clear()

    def stats(self) -> dict[str, dict[str, int]]:
        return {
            table.table_name: {"entries": len(table), "capacity": table.capacity}
            for table in self.tables
        }
