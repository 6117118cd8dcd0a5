"""Idempotency caches: directory listings, ensured directories, completed transfers."""

from .storage import JsonFileStorage, MemoryStorage, SnapshotStorage
from .store import (
    BoundedTable,
    CacheStore,
    CompletedTransferTable,
    DirectoryListingTable,
    EnsuredDirectoryTable,
)

__all__ = [
    "BoundedTable",
    "CacheStore",
    "CompletedTransferTable",
    "DirectoryListingTable",
    "EnsuredDirectoryTable",
    "JsonFileStorage",
    "MemoryStorage",
    "SnapshotStorage",
]
