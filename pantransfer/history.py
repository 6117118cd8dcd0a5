"""Transfer history records.

One record is kept per job key (usually the source page URL). A record
remembers the last outcome of every item of that job. Deleting a record
also forgets the completed-transfer signatures of its items, so the shares
are transferred again by the next run.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .cache.storage import SnapshotStorage
from .cache.store import CacheStore
from .exceptions import CacheStorageError
from .models import TransferOutcome, TransferStatus
from .utils import DEFAULT_MAX_HISTORY_RECORDS, build_signature, normalize_path

logger = logging.getLogger(__name__)

HISTORY_TABLE = "history"
HISTORY_VERSION = 1


@dataclass
class HistoryItem:
    """Last known state of one item of a job."""

    id: str
    title: str = ""
    status: TransferStatus = TransferStatus.FAILED
    message: str = ""
    errno: Optional[int] = None
    files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    link_url: str = ""
    pass_code: str = ""
    last_transferred_at: Optional[float] = None
    total_success: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "message": self.message,
            "errno": self.errno,
            "files": list(self.files),
            "skipped_files": list(self.skipped_files),
            "link_url": self.link_url,
            "pass_code": self.pass_code,
            "last_transferred_at": self.last_transferred_at,
            "total_success": self.total_success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryItem":
        try:
            status = TransferStatus(data.get("status"))
        except ValueError:
            status = TransferStatus.FAILED
        errno = data.get("errno")
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            status=status,
            message=str(data.get("message") or ""),
            errno=int(errno) if isinstance(errno, (int, float)) else None,
            files=[n for n in data.get("files") or [] if isinstance(n, str)],
            skipped_files=[
                n for n in data.get("skipped_files") or [] if isinstance(n, str)
            ],
            link_url=str(data.get("link_url") or ""),
            pass_code=str(data.get("pass_code") or ""),
            last_transferred_at=data.get("last_transferred_at"),
            total_success=int(data.get("total_success") or 0),
        )


@dataclass
class HistoryRecord:
    """History of one job key."""

    job_key: str
    title: str = ""
    target_directory: str = "/"
    last_transferred_at: float = 0.0
    last_checked_at: float = 0.0
    total_transferred: int = 0
    items: dict[str, HistoryItem] = field(default_factory=dict)
    item_order: list[str] = field(default_factory=list)
    last_summary: str = ""

    @property
    def signatures(self) -> list[str]:
        """Completed-transfer signatures of the record's items."""
        result = []
        for item in self.items.values():
            signature = build_signature(item.link_url)
            if signature:
                result.append(signature)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_key": self.job_key,
            "title": self.title,
            "target_directory": self.target_directory,
            "last_transferred_at": self.last_transferred_at,
            "last_checked_at": self.last_checked_at,
            "total_transferred": self.total_transferred,
            "items": {key: item.to_dict() for key, item in self.items.items()},
            "item_order": list(self.item_order),
            "last_summary": self.last_summary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryRecord":
        raw_items = data.get("items") if isinstance(data.get("items"), dict) else {}
        items = {
            str(key): HistoryItem.from_dict(value)
            for key, value in raw_items.items()
            if isinstance(value, dict)
        }
        order = [key for key in data.get("item_order") or [] if key in items]
        return cls(
            job_key=str(data.get("job_key", "")),
            title=str(data.get("title") or ""),
            target_directory=normalize_path(data.get("target_directory")),
            last_transferred_at=float(data.get("last_transferred_at") or 0),
            last_checked_at=float(data.get("last_checked_at") or 0),
            total_transferred=int(data.get("total_transferred") or 0),
            items=items,
            item_order=order or list(items),
            last_summary=str(data.get("last_summary") or ""),
        )


class HistoryStore:
    """Bounded list of history records, most recently updated first."""

    def __init__(
        self,
        storage: SnapshotStorage,
        cache: CacheStore,
        max_records: int = DEFAULT_MAX_HISTORY_RECORDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the history store.

        Args:
            storage: Snapshot storage backend
            cache: Cache whose completed-transfer table follows the history
            max_records: Maximum number of records kept
            clock: Time source (seconds)
        """
        self.storage = storage
        self.cache = cache
        self.max_records = max_records
        self._clock = clock
        self._records: list[HistoryRecord] = []
        self._lock = threading.RLock()

    def init(self) -> None:
        """Load records from storage; unreadable data yields an empty history."""
        try:
            data = self.storage.load_snapshot(HISTORY_TABLE)
        except CacheStorageError as e:
            logger.warning(f"Failed to load history: {e}")
            data = None
        records: list[HistoryRecord] = []
        if data and data.get("version") == HISTORY_VERSION:
            for raw in data.get("records") or []:
                if isinstance(raw, dict) and raw.get("job_key"):
                    records.append(HistoryRecord.from_dict(raw))
        with self._lock:
            self._records = records[: self.max_records]

    def flush(self) -> bool:
        """Persist the history snapshot; failures are logged, not raised."""
        with self._lock:
            snapshot = {
                "version": HISTORY_VERSION,
                "records": [record.to_dict() for record in self._records],
            }
        try:
            self.storage.persist_snapshot(HISTORY_TABLE, snapshot)
            return True
        except CacheStorageError as e:
            logger.warning(f"Failed to persist history: {e}")
            return False

    def records(self) -> list[HistoryRecord]:
        with self._lock:
            return list(self._records)

    def get_record(self, job_key: str) -> Optional[HistoryRecord]:
        with self._lock:
            for record in self._records:
                if record.job_key == job_key:
                    return record
        return None

    def record_job(
        self,
        job_key: str,
        target_directory: str,
        outcomes: list[TransferOutcome],
        title: str = "",
        summary: str = "",
    ) -> HistoryRecord:
        """Merge the outcomes of a job run into its history record.

        Args:
            job_key: Key of the record (created if missing)
            target_directory: Destination directory of the run
            outcomes: Outcomes of the run
            title: Display title of the job
            summary: Job summary line

        Returns:
            The updated record, moved to the front of the history
        """
        now = self._clock()
        with self._lock:
            record = self.get_record(job_key)
            if record is None:
                record = HistoryRecord(job_key=job_key)
            else:
                self._records.remove(record)

            record.title = title or record.title
            record.target_directory = normalize_path(target_directory)
            record.last_checked_at = now
            record.last_summary = summary or record.last_summary

            success_count = 0
            for outcome in outcomes:
                item = record.items.get(outcome.id) or HistoryItem(id=outcome.id)
                item.title = outcome.title or item.title
                item.status = outcome.status
                item.message = outcome.message
                item.errno = outcome.errno
                item.files = list(outcome.files)
                item.skipped_files = list(outcome.skipped_files)
                item.link_url = outcome.link_url or item.link_url
                item.pass_code = outcome.pass_code or item.pass_code
                if outcome.status == TransferStatus.SUCCESS:
                    item.last_transferred_at = now
                    item.total_success += 1
                    success_count += 1
                record.items[outcome.id] = item
                if outcome.id not in record.item_order:
                    record.item_order.append(outcome.id)

            if success_count:
                record.last_transferred_at = now
                record.total_transferred += success_count

            self._records.insert(0, record)
            del self._records[self.max_records :]
        logger.debug(f"History record {job_key} updated ({len(outcomes)} outcomes)")
        return record

    def delete_records(self, job_keys: list[str]) -> int:
        """Delete records and forget their completed-transfer signatures.

        Returns:
            Number of records deleted
        """
        keys = {key for key in job_keys if key}
        with self._lock:
            removed = [r for r in self._records if r.job_key in keys]
            if not removed:
                return 0
            self._records = [r for r in self._records if r.job_key not in keys]

        signatures = [sig for record in removed for sig in record.signatures]
        forgotten = self.cache.completed.remove_many(signatures)
        logger.debug(
            f"Deleted {len(removed)} history records, forgot {forgotten} signatures"
        )
        self.flush()
        self.cache.flush()
        return len(removed)

    def clear(self) -> int:
        """Delete every record and clear the completed-transfer table.

        Returns:
            Number of records deleted
        """
        with self._lock:
            count = len(self._records)
            self._records = []
        self.cache.clear_completed()
        self.flush()
        self.cache.flush()
        return count
