"""Data models for pantransfer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from .utils import DEFAULT_MAX_TRANSFER_ATTEMPTS

if TYPE_CHECKING:
    from .rules.conditions import FilterRule, RenameRule


class EvaluationMode(str, Enum):
    """Conflict-resolution strategies for a filter rule set."""

    ORDERED = "ordered"
    """First matching rule in declared order wins"""

    DENY_FIRST = "deny-first"
    """Any matching drop rule wins, else the first matching keep rule"""

    ALLOW_FIRST = "allow-first"
    """Any matching keep rule wins, else the first matching drop rule"""

    @classmethod
    def from_string(cls, value: str) -> EvaluationMode:
        normalized = value.strip().lower().replace("_", "-")
        for mode in cls:
            if mode.value == normalized:
                return mode
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid evaluation mode: {value!r} (expected {valid})")


DEFAULT_EVALUATION_MODE = EvaluationMode.DENY_FIRST


class TransferStatus(str, Enum):
    """Final status of a work item."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class FileDescriptor:
    """A file or directory inside a share."""

    id: int
    """Remote file identifier"""

    name: str
    """File name (no directory part)"""

    size: int = 0
    """Size in bytes"""

    is_dir: bool = False
    """Whether the entry is a directory"""

    path: str = ""
    """Path of the entry inside the share"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileDescriptor":
        """Create a descriptor from a loosely-typed dictionary."""
        raw_id = data.get("id", data.get("fs_id", data.get("fsId", 0)))
        name = data.get("name", data.get("server_filename", data.get("serverFilename")))
        raw_size = data.get("size", 0)
        try:
            size = max(0, int(float(raw_size)))
        except (TypeError, ValueError):
            size = 0
        return cls(
            id=int(raw_id or 0),
            name=name if isinstance(name, str) else "",
            size=size,
            is_dir=bool(data.get("is_dir", data.get("isDir", False))),
            path=str(data.get("path") or ""),
        )


@dataclass
class TransferItem:
    """A single share link to be moved into the storage account."""

    id: str
    """Caller-side identifier of the item"""

    link_url: str
    """Share link URL"""

    pass_code: str = ""
    """Share pass code (may be empty)"""

    title: str = ""
    """Display name, used in messages only"""

    target_path: Optional[str] = None
    """Per-item destination directory; falls back to the job target"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferItem":
        link_url = data.get("link_url", data.get("linkUrl", ""))
        return cls(
            id=str(data.get("id", "")),
            link_url=str(link_url or ""),
            pass_code=str(data.get("pass_code", data.get("passCode", "")) or ""),
            title=str(data.get("title", "") or ""),
            target_path=data.get("target_path", data.get("targetPath")),
        )

    @property
    def label(self) -> str:
        return f"'{self.title}'" if self.title else f"item {self.id}"


@dataclass
class TransferPolicy:
    """Processing policy applied to every item of a job."""

    mode: EvaluationMode = DEFAULT_EVALUATION_MODE
    filter_rules: list[FilterRule] = field(default_factory=list)
    rename_rules: list[RenameRule] = field(default_factory=list)
    max_attempts: int = DEFAULT_MAX_TRANSFER_ATTEMPTS


@dataclass
class RenameResult:
    """Result of renaming one transferred entry."""

    source: str
    target: str
    status: str
    """One of 'success', 'failed', 'unchanged'"""

    rules: list[str] = field(default_factory=list)
    errno: Optional[int] = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "from": self.source,
            "to": self.target,
            "status": self.status,
            "rules": list(self.rules),
        }
        if self.errno is not None:
            data["errno"] = self.errno
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class TransferOutcome:
    """Outcome of processing one work item."""

    id: str
    status: TransferStatus
    message: str
    title: str = ""
    files: list[str] = field(default_factory=list)
    """Names that were transferred (after renaming)"""

    skipped_files: list[str] = field(default_factory=list)
    """Names skipped because they already exist in the destination"""

    filtered_files: list[str] = field(default_factory=list)
    """Names dropped by filter rules"""

    rename_results: list[RenameResult] = field(default_factory=list)
    errno: Optional[int] = None
    attempts: Optional[int] = None
    link_url: str = ""
    pass_code: str = ""
    signature: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert outcome to a JSON-serializable dictionary."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "message": self.message,
            "files": list(self.files),
            "skipped_files": list(self.skipped_files),
        }
        if self.filtered_files:
            data["filtered_files"] = list(self.filtered_files)
        if self.rename_results:
            data["rename_results"] = [r.to_dict() for r in self.rename_results]
        if self.errno is not None:
            data["errno"] = self.errno
        if self.attempts is not None:
            data["attempts"] = self.attempts
        if self.link_url:
            data["link_url"] = self.link_url
        if self.signature:
            data["signature"] = self.signature
        return data


@dataclass
class TransferJobResult:
    """Result of a whole transfer job."""

    outcomes: list[TransferOutcome]
    summary: str
    cancelled: bool = False

    def count(self, status: TransferStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "cancelled": self.cancelled,
            "results": [outcome.to_dict() for outcome in self.outcomes],
        }
