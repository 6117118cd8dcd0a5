"""pantransfer - Move batches of share links into cloud storage."""

from .cache import CacheStore, JsonFileStorage, MemoryStorage
from .exceptions import (
    CacheStorageError,
    PanAPIError,
    PanConfigError,
    PanDirectoryNotFoundError,
    PanLoginRequiredError,
    PanTransferError,
    RuleSettingsError,
    ShareMetadataError,
)
from .history import HistoryStore
from .models import (
    EvaluationMode,
    FileDescriptor,
    TransferItem,
    TransferJobResult,
    TransferOutcome,
    TransferPolicy,
    TransferStatus,
)
from .rules import apply_file_filters, build_rename_plan, evaluate_action
from .transfer import RetryExecutor, TransferOrchestrator
from .utils import build_signature, normalize_path

__all__ = [
    "CacheStore",
    "CacheStorageError",
    "EvaluationMode",
    "FileDescriptor",
    "HistoryStore",
    "JsonFileStorage",
    "MemoryStorage",
    "PanAPIError",
    "PanConfigError",
    "PanDirectoryNotFoundError",
    "PanLoginRequiredError",
    "PanTransferError",
    "RetryExecutor",
    "RuleSettingsError",
    "ShareMetadataError",
    "TransferItem",
    "TransferJobResult",
    "TransferOrchestrator",
    "TransferOutcome",
    "TransferPolicy",
    "TransferStatus",
    "apply_file_filters",
    "build_rename_plan",
    "build_signature",
    "evaluate_action",
    "normalize_path",
]
