"""Transfer orchestration: result codes, retry loop, backend protocol."""

from .backend import (
    DirectoryPage,
    DirectoryStatus,
    PanBackend,
    ShareMetadata,
    SupportsRename,
    SupportsShareDirectory,
)
from .codes import ERROR_MESSAGES, ResultCode, ResultKind, map_error_message
from .orchestrator import TransferOrchestrator
from .progress import ProgressStage, TransferProgressInfo, TransferProgressTracker
from .retry import RetryExecutor, RetryOutcome

__all__ = [
    "DirectoryPage",
    "DirectoryStatus",
    "ERROR_MESSAGES",
    "PanBackend",
    "ProgressStage",
    "ResultCode",
    "ResultKind",
    "RetryExecutor",
    "RetryOutcome",
    "ShareMetadata",
    "SupportsRename",
    "SupportsShareDirectory",
    "TransferOrchestrator",
    "TransferProgressInfo",
    "TransferProgressTracker",
    "map_error_message",
]
