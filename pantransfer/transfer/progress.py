"""Progress events emitted while a transfer job runs."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressStage(str, Enum):
    """Stages reported by the orchestrator."""

    ITEM_START = "item:start"
    ITEM_SKIP = "item:skip"
    ITEM_SUCCESS = "item:success"
    ITEM_ERROR = "item:error"
    SUMMARY = "summary"


@dataclass
class TransferProgressInfo:
    """A single progress event."""

    stage: ProgressStage
    index: int = 0
    """Zero-based position of the item in the job"""

    total: int = 0
    """Number of items in the job"""

    item_id: str = ""
    title: str = ""
    message: str = ""

    @property
    def completed(self) -> int:
        """Number of items finished once this event is processed."""
        if self.stage == ProgressStage.ITEM_START:
            return self.index
        if self.stage == ProgressStage.SUMMARY:
            return self.total
        return self.index + 1


ProgressCallback = Callable[[TransferProgressInfo], None]


class TransferProgressTracker:
    """Forwards progress events to a callback, isolating callback errors."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def emit(self, info: TransferProgressInfo) -> None:
        if self.callback is None:
            return
        try:
            self.callback(info)
        except Exception as e:
            # A broken display must not fail the transfer
            logger.warning(f"Progress callback failed on {info.stage.value}: {e}")
