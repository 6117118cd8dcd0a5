"""CLI progress display for transfer jobs.

Rich-based progress bar driven by the orchestrator's progress events.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .transfer.progress import ProgressStage, TransferProgressInfo

_STAGE_STYLES = {
    ProgressStage.ITEM_SUCCESS: "green",
    ProgressStage.ITEM_SKIP: "yellow",
    ProgressStage.ITEM_ERROR: "red",
}


class TransferProgressDisplay:
    """Rich progress display for a transfer job.

    Use as a context manager and pass ``handle_event`` to the orchestrator
    as its progress callback.
    """

    def __init__(self, total: int) -> None:
        self.total = total
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def handle_event(self, info: TransferProgressInfo) -> None:
        """Update the display from a progress event."""
        if self._progress is None or self._task is None:
            return

        if info.stage == ProgressStage.ITEM_START:
            self._progress.update(
                self._task,
                description=info.title or info.item_id,
                completed=info.completed,
            )
        elif info.stage in _STAGE_STYLES:
            style = _STAGE_STYLES[info.stage]
            self._progress.console.print(f"[{style}]{info.message}[/{style}]")
            self._progress.update(self._task, completed=info.completed)
        elif info.stage == ProgressStage.SUMMARY:
            self._progress.update(
                self._task, description="Transfer complete", completed=self.total
            )

    def __enter__(self) -> "TransferProgressDisplay":
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing transfer...", total=self.total)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
