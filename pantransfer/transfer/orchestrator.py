"""Transfer orchestration: runs a batch of share links through the caches,
the rule engine and the retry loop.

Items are processed one at a time. For every item the orchestrator:

1. skips it when its share signature is already recorded as completed
2. resolves the share metadata through the backend, descending into the
   share's folder when that folder is its only entry
3. makes sure the destination directory exists
4. drops entries whose names already exist in the destination
5. drops entries rejected by the filter rules
6. submits the remaining entries as one batch through the retry executor
7. records the signature and renames the transferred entries on success

Any exception raised while handling an item turns into a failed outcome for
that item only.
"""

import logging
import threading
from collections.abc import Iterable, Sequence
from typing import Optional

from ..cache.store import CacheStore
from ..exceptions import (
    PanAPIError,
    PanDirectoryNotFoundError,
    PanLoginRequiredError,
    PanTransferError,
    ShareMetadataError,
)
from ..history import HistoryStore
from ..models import (
    FileDescriptor,
    RenameResult,
    TransferItem,
    TransferJobResult,
    TransferOutcome,
    TransferPolicy,
    TransferStatus,
)
from ..rules.engine import RenamePlanEntry, apply_file_filters, build_rename_plan
from ..utils import (
    DIRECTORY_LIST_PAGE_SIZE,
    ROOT_PATH,
    build_signature,
    join_path,
    normalize_path,
)
from .backend import (
    DirectoryStatus,
    PanBackend,
    ShareMetadata,
    SupportsRename,
    SupportsShareDirectory,
)
from .codes import (
    DIRECTORY_EXISTS_ERRNOS,
    ResultCode,
    ResultKind,
    map_error_message,
)
from .progress import (
    ProgressCallback,
    ProgressStage,
    TransferProgressInfo,
    TransferProgressTracker,
)
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

MSG_ALREADY_COMPLETED = "Skipped: history shows this share was already transferred"
MSG_TRANSFER_OK = "Transferred"
MSG_CANCELLED = "Cancelled before transfer"


class _ItemCancelled(Exception):
    """Raised internally when the job is cancelled between steps."""


class TransferOrchestrator:
    """Runs transfer jobs against a storage backend.

    Example:
        >>> orchestrator = TransferOrchestrator(backend, cache)
        >>> result = orchestrator.run_transfer_job(items, "/movies", policy)
        >>> print(result.summary)
        success 2, skipped 1, failed 0
    """

    def __init__(
        self,
        backend: PanBackend,
        cache: CacheStore,
        executor: Optional[RetryExecutor] = None,
        history: Optional[HistoryStore] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize the orchestrator.

        Args:
            backend: Remote storage collaborator
            cache: Idempotency caches (loaded by the caller)
            executor: Retry executor for transfer submissions
            history: Optional history store updated at the end of each job
            progress_callback: Optional receiver of progress events
        """
        self.backend = backend
        self.cache = cache
        self.executor = executor or RetryExecutor()
        self.history = history
        self.progress = TransferProgressTracker(progress_callback)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def run_transfer_job(
        self,
        items: Sequence[TransferItem],
        target_path: str,
        policy: Optional[TransferPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
        job_key: Optional[str] = None,
        job_title: str = "",
    ) -> TransferJobResult:
        """Transfer a batch of share links into ``target_path``.

        Args:
            items: Work items, processed sequentially
            target_path: Default destination directory
            policy: Filter/rename policy and attempt budget
            cancel_event: When set, no new item is started
            job_key: History record key; history is only written when given
            job_title: Display title stored in the history record

        Returns:
            TransferJobResult with one outcome per started item
        """
        policy = policy or TransferPolicy()
        base_dir = normalize_path(target_path)
        outcomes: list[TransferOutcome] = []
        cancelled = False
        total = len(items)

        for index, item in enumerate(items):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Job cancelled, {total - index} item(s) not started")
                cancelled = True
                break

            self._emit(
                ProgressStage.ITEM_START, index, total, item, f"Processing {item.label}"
            )
            try:
                outcome = self._process_item(item, base_dir, policy, cancel_event)
            except _ItemCancelled:
                cancelled = True
                outcome = TransferOutcome(
                    id=item.id,
                    status=TransferStatus.SKIPPED,
                    message=MSG_CANCELLED,
                    title=item.title,
                    link_url=item.link_url,
                    pass_code=item.pass_code,
                )
            except PanLoginRequiredError as e:
                logger.warning(f"Login required while processing {item.label}: {e}")
                outcome = self._failed(item, str(e), errno=e.errno)
            except Exception as e:
                logger.error(
                    f"Unexpected error processing {item.label}: {e}", exc_info=True
                )
                outcome = self._failed(item, str(e) or type(e).__name__)

            outcomes.append(outcome)
            self._emit_outcome(outcome, index, total, item)
            if cancelled:
                break

        summary = self.summarize(outcomes)
        self.progress.emit(
            TransferProgressInfo(
                stage=ProgressStage.SUMMARY, total=total, message=summary
            )
        )
        logger.info(f"Transfer job finished: {summary}")

        if self.history is not None and job_key:
            self.history.record_job(
                job_key, base_dir, outcomes, title=job_title, summary=summary
            )
            self.history.flush()
        self.cache.flush()
        return TransferJobResult(
            outcomes=outcomes, summary=summary, cancelled=cancelled
        )

    def invalidate_caches(self, paths: Iterable[str]) -> int:
        """Drop cached listings and ensured markers related to ``paths``."""
        removed = self.cache.invalidate(paths)
        self.cache.flush()
        return removed

    def clear_completed_cache(self) -> None:
        """Forget every completed-transfer signature."""
        self.cache.clear_completed()
        self.cache.flush()

    @staticmethod
    def summarize(outcomes: Sequence[TransferOutcome]) -> str:
        success = sum(1 for o in outcomes if o.status == TransferStatus.SUCCESS)
        skipped = sum(1 for o in outcomes if o.status == TransferStatus.SKIPPED)
        failed = len(outcomes) - success - skipped
        return f"success {success}, skipped {skipped}, failed {failed}"

    # ------------------------------------------------------------------
    # Per-item flow
    # ------------------------------------------------------------------

    def _process_item(
        self,
        item: TransferItem,
        base_dir: str,
        policy: TransferPolicy,
        cancel_event: Optional[threading.Event],
    ) -> TransferOutcome:
        if not item.link_url:
            return self._failed(item, "Missing share link")

        signature = build_signature(item.link_url)
        if signature and self.cache.completed.has(signature):
            logger.debug(f"Signature {signature} already completed, skipping")
            return self._outcome(
                item, TransferStatus.SKIPPED, MSG_ALREADY_COMPLETED, signature
            )

        try:
            meta = self.backend.resolve_share_metadata(item.link_url, item.pass_code)
        except PanLoginRequiredError:
            raise
        except ShareMetadataError as e:
            message = map_error_message(e.errno, str(e))
            logger.warning(f"Share metadata for {item.label} failed: {message}")
            return self._failed(item, message, errno=e.errno, signature=signature)

        entries = self._unwrap_single_folder(
            meta, [entry for entry in meta.entries if entry.name], item
        )
        if not entries:
            return self._failed(item, "Share contains no files", signature=signature)

        self._check_cancelled(cancel_event)
        target = normalize_path(item.target_path or base_dir)
        self.ensure_directory(target)

        existing_names = self._existing_names(target)
        pending: list[FileDescriptor] = []
        skipped_files: list[str] = []
        for entry in entries:
            if entry.name in existing_names:
                skipped_files.append(entry.name)
            else:
                pending.append(entry)
        if skipped_files:
            logger.debug(
                f"{len(skipped_files)} file(s) of {item.label} "
                f"already exist in {target}"
            )

        if not pending:
            if signature:
                self.cache.completed.record(signature)
            outcome = self._outcome(
                item,
                TransferStatus.SKIPPED,
                f"Skipped: files already exist ({len(skipped_files)})",
                signature,
            )
            outcome.skipped_files = skipped_files
            return outcome

        filter_result = apply_file_filters(pending, policy.filter_rules, policy.mode)
        filtered_names = filter_result.skipped_names
        pending = filter_result.entries
        if not pending:
            outcome = self._outcome(
                item,
                TransferStatus.SKIPPED,
                f"Skipped: filter rules excluded {len(filtered_names)} file(s)",
                signature,
            )
            outcome.skipped_files = skipped_files
            outcome.filtered_files = filtered_names
            return outcome

        rename_plan = build_rename_plan(pending, policy.rename_rules, existing_names)

        self._check_cancelled(cancel_event)
        file_ids = [entry.id for entry in pending]

        def submit() -> ResultCode:
            try:
                errno = self.backend.submit_transfer(
                    meta.signature_seed, file_ids, target
                )
            except PanDirectoryNotFoundError as e:
                return ResultCode.path_missing(e.errno)
            return ResultCode.from_errno(errno)

        def recreate_target() -> None:
            logger.warning(f"Target directory {target} is missing, recreating it")
            self.cache.invalidate([target])
            self.ensure_directory(target)

        retry = self.executor.run(submit, policy.max_attempts, recreate_target)

        if not retry.succeeded:
            if retry.code.kind == ResultKind.PATH_MISSING:
                message = retry.code.message
            else:
                message = map_error_message(
                    retry.code.errno,
                    retry.message or f"Error code: {retry.code.errno}",
                )
            outcome = self._failed(
                item, message, errno=retry.code.errno, signature=signature
            )
            outcome.attempts = retry.attempts
            outcome.skipped_files = skipped_files
            outcome.filtered_files = filtered_names
            return outcome

        if signature:
            self.cache.completed.record(signature)

        final_names = [entry.name for entry in pending]
        rename_results: list[RenameResult] = []
        if retry.code.is_duplicate:
            status, message = TransferStatus.SKIPPED, retry.code.message
        else:
            status, message = TransferStatus.SUCCESS, MSG_TRANSFER_OK
            final_names, rename_results = self._execute_rename_plan(rename_plan, target)

        if target != ROOT_PATH:
            self.cache.directories.add_names(target, final_names)

        outcome = self._outcome(item, status, message, signature)
        outcome.files = final_names
        outcome.skipped_files = skipped_files
        outcome.filtered_files = filtered_names
        outcome.rename_results = rename_results
        outcome.errno = retry.code.errno
        outcome.attempts = retry.attempts
        return outcome

    def _unwrap_single_folder(
        self, meta: ShareMetadata, entries: list[FileDescriptor], item: TransferItem
    ) -> list[FileDescriptor]:
        if len(entries) != 1 or not entries[0].is_dir:
            return entries
        if not isinstance(self.backend, SupportsShareDirectory):
            return entries
        folder = entries[0]
        try:
            contents = self.backend.list_share_directory(meta.signature_seed, folder)
        except PanLoginRequiredError:
            raise
        except Exception as e:
            logger.warning(
                f"Listing shared folder {folder.name} of {item.label} failed, "
                f"transferring the folder itself: {e}"
            )
            return entries
        contents = [entry for entry in contents if entry.name]
        if not contents:
            logger.debug(f"Shared folder {folder.name} is empty, keeping it")
            return entries
        logger.debug(
            f"Unwrapped shared folder {folder.name} ({len(contents)} entries)"
        )
        return contents

    # ------------------------------------------------------------------
    # Directory handling
    # ------------------------------------------------------------------

    def ensure_directory(self, path: str) -> str:
        """Make sure a remote directory and all of its parents exist.

        Every path segment that is not yet marked as ensured is probed and
        created when missing. "Already exists" answers count as success.

        Returns:
            The normalized path
        """
        normalized = normalize_path(path)
        if self.cache.ensured.is_ensured(normalized):
            logger.debug(f"Directory {normalized} already ensured")
            return normalized

        current = ""
        for segment in normalized.strip("/").split("/"):
            current = f"{current}/{segment}"
            if self.cache.ensured.is_ensured(current):
                continue
            if not self._directory_exists(current):
                try:
                    status = self.backend.ensure_directory(current)
                except PanLoginRequiredError:
                    raise
                except PanAPIError as e:
                    if e.errno not in DIRECTORY_EXISTS_ERRNOS:
                        raise
                    status = DirectoryStatus.ALREADY_EXISTS
                if status == DirectoryStatus.CREATED:
                    logger.debug(f"Created directory {current}")
                    self.cache.directories.put(current, [])
            self.cache.ensured.mark_ensured(current)
        return normalized

    def _directory_exists(self, path: str) -> bool:
        if self.cache.directories.get(path) is not None:
            return True
        try:
            self.backend.list_directory(path, 0, 1)
        except PanDirectoryNotFoundError:
            return False
        return True

    def list_directory_names(self, path: str) -> frozenset[str]:
        """Return the entry names of a remote directory, using the cache.

        On a cache miss the directory is listed page by page and the result
        is cached. Root is never cached.
        """
        normalized = normalize_path(path)
        if normalized == ROOT_PATH:
            return frozenset()
        cached = self.cache.directories.get(normalized)
        if cached is not None:
            logger.debug(f"Directory listing cache hit for {normalized}")
            return cached

        names: list[str] = []
        start = 0
        while True:
            page = self.backend.list_directory(
                normalized, start, DIRECTORY_LIST_PAGE_SIZE
            )
            names.extend(page.names)
            if not page.has_more or not page.names:
                break
            start += len(page.names)
        self.cache.directories.put(normalized, names)
        logger.debug(f"Listed {len(names)} entries in {normalized}")
        return frozenset(names)

    def _existing_names(self, target: str) -> frozenset[str]:
        try:
            return self.list_directory_names(target)
        except PanLoginRequiredError:
            raise
        except PanTransferError as e:
            logger.warning(
                f"Listing {target} failed, continuing without existing-file check: {e}"
            )
            return frozenset()

    # ------------------------------------------------------------------
    # Renaming
    # ------------------------------------------------------------------

    def _execute_rename_plan(
        self, plan: Sequence[RenamePlanEntry], target: str
    ) -> tuple[list[str], list[RenameResult]]:
        final_names = [entry.original_name for entry in plan]
        changed = [entry for entry in plan if entry.changed]
        if not changed:
            return final_names, []
        if not isinstance(self.backend, SupportsRename):
            logger.warning("Backend cannot rename entries, keeping original names")
            return final_names, [
                RenameResult(
                    source=entry.original_name,
                    target=entry.final_name,
                    status="unchanged",
                    rules=list(entry.applied_rules),
                )
                for entry in plan
            ]

        results: list[RenameResult] = []
        renamed_any = False
        for index, entry in enumerate(plan):
            result = RenameResult(
                source=entry.original_name,
                target=entry.final_name,
                status="unchanged",
                rules=list(entry.applied_rules),
            )
            if entry.changed:
                source_path = join_path(target, entry.original_name)
                try:
                    errno = self.backend.rename_entry(source_path, entry.final_name)
                except Exception as e:
                    # The files are already transferred, so a rename error
                    # only fails this entry
                    result.status = "failed"
                    result.errno = getattr(e, "errno", None)
                    result.message = str(e) or type(e).__name__
                else:
                    if errno == 0:
                        result.status = "success"
                        final_names[index] = entry.final_name
                        renamed_any = True
                    else:
                        result.status = "failed"
                        result.errno = errno
                        result.message = map_error_message(errno)
                if result.status == "failed":
                    logger.warning(
                        f"Rename {source_path} -> {entry.final_name} failed: "
                        f"{result.message}"
                    )
            results.append(result)

        if renamed_any:
            self.cache.invalidate([target])
        return final_names, results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _ItemCancelled()

    @staticmethod
    def _outcome(
        item: TransferItem, status: TransferStatus, message: str, signature: str = ""
    ) -> TransferOutcome:
        return TransferOutcome(
            id=item.id,
            status=status,
            message=message,
            title=item.title,
            link_url=item.link_url,
            pass_code=item.pass_code,
            signature=signature,
        )

    def _failed(
        self,
        item: TransferItem,
        message: str,
        errno: Optional[int] = None,
        signature: str = "",
    ) -> TransferOutcome:
        outcome = self._outcome(item, TransferStatus.FAILED, message, signature)
        outcome.errno = errno
        return outcome

    def _emit(
        self,
        stage: ProgressStage,
        index: int,
        total: int,
        item: TransferItem,
        message: str,
    ) -> None:
        self.progress.emit(
            TransferProgressInfo(
                stage=stage,
                index=index,
                total=total,
                item_id=item.id,
                title=item.title,
                message=message,
            )
        )

    def _emit_outcome(
        self, outcome: TransferOutcome, index: int, total: int, item: TransferItem
    ) -> None:
        stage = {
            TransferStatus.SUCCESS: ProgressStage.ITEM_SUCCESS,
            TransferStatus.SKIPPED: ProgressStage.ITEM_SKIP,
            TransferStatus.FAILED: ProgressStage.ITEM_ERROR,
        }[outcome.status]
        self._emit(stage, index, total, item, f"{item.label}: {outcome.message}")
