"""CLI interface for pantransfer."""

import importlib
import json
import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import click

from .cache.storage import JsonFileStorage
from .cache.store import CacheStore
from .cli_progress import TransferProgressDisplay
from .config import Config
from .exceptions import PanConfigError, PanTransferError, RuleSettingsError
from .history import HistoryStore
from .models import FileDescriptor, TransferItem, TransferPolicy, TransferStatus
from .output import OutputFormatter
from .rules.engine import apply_file_filters, build_rename_plan
from .settings import load_policy, normalize_mode
from .transfer.backend import PanBackend
from .transfer.orchestrator import TransferOrchestrator
from .utils import extract_pass_code, format_size

logger = logging.getLogger(__name__)


def load_backend(reference: str) -> PanBackend:
    """Load a backend from a ``module:attribute`` reference.

    A class or factory function is called without arguments; any other
    object is used as the backend itself.

    Raises:
        PanConfigError: If the reference cannot be resolved
    """
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise PanConfigError(
            f"Backend must be given as module:attribute, got {reference!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise PanConfigError(f"Cannot import backend module {module_name}: {e}") from e
    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise PanConfigError(f"Module {module_name} has no attribute {attr}") from e
    if isinstance(target, type) or (
        callable(target) and not hasattr(target, "submit_transfer")
    ):
        target = target()
    for method in (
        "resolve_share_metadata",
        "list_directory",
        "ensure_directory",
        "submit_transfer",
    ):
        if not callable(getattr(target, method, None)):
            raise PanConfigError(f"Backend {reference} does not implement {method}()")
    return target


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PanConfigError(f"Failed to read {path}: {e}") from e


def load_job_file(path: Path) -> tuple[list[TransferItem], dict[str, Any]]:
    """Read a job file.

    The file holds either a list of items or an object with an ``items``
    list and optional ``target_path``, ``job_key`` and ``title`` keys. Items
    without a pass code get one extracted from their link when present.
    """
    data = _read_json(path)
    options: dict[str, Any] = {}
    if isinstance(data, dict):
        options = {k: v for k, v in data.items() if k != "items"}
        data = data.get("items")
    if not isinstance(data, list):
        raise PanConfigError(f"Job file {path} must contain a list of items")
    items = []
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise PanConfigError(f"Item #{index + 1} in {path} is not an object")
        item = TransferItem.from_dict(raw)
        if not item.id:
            item.id = str(index + 1)
        if not item.pass_code:
            item.pass_code = extract_pass_code(item.link_url)
        items.append(item)
    return items, options


def load_descriptors(path: Path) -> list[FileDescriptor]:
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("entries", data.get("files"))
    if not isinstance(data, list):
        raise PanConfigError(f"{path} must contain a list of file entries")
    return [FileDescriptor.from_dict(raw) for raw in data if isinstance(raw, dict)]


def _open_cache(cfg: Config) -> CacheStore:
    cache = CacheStore.from_config(cfg)
    cache.init()
    return cache


def _open_history(cfg: Config, cache: CacheStore) -> HistoryStore:
    history = HistoryStore(
        JsonFileStorage(cfg.cache_dir), cache, max_records=cfg.max_history_records
    )
    history.init()
    return history


@contextmanager
def cancel_on_interrupt(
    cancel_event: threading.Event, out: OutputFormatter
) -> Iterator[None]:
    """Turn the first Ctrl-C into a cancellation request.

    The running item finishes and the job still writes its history. A second
    Ctrl-C raises KeyboardInterrupt as usual. Outside the main thread no
    handler can be installed and Ctrl-C keeps its default behavior.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.getsignal(signal.SIGINT)
    if previous is None:
        previous = signal.default_int_handler

    def request_cancel(signum: int, frame: Any) -> None:
        out.warning("Cancelling after the current item, press Ctrl-C again to abort")
        cancel_event.set()
        signal.signal(signal.SIGINT, previous)

    signal.signal(signal.SIGINT, request_cancel)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _load_policy(
    cfg: Config, settings: Optional[Path], mode: Optional[str] = None
) -> TransferPolicy:
    policy = load_policy(settings or cfg.settings_path, cfg.max_transfer_attempts)
    if mode:
        policy.mode = normalize_mode(mode)
    return policy


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="PANTRANSFER_CONFIG_DIR",
    help="Directory for config.json, settings and caches",
)
@click.version_option()
@click.pass_context
def main(
    ctx: Any, quiet: bool, json: bool, verbose: bool, config_dir: Optional[Path]
) -> None:
    """pantransfer - Move batches of share links into cloud storage."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["config"] = Config(config_dir)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pantransfer").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument(
    "job_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--backend",
    "-b",
    required=True,
    envvar="PANTRANSFER_BACKEND",
    help="Storage backend as module:attribute",
)
@click.option("--target", "-t", help="Destination directory (overrides the job file)")
@click.option(
    "--settings",
    "-s",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Processing settings file with filter and rename rules",
)
@click.option("--job-key", help="History record key (overrides the job file)")
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.pass_context
def run(
    ctx: Any,
    job_file: Path,
    backend: str,
    target: Optional[str],
    settings: Optional[Path],
    job_key: Optional[str],
    no_progress: bool,
) -> None:
    """Transfer the share links listed in JOB_FILE.

    Shares already transferred, files already present in the destination and
    files rejected by the filter rules are skipped.

    Examples:
        pantransfer run job.json --backend mypan.backend:Backend
        pantransfer run job.json -b mypan.backend:Backend -t /movies
    """
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]

    cache: Optional[CacheStore] = None
    try:
        items, options = load_job_file(job_file)
        policy = _load_policy(cfg, settings)
        pan_backend = load_backend(backend)
        cache = _open_cache(cfg)
        history = _open_history(cfg, cache)

        target_path = target or options.get("target_path") or "/"
        key = job_key or options.get("job_key") or str(job_file.resolve())
        if not items:
            out.warning("Job file contains no items")
            return

        out.info(f"Transferring {len(items)} item(s) to {target_path}")
        cancel_event = threading.Event()
        show_progress = not (no_progress or out.quiet or out.json_output)

        with cancel_on_interrupt(cancel_event, out):
            if show_progress:
                with TransferProgressDisplay(len(items)) as display:
                    orchestrator = TransferOrchestrator(
                        pan_backend,
                        cache,
                        history=history,
                        progress_callback=display.handle_event,
                    )
                    result = orchestrator.run_transfer_job(
                        items,
                        target_path,
                        policy,
                        cancel_event,
                        key,
                        options.get("title", ""),
                    )
            else:
                orchestrator = TransferOrchestrator(
                    pan_backend, cache, history=history
                )
                result = orchestrator.run_transfer_job(
                    items,
                    target_path,
                    policy,
                    cancel_event,
                    key,
                    options.get("title", ""),
                )

        if out.json_output:
            out.output_json(result.to_dict())
        else:
            out.output_table(
                [
                    {
                        "id": o.id,
                        "title": o.title,
                        "status": o.status.value,
                        "message": o.message,
                    }
                    for o in result.outcomes
                ],
                ["id", "title", "status", "message"],
                {
                    "id": "ID",
                    "title": "Title",
                    "status": "Status",
                    "message": "Message",
                },
            )
            out.print_summary(
                "Transfer Complete",
                [
                    ("Success", result.count(TransferStatus.SUCCESS)),
                    ("Skipped", result.count(TransferStatus.SKIPPED)),
                    ("Failed", result.count(TransferStatus.FAILED)),
                ],
            )

        if result.cancelled:
            out.warning("Transfer cancelled by user")
            ctx.exit(130)
        if result.count(TransferStatus.FAILED):
            ctx.exit(1)

    except KeyboardInterrupt:
        out.warning("\nTransfer cancelled by user")
        if cache is not None:
            cache.flush()
        ctx.exit(130)
    except PanTransferError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command(name="filter")
@click.argument(
    "files_json", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--settings",
    "-s",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Processing settings file with filter rules",
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice(["ordered", "deny-first", "allow-first"]),
    help="Override the evaluation mode of the settings file",
)
@click.pass_context
def filter_cmd(
    ctx: Any, files_json: Path, settings: Optional[Path], mode: Optional[str]
) -> None:
    """Show which entries of FILES_JSON the filter rules keep or drop."""
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]

    try:
        policy = _load_policy(cfg, settings, mode)
        entries = load_descriptors(files_json)
    except (PanConfigError, RuleSettingsError) as e:
        out.error(str(e))
        ctx.exit(1)

    result = apply_file_filters(entries, policy.filter_rules, policy.mode)
    if out.json_output:
        out.output_json(
            {
                "mode": policy.mode.value,
                "kept": [e.name for e in result.entries],
                "dropped": [
                    {"name": s.name, "rule": s.rule_name} for s in result.skipped
                ],
            }
        )
        return

    rule_by_name = {s.name: s.rule_name for s in result.skipped}
    rows = [
        {
            "name": entry.name,
            "size": format_size(entry.size),
            "action": "drop" if entry.name in rule_by_name else "keep",
            "rule": rule_by_name.get(entry.name, ""),
        }
        for entry in entries
    ]
    out.output_table(
        rows,
        ["name", "size", "action", "rule"],
        {"name": "Name", "size": "Size", "action": "Action", "rule": "Rule"},
    )
    out.info(
        f"Mode {policy.mode.value}: kept {len(result.entries)}, "
        f"dropped {len(result.skipped)}"
    )


@main.command()
@click.argument(
    "files_json", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--settings",
    "-s",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Processing settings file with rename rules",
)
@click.option(
    "--existing",
    "-e",
    multiple=True,
    help="Name already present in the destination (repeatable)",
)
@click.pass_context
def rename(
    ctx: Any, files_json: Path, settings: Optional[Path], existing: tuple[str, ...]
) -> None:
    """Preview the names the rename rules give the entries of FILES_JSON."""
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]

    try:
        policy = _load_policy(cfg, settings)
        entries = load_descriptors(files_json)
    except (PanConfigError, RuleSettingsError) as e:
        out.error(str(e))
        ctx.exit(1)

    plan = build_rename_plan(entries, policy.rename_rules, existing)
    out.output_table(
        [
            {
                "original": entry.original_name,
                "final": entry.final_name,
                "changed": "yes" if entry.changed else "no",
                "rules": ", ".join(entry.applied_rules),
            }
            for entry in plan
        ],
        ["original", "final", "changed", "rules"],
        {
            "original": "Original",
            "final": "Final",
            "changed": "Changed",
            "rules": "Rules",
        },
    )


@main.group()
def cache() -> None:
    """Inspect and maintain the transfer caches."""


@cache.command(name="stats")
@click.pass_context
def cache_stats(ctx: Any) -> None:
    """Show entry counts of the cache tables."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        store = _open_cache(ctx.obj["config"])
    except PanConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    stats = store.stats()
    out.output_table(
        [{"table": name, **values} for name, values in stats.items()],
        ["table", "entries", "capacity"],
        {"table": "Table", "entries": "Entries", "capacity": "Capacity"},
    )


@cache.command(name="invalidate")
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def cache_invalidate(ctx: Any, paths: tuple[str, ...]) -> None:
    """Forget cached listings for PATHS, their parents and their children."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        store = _open_cache(ctx.obj["config"])
    except PanConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    removed = store.invalidate(paths)
    store.flush()
    if out.json_output:
        out.output_json({"removed": removed})
    else:
        out.success(f"Removed {removed} cache entries")


@cache.command(name="clear-completed")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def cache_clear_completed(ctx: Any, yes: bool) -> None:
    """Forget every completed transfer so all shares are transferred again."""
    out: OutputFormatter = ctx.obj["out"]
    if not yes and not click.confirm("Forget all completed transfers?", default=False):
        out.info("Aborted")
        return
    try:
        store = _open_cache(ctx.obj["config"])
    except PanConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    count = len(store.completed)
    store.clear_completed()
    store.flush()
    if out.json_output:
        out.output_json({"removed": count})
    else:
        out.success(f"Cleared {count} completed transfer(s)")


@main.group()
def history() -> None:
    """Inspect and edit the transfer history."""


@history.command(name="list")
@click.pass_context
def history_list(ctx: Any) -> None:
    """List history records, most recent first."""
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]
    try:
        store = _open_history(cfg, _open_cache(cfg))
    except PanConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    records = store.records()
    if out.json_output:
        out.output_json([record.to_dict() for record in records])
        return
    if not records:
        out.info("No history records")
        return
    out.output_table(
        [
            {
                "key": r.job_key,
                "title": r.title,
                "target": r.target_directory,
                "items": len(r.items),
                "summary": r.last_summary,
            }
            for r in records
        ],
        ["key", "title", "target", "items", "summary"],
        {
            "key": "Key",
            "title": "Title",
            "target": "Target",
            "items": "Items",
            "summary": "Last Result",
        },
    )


@history.command(name="delete")
@click.argument("keys", nargs=-1, required=True)
@click.pass_context
def history_delete(ctx: Any, keys: tuple[str, ...]) -> None:
    """Delete history records; their shares will be transferred again."""
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]
    try:
        store = _open_history(cfg, _open_cache(cfg))
    except PanConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    removed = store.delete_records(list(keys))
    if out.json_output:
        out.output_json({"removed": removed})
    elif removed:
        out.success(f"Deleted {removed} history record(s)")
    else:
        out.warning("No matching history records")


@history.command(name="clear")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def history_clear(ctx: Any, yes: bool) -> None:
    """Delete all history records and completed transfers."""
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]
    if not yes and not click.confirm(
        "Delete the whole transfer history?", default=False
    ):
        out.info("Aborted")
        return
    try:
        store = _open_history(cfg, _open_cache(cfg))
    except PanConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    removed = store.clear()
    if out.json_output:
        out.output_json({"removed": removed})
    else:
        out.success(f"Deleted {removed} history record(s)")


if __name__ == "__main__":
    main()
