"""Partition runs: discover the job list, then drain it.

Workflow for one partition (a year):

- ``discover`` mode: open the search page, walk every Volume/Part leaf of the
  year, harvest its result list and merge the references into the JobStore
  leaf by leaf.
- ``resume`` mode: skip the walk; if only a links file exists, seed the
  partition from it.
- Extraction: take ``pending_of`` and process each reference at most once,
  committing its status after every item. ``direct`` extraction can run
  several sessions against one shared queue; ``modal`` extraction depends on
  the session's selection state and always runs on one.

Wired to ``digiscr-run`` via :func:`_cli_entrypoint`.
"""

from __future__ import annotations

import argparse
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import config
from .config_validation import validate_runtime_config
from .detail import DetailExtractor
from .error_codes import ErrorCode
from .errors import DriverUnavailable, PersistenceFailure, ScraperError
from .harvester import LinkHarvester
from .hierarchy import HierarchyEnumerator
from .job_store import JobStore
from .logging_utils import _scraper_event, _short_error_message
from .models import ItemReference, ItemStatus
from .pdfs import download_partition_pdfs
from .selectors_digiscr import DIGISCR_SELECTORS, DigiScrSelectors
from .sessions import SessionPool, driver_factory
from .telemetry import RunTelemetry
from .utils import ensure_dirs, log_line, save_json_file, setup_run_logger

RESTART_BACKOFF_SECONDS = [5, 15, 45]


class PartitionPhase(str, Enum):
    DISCOVERING = "discovering"
    EXTRACTING = "extracting"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass
class PartitionSummary:
    partition: str
    mode: str = "discover"
    phase: PartitionPhase = PartitionPhase.DISCOVERING
    discovered: int = 0
    added: int = 0
    done: int = 0
    failed: int = 0
    skipped: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["phase"] = self.phase.value
        return payload


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_partition(
    key: str,
    session,
    store: JobStore,
    *,
    selectors: DigiScrSelectors = DIGISCR_SELECTORS,
) -> int:
    """Walk the year's hierarchy and merge every leaf; return references added."""

    enumerator = HierarchyEnumerator(session, selectors)
    harvester = LinkHarvester(session, selectors)

    enumerator.open_root()
    added = 0
    leaves = 0
    for path in enumerator.iter_paths(years=[key]):
        leaves += 1
        refs = harvester.harvest(path)
        result = store.merge(key, refs)
        added += result.added

    if leaves == 0:
        log_line(f"[RUN][WARN] Year {key} offered no volumes; partition left empty.")
        # Still record the partition so resume runs and the viewer see it.
        store.merge(key, [])

    _scraper_event("discover", partition=key, leaves=leaves, added=added)
    return added


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _process_item(
    key: str,
    ref: ItemReference,
    extractor: DetailExtractor,
    store: JobStore,
    telemetry: RunTelemetry,
) -> ItemStatus:
    """Extract one reference and commit the outcome; returns the new status."""

    meta = {"partition": key, "item_id": ref.id, "attempt": ref.attempts + 1}
    try:
        record = extractor.extract(ref)
    except (PersistenceFailure, DriverUnavailable):
        raise
    except ScraperError as exc:
        error_code, message = exc.error_code, _short_error_message(exc)
    except Exception as exc:  # noqa: BLE001
        error_code, message = ErrorCode.INTERNAL, _short_error_message(exc)
        _scraper_event("error", phase="extract", item_id=ref.id, error_repr=repr(exc))
    else:
        store.update_status(key, ref.id, ItemStatus.DONE, record=record)
        telemetry.add("done", "extracted", meta)
        return ItemStatus.DONE

    log_line(f"[RUN] Extraction of {ref.id} failed ({error_code}): {message}")
    store.update_status(
        key,
        ref.id,
        ItemStatus.FAILED,
        error_code=error_code,
        error_message=message,
    )
    telemetry.add("failed", error_code, meta)
    return ItemStatus.FAILED


def extract_partition(
    key: str,
    pool: SessionPool,
    store: JobStore,
    *,
    mode: str = "direct",
    workers: int = 1,
    telemetry: Optional[RunTelemetry] = None,
    cancel: Optional[threading.Event] = None,
    selectors: DigiScrSelectors = DIGISCR_SELECTORS,
    max_attempts: Optional[int] = None,
) -> Dict[str, int]:
    """Drain the partition's pending references.

    Returns ``{"attempted", "done", "failed"}`` for this run. Stops between
    items once ``cancel`` is set; the in-flight item finishes first.
    """

    telemetry = telemetry or RunTelemetry("extract", partition=key)
    pending = store.pending_of(key, max_attempts=max_attempts)
    counts = {"attempted": 0, "done": 0, "failed": 0}
    if not pending:
        return counts

    effective_workers = 1 if config.is_modal_extraction(mode) else max(1, workers)
    effective_workers = min(effective_workers, len(pending))

    work: "queue.Queue[ItemReference]" = queue.Queue()
    for ref in pending:
        work.put(ref)
    claimed: set[str] = set()
    lock = threading.Lock()
    stop = threading.Event()

    def _should_stop() -> bool:
        return stop.is_set() or (cancel is not None and cancel.is_set())

    def _worker() -> None:
        with pool.acquire() as session:
            extractor = DetailExtractor(session, selectors, mode=mode)
            while not _should_stop():
                try:
                    ref = work.get_nowait()
                except queue.Empty:
                    return
                with lock:
                    if ref.id in claimed:
                        continue
                    claimed.add(ref.id)
                    counts["attempted"] += 1
                status = _process_item(key, ref, extractor, store, telemetry)
                with lock:
                    counts[status.value] += 1
                if config.PER_ITEM_DELAY > 0:
                    time.sleep(config.PER_ITEM_DELAY)

    _scraper_event(
        "extract",
        partition=key,
        action="start",
        pending=len(pending),
        workers=effective_workers,
        mode=mode,
    )

    if effective_workers == 1:
        _worker()
    else:
        errors: List[BaseException] = []
        with ThreadPoolExecutor(max_workers=effective_workers) as executor:
            futures = [executor.submit(_worker) for _ in range(effective_workers)]
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as exc:  # noqa: BLE001
                    stop.set()
                    errors.append(exc)
        if errors:
            raise errors[0]

    if cancel is not None and cancel.is_set():
        _scraper_event("extract", partition=key, action="cancelled", remaining=work.qsize())
    return counts


# ---------------------------------------------------------------------------
# Partition runs
# ---------------------------------------------------------------------------


def run_partition(
    key: str,
    mode: str = "discover",
    *,
    extract_mode: Optional[str] = None,
    extract_workers: Optional[int] = None,
    pool: Optional[SessionPool] = None,
    store: Optional[JobStore] = None,
    selectors: DigiScrSelectors = DIGISCR_SELECTORS,
    cancel: Optional[threading.Event] = None,
    download_pdfs: bool = False,
    max_attempts: Optional[int] = None,
) -> PartitionSummary:
    """Run one partition; safe to invoke repeatedly.

    A ``ScraperError`` that escapes discovery or extraction aborts only this
    partition and is reported in the summary. ``DriverUnavailable`` is the
    exception: it propagates to the caller.
    """

    key = str(key)
    mode = (mode or "discover").strip().lower()
    store = store or JobStore()
    pool = pool or SessionPool(driver_factory())
    extract_mode = extract_mode or config.EXTRACT_MODE_DEFAULT
    workers = config.MAX_EXTRACT_WORKERS if extract_workers is None else extract_workers

    summary = PartitionSummary(partition=key, mode=mode)
    telemetry = RunTelemetry(mode, partition=key)
    _scraper_event("run", partition=key, mode=mode, extract_mode=extract_mode, workers=workers)

    try:
        if config.is_discover_mode(mode):
            with pool.acquire() as session:
                summary.added = discover_partition(key, session, store, selectors=selectors)
        elif not store.exists(key):
            if not store.links_of(key):
                summary.phase = PartitionPhase.ABORTED
                summary.error = "no job list persisted; run discover first"
                log_line(f"[RUN][WARN] Nothing to resume for partition {key}.")
                return summary
            summary.added = store.seed_from_links(key).added

        summary.discovered = len(store.load(key))
        summary.phase = PartitionPhase.EXTRACTING

        counts = extract_partition(
            key,
            pool,
            store,
            mode=extract_mode,
            workers=workers,
            telemetry=telemetry,
            cancel=cancel,
            selectors=selectors,
            max_attempts=max_attempts,
        )
        summary.done = counts["done"]
        summary.failed = counts["failed"]
        summary.skipped = summary.discovered - counts["attempted"]

        if download_pdfs:
            download_partition_pdfs(key, store=store)

        cancelled = cancel is not None and cancel.is_set()
        if not cancelled and not store.pending_of(key, max_attempts=max_attempts):
            summary.phase = PartitionPhase.COMPLETE
    except DriverUnavailable:
        raise
    except ScraperError as exc:
        summary.phase = PartitionPhase.ABORTED
        summary.error = _short_error_message(exc)
        summary.error_code = exc.error_code
        log_line(f"[RUN][WARN] Partition {key} aborted ({exc.error_code}): {summary.error}")
        _scraper_event(
            "error",
            phase="run",
            partition=key,
            error_code=exc.error_code,
            error=summary.error,
        )
    finally:
        try:
            telemetry.finalize(extra={"partition_summary": summary.to_dict()})
        except OSError as exc:
            log_line(f"[RUN][WARN] Unable to write run telemetry: {exc}")

    _scraper_event("run", **summary.to_dict())
    return summary


def run_partitions(
    keys: Sequence[str],
    mode: str = "discover",
    *,
    workers: Optional[int] = None,
    extract_workers: Optional[int] = None,
    pool: Optional[SessionPool] = None,
    **kwargs: Any,
) -> List[PartitionSummary]:
    """Run several partitions, each on its own sessions.

    Extraction workers per partition are capped so that all partitions
    together fit in the session pool.
    """

    pool = pool or SessionPool(driver_factory())
    parallel = max(1, min(workers or config.MAX_PARALLEL_PARTITIONS, len(keys) or 1))
    requested = config.MAX_EXTRACT_WORKERS if extract_workers is None else extract_workers
    per_partition = max(1, min(requested, pool.size // parallel))

    if parallel == 1:
        return [
            run_partition(key, mode, extract_workers=per_partition, pool=pool, **kwargs)
            for key in keys
        ]

    results: Dict[str, PartitionSummary] = {}
    with ThreadPoolExecutor(max_workers=parallel) as executor:
        futures = {
            executor.submit(
                run_partition, key, mode, extract_workers=per_partition, pool=pool, **kwargs
            ): key
            for key in keys
        }
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    return [results[key] for key in keys]


def run_with_retries(
    run_callable: Callable[[], Any],
    *,
    max_retries: int,
) -> Any:
    """Execute ``run_callable``, restarting it when the browser becomes unavailable."""

    effective_retries = max(1, max_retries)
    for attempt in range(1, effective_retries + 1):
        try:
            log_line(f"[RUN] Starting run attempt {attempt}/{effective_retries}...")
            result = run_callable()
            log_line("[RUN] Run completed successfully.")
            return result
        except DriverUnavailable as exc:
            log_line(f"[RUN] Driver unavailable on attempt {attempt}: {exc}")
            _scraper_event(
                "error",
                context="run",
                error="driver_unavailable",
                attempt=attempt,
                max_retries=effective_retries,
            )
            if attempt >= effective_retries:
                log_line("[RUN] Max retries reached; aborting.")
                _scraper_event(
                    "error",
                    context="run",
                    error="driver_unavailable_max_retries",
                    attempt=attempt,
                    max_retries=effective_retries,
                )
                raise
            delay = RESTART_BACKOFF_SECONDS[
                min(attempt - 1, len(RESTART_BACKOFF_SECONDS) - 1)
            ]
            log_line(f"[RUN] Retrying in {delay}s after driver failure...")
            time.sleep(delay)
        except Exception:
            log_line("[RUN] Unexpected error; aborting without retry.")
            _scraper_event("error", context="run", error="unexpected_exception")
            raise

    raise RuntimeError("run_with_retries exhausted without returning a result")


def run(
    keys: Sequence[str],
    mode: str = "discover",
    *,
    driver_backend: Optional[str] = None,
    workers: Optional[int] = None,
    extract_workers: Optional[int] = None,
    extract_mode: Optional[str] = None,
    download_pdfs: bool = False,
    max_retries: Optional[int] = None,
) -> Dict[str, Any]:
    """Public entrypoint: run ``keys`` with restart support and write a summary."""

    ensure_dirs()
    setup_run_logger(f"run_{'_'.join(str(k) for k in keys) or 'none'}")

    pool = SessionPool(driver_factory(driver_backend))
    retry_limit = max_retries if max_retries is not None else config.SCRAPER_MAX_RETRIES

    def _attempt() -> List[PartitionSummary]:
        return run_partitions(
            keys,
            mode,
            workers=workers,
            extract_workers=extract_workers,
            pool=pool,
            extract_mode=extract_mode,
            download_pdfs=download_pdfs,
        )

    summaries = run_with_retries(_attempt, max_retries=retry_limit)
    result = {
        "mode": mode,
        "partitions": [summary.to_dict() for summary in summaries],
        "peak_sessions": pool.peak_active,
    }
    try:
        save_json_file(config.SUMMARY_FILE, result)
    except OSError as exc:
        log_line(f"[RUN][WARN] Unable to write summary: {exc}")
    return result


def _cli_entrypoint(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Harvest and extract SCR judgments by year")
    parser.add_argument(
        "--partition",
        dest="partitions",
        action="append",
        required=True,
        help="Year to process; repeat for several years.",
    )
    parser.add_argument("--mode", choices=["discover", "resume"], default="discover")
    parser.add_argument(
        "--extract-mode",
        choices=["direct", "modal"],
        default=config.EXTRACT_MODE_DEFAULT,
    )
    parser.add_argument("--workers", type=int, default=config.MAX_PARALLEL_PARTITIONS)
    parser.add_argument("--extract-workers", type=int, default=config.MAX_EXTRACT_WORKERS)
    parser.add_argument(
        "--driver",
        choices=["playwright", "selenium"],
        default=config.DRIVER_BACKEND,
    )
    parser.add_argument("--download-pdfs", action="store_true")
    parser.add_argument("--max-retries", type=int, default=config.SCRAPER_MAX_RETRIES)

    args = parser.parse_args(argv)

    ensure_dirs()
    validate_runtime_config("cli", mode=args.mode)

    result = run(
        args.partitions,
        args.mode,
        driver_backend=args.driver,
        workers=args.workers,
        extract_workers=args.extract_workers,
        extract_mode=args.extract_mode,
        download_pdfs=args.download_pdfs,
        max_retries=args.max_retries,
    )
    for entry in result["partitions"]:
        log_line(
            "[RUN] partition={partition} phase={phase} discovered={discovered} "
            "added={added} done={done} failed={failed} skipped={skipped}".format(**entry)
        )


if __name__ == "__main__":  # pragma: no cover
    _cli_entrypoint()

__all__ = [
    "PartitionPhase",
    "PartitionSummary",
    "discover_partition",
    "extract_partition",
    "run_partition",
    "run_partitions",
    "run_with_retries",
    "run",
    "_cli_entrypoint",
]
