"""Per-partition job lists: harvested references, their status and records.

Each partition key (a year) owns two files under ``PARTITIONS_DIR``:

- ``<key>.json``: the full ordered reference list with embedded records.
- ``Links_<key>.json``: ``{id, url, status}`` triples, the contract read by
  resume-only runs.

Every mutation is a read-merge-write under a per-partition ``FileLock`` and
each file is replaced atomically, so a failed write leaves the previously
committed document in place.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from filelock import FileLock, Timeout

from . import config
from .item_state import apply_transition
from .logging_utils import _scraper_event
from .models import ExtractedRecord, ItemReference, ItemStatus, Partition
from .errors import PersistenceFailure
from .retry_policy import decide_retry
from .selectors_digiscr import DIGISCR_SELECTORS
from .utils import sanitize_filename_component, save_json_file, utc_now_iso

SCHEMA_VERSION = 1
LINKS_PREFIX = "Links_"


@dataclass(frozen=True)
class MergeResult:
    added: int
    existing: int


class JobStore:
    def __init__(self, root: Optional[Path] = None, *, lock_timeout: Optional[float] = None) -> None:
        self.root = Path(root) if root is not None else config.PARTITIONS_DIR
        self.lock_timeout = config.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    # -- paths ---------------------------------------------------------------

    @staticmethod
    def _safe_key(key: str) -> str:
        safe = sanitize_filename_component(str(key))
        if not safe:
            raise ValueError(f"Invalid partition key: {key!r}")
        return safe

    def partition_path(self, key: str) -> Path:
        return self.root / f"{self._safe_key(key)}.json"

    def links_path(self, key: str) -> Path:
        return self.root / f"{LINKS_PREFIX}{self._safe_key(key)}.json"

    def exists(self, key: str) -> bool:
        return self.partition_path(key).exists()

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceFailure(f"Cannot create {self.root}: {exc}") from exc
        lock_path = self.root / f"{self._safe_key(key)}.lock"
        try:
            with FileLock(str(lock_path), timeout=self.lock_timeout):
                yield
        except Timeout as exc:
            raise PersistenceFailure(
                f"Partition {key} is locked by another worker (waited {self.lock_timeout}s)"
            ) from exc

    # -- serialisation -------------------------------------------------------

    def _read(self, key: str) -> Partition:
        path = self.partition_path(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
        except FileNotFoundError:
            return Partition(key=str(key))
        except (OSError, json.JSONDecodeError) as exc:
            # Refuse to treat an unreadable document as empty; a later commit
            # would overwrite it.
            raise PersistenceFailure(f"Cannot read {path}: {exc}") from exc

        if isinstance(document, list):
            entries: List[Any] = document
            document = {}
        else:
            entries = document.get("references") or []

        references: List[ItemReference] = []
        seen: set[str] = set()
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            ref = ItemReference.from_dict(entry)
            if ref.id in seen:
                continue
            seen.add(ref.id)
            references.append(ref)

        return Partition(
            key=str(document.get("partition") or key),
            references=references,
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )

    def _commit(self, partition: Partition) -> None:
        now = utc_now_iso()
        partition.created_at = partition.created_at or now
        partition.updated_at = now
        document: Dict[str, Any] = {
            "schema_version": SCHEMA_VERSION,
            "partition": partition.key,
            "created_at": partition.created_at,
            "updated_at": partition.updated_at,
            "counts": partition.status_counts(),
            "references": [ref.to_dict() for ref in partition.references],
        }
        links = [
            {"id": ref.id, "url": ref.url, "status": ref.status.value}
            for ref in partition.references
        ]
        try:
            save_json_file(self.partition_path(partition.key), document)
            save_json_file(self.links_path(partition.key), links)
        except (OSError, TypeError, ValueError) as exc:
            _scraper_event(
                "error",
                phase="persist",
                partition=partition.key,
                error_code=PersistenceFailure.error_code,
                error=str(exc),
            )
            raise PersistenceFailure(f"Commit of partition {partition.key} failed: {exc}") from exc

    # -- public API ----------------------------------------------------------

    def load(self, key: str) -> Partition:
        """Return the persisted partition, or an empty one."""

        return self._read(key)

    def merge(self, key: str, refs: Iterable[ItemReference]) -> MergeResult:
        """Append references whose id is not yet known; never reorder or replace."""

        with self._locked(key):
            partition = self._read(key)
            known = set(partition.ids())
            added = 0
            existing = 0
            for ref in refs:
                if ref.id in known:
                    existing += 1
                    continue
                known.add(ref.id)
                partition.references.append(
                    ItemReference(
                        id=ref.id,
                        url=ref.url,
                        scope=ref.scope,
                        param=ref.param,
                        title=ref.title,
                        pdf_url=ref.pdf_url,
                        updated_at=utc_now_iso(),
                    )
                )
                added += 1
            if added or not self.exists(key):
                self._commit(partition)

        _scraper_event("store", action="merge", partition=key, added=added, existing=existing)
        return MergeResult(added=added, existing=existing)

    def update_status(
        self,
        key: str,
        item_id: str,
        status: ItemStatus,
        *,
        record: Optional[ExtractedRecord] = None,
        attempts: Optional[int] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> ItemReference:
        """Transition one reference and commit immediately.

        A refused transition (out of ``done``) leaves the file untouched and
        returns the stored reference unchanged.
        """

        with self._locked(key):
            partition = self._read(key)
            ref = partition.get(item_id)
            if ref is None:
                raise KeyError(f"{item_id} is not part of partition {key}")
            changed = apply_transition(
                ref,
                ItemStatus(status),
                partition=str(key),
                error_code=error_code,
                error_message=error_message,
                record=record,
                attempts=attempts,
            )
            if changed:
                self._commit(partition)
            return ref

    def pending_of(self, key: str, *, max_attempts: Optional[int] = None) -> List[ItemReference]:
        """References still owed work: ``pending``, plus ``failed`` under budget."""

        budget = config.MAX_ATTEMPTS if max_attempts is None else max_attempts
        result: List[ItemReference] = []
        for ref in self._read(key):
            if ref.status is ItemStatus.PENDING:
                result.append(ref)
            elif ref.status is ItemStatus.FAILED and decide_retry(
                ref.attempts,
                budget,
                error_code=ref.last_error_code,
                quiet=True,
            ):
                result.append(ref)
        return result

    def partitions(self) -> List[str]:
        if not self.root.exists():
            return []
        keys = [
            path.stem
            for path in self.root.glob("*.json")
            if not path.name.startswith(LINKS_PREFIX)
        ]
        return sorted(keys)

    def links_of(self, key: str) -> List[Dict[str, str]]:
        path = self.links_path(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceFailure(f"Cannot read {path}: {exc}") from exc
        return [entry for entry in payload or [] if isinstance(entry, dict) and entry.get("id")]

    def seed_from_links(self, key: str) -> MergeResult:
        """Merge references listed in the links file into the partition.

        Seeded references carry no scope and start ``pending``.
        """

        refs = [
            ItemReference(
                id=str(entry["id"]),
                url=str(entry.get("url") or DIGISCR_SELECTORS.view_url(str(entry["id"]))),
                scope=None,
            )
            for entry in self.links_of(key)
        ]
        return self.merge(key, refs)

    def summary(self, key: str, *, max_attempts: Optional[int] = None) -> Dict[str, Any]:
        budget = config.MAX_ATTEMPTS if max_attempts is None else max_attempts
        partition = self._read(key)
        counts = partition.status_counts()
        reasons: Dict[str, int] = {}
        exhausted = 0
        for ref in partition:
            if ref.status is not ItemStatus.FAILED:
                continue
            code = ref.last_error_code or "unknown"
            reasons[code] = reasons.get(code, 0) + 1
            if not decide_retry(ref.attempts, budget, error_code=ref.last_error_code, quiet=True):
                exhausted += 1
        return {
            "partition": str(key),
            "exists": self.exists(key),
            "total": len(partition),
            "pending": counts[ItemStatus.PENDING.value],
            "done": counts[ItemStatus.DONE.value],
            "failed": counts[ItemStatus.FAILED.value],
            "failed_exhausted": exhausted,
            "failure_reasons": reasons,
            "complete": counts[ItemStatus.PENDING.value] == 0
            and exhausted == counts[ItemStatus.FAILED.value],
            "updated_at": partition.updated_at,
        }


__all__ = ["JobStore", "MergeResult", "SCHEMA_VERSION"]
