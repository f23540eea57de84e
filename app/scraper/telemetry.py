"""Run telemetry: one JSON document per partition run."""

from __future__ import annotations

import os
import threading
import time
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .utils import save_json_file

MAX_EXPORTS = int(os.environ.get("EXPORTS_KEEP_MAX", "5"))


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


class RunTelemetry:
    """Collect per-item outcomes for a run; safe to share between workers."""

    def __init__(self, mode: str, *, partition: Optional[str] = None) -> None:
        self.run_id = f"{_ts()}_{uuid.uuid4().hex[:8]}"
        self.mode = mode
        self.partition = partition
        self.started_at = time.time()
        self.entries: List[Dict[str, Any]] = []
        self.summary: Dict[str, Any] = defaultdict(int)
        self._lock = threading.Lock()

    def add(self, status: str, reason: str, meta: Dict[str, Any]) -> None:
        with self._lock:
            self.entries.append(
                {
                    "status": status,
                    "reason": reason,
                    "at": time.time(),
                    **meta,
                }
            )
            self.summary[f"count_{status}"] += 1

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> Path:
        with self._lock:
            payload = {
                "run_id": self.run_id,
                "mode": self.mode,
                "partition": self.partition,
                "started_at": self.started_at,
                "ended_at": time.time(),
                "summary": dict(self.summary),
                "entries": list(self.entries),
                **(extra or {}),
            }
        label = f"_{self.partition}" if self.partition else ""
        path = Path(config.RUNS_DIR) / f"run{label}_{self.run_id}.json"
        save_json_file(path, payload)
        return path


def prune_old_exports(exports_dir: Optional[Path] = None) -> None:
    directory = Path(exports_dir or config.EXPORTS_DIR)
    if not directory.exists():
        return
    files = sorted(directory.glob("*.xlsx"))
    while len(files) > MAX_EXPORTS:
        old = files.pop(0)
        try:
            old.unlink()
        except OSError:
            continue


__all__ = [
    "RunTelemetry",
    "prune_old_exports",
]
