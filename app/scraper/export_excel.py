"""Excel export of a partition's extracted records."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from . import config
from .job_store import JobStore
from .models import ItemStatus
from .telemetry import prune_old_exports


def partition_frames(key: str, *, store: Optional[JobStore] = None) -> dict[str, pd.DataFrame]:
    """Return the ``Judgments``, ``CasesReferred`` and ``Failed`` sheets as frames."""

    store = store or JobStore()
    partition = store.load(key)

    judgments = []
    cited = []
    failed = []
    for ref in partition:
        scope = ref.scope.label() if ref.scope is not None else ""
        if ref.status is ItemStatus.DONE and ref.record is not None:
            row = {"id": ref.id, "title": ref.title, "scope": scope, "url": ref.url}
            row.update({k: v for k, v in ref.record.to_dict().items() if k != "case_referred"})
            row["cited_count"] = len(ref.record.case_referred)
            judgments.append(row)
            for case in ref.record.case_referred:
                cited.append({"judgment_id": ref.id, **case.to_dict()})
        elif ref.status is ItemStatus.FAILED:
            failed.append(
                {
                    "id": ref.id,
                    "scope": scope,
                    "attempts": ref.attempts,
                    "error_code": ref.last_error_code,
                    "error_message": ref.last_error_message,
                    "updated_at": ref.updated_at,
                }
            )

    judgments_df = pd.DataFrame(judgments)
    if judgments_df.empty:
        judgments_df = pd.DataFrame([{"info": f"No extracted records for {key}"}])

    summary_df = (
        pd.DataFrame([{"status": status, "count": count} for status, count in partition.status_counts().items()])
    )

    return {
        "Judgments": judgments_df,
        "CasesReferred": pd.DataFrame(cited),
        "Failed": pd.DataFrame(failed),
        "Summary_Status": summary_df,
    }


def export_partition_to_excel(
    key: str,
    dest_path: Optional[Path] = None,
    *,
    store: Optional[JobStore] = None,
) -> Path:
    """Write the partition workbook and return its path."""

    frames = partition_frames(key, store=store)

    exports_dir = Path(config.EXPORTS_DIR)
    exports_dir.mkdir(parents=True, exist_ok=True)
    if dest_path is None:
        dest_path = exports_dir / f"partition_{key}.xlsx"

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        for sheet, frame in frames.items():
            frame.to_excel(writer, index=False, sheet_name=sheet)

    prune_old_exports(exports_dir)
    return Path(dest_path)


__all__ = ["export_partition_to_excel", "partition_frames"]
