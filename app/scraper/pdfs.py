"""Download the judgment PDFs listed for a partition."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import requests

from . import config
from .job_store import JobStore
from .logging_utils import _scraper_event
from .models import ItemReference
from .pdf_client import DownloadError, build_http_session, download_pdf
from .utils import disk_has_room, sanitize_filename_component, truncate_to_max_bytes

MAX_FILENAME_BYTES = 180


def pdf_path_for(ref: ItemReference, *, root: Optional[Path] = None) -> Path:
    """``<PDF_DIR>/<year>/Volume_<v>/Part_<p>/<title>.pdf``.

    References seeded without a scope land under ``unscoped/``.
    """

    base = Path(root or config.PDF_DIR)
    name = truncate_to_max_bytes(
        sanitize_filename_component(ref.title) or sanitize_filename_component(ref.id),
        MAX_FILENAME_BYTES,
    )
    if ref.scope is None:
        return base / "unscoped" / f"{name}.pdf"
    volume = sanitize_filename_component(ref.scope.volume_label or ref.scope.volume)
    part = sanitize_filename_component(ref.scope.part_label or ref.scope.part or "") or "Full Volume"
    return base / ref.scope.year / f"Volume_{volume}" / f"Part_{part}" / f"{name}.pdf"


def download_partition_pdfs(
    key: str,
    *,
    store: Optional[JobStore] = None,
    session: Optional[requests.Session] = None,
    root: Optional[Path] = None,
) -> Dict[str, int]:
    """Fetch every known PDF link for ``key``; existing files are skipped."""

    store = store or JobStore()
    http = session or build_http_session()
    base = Path(root or config.PDF_DIR)
    counts = {"found": 0, "downloaded": 0, "skipped": 0, "failed": 0}

    for ref in store.load(key):
        if not ref.pdf_url:
            continue
        counts["found"] += 1
        dest = pdf_path_for(ref, root=base)
        if dest.exists():
            counts["skipped"] += 1
            continue
        if not disk_has_room(config.MIN_FREE_MB, base if base.exists() else base.parent):
            _scraper_event("pdf", partition=key, action="disk_full", min_free_mb=config.MIN_FREE_MB)
            break
        try:
            download_pdf(ref.pdf_url, dest, session=http, token=ref.id)
            counts["downloaded"] += 1
        except DownloadError as exc:
            counts["failed"] += 1
            _scraper_event(
                "error",
                phase="pdf",
                partition=key,
                item_id=ref.id,
                error_code=exc.error_code,
                error=str(exc),
            )

    _scraper_event("pdf", partition=key, **counts)
    return counts


__all__ = ["download_partition_pdfs", "pdf_path_for"]
