from __future__ import annotations

import os
import threading
from datetime import datetime
from typing import Any, Dict, List

from flask import Flask, Response, abort, jsonify, render_template, send_file

from app.scraper import config
from app.scraper.errors import PersistenceFailure
from app.scraper.export_excel import export_partition_to_excel
from app.scraper.healthcheck import run_health_checks
from app.scraper.job_store import JobStore
from app.scraper.logging_utils import _scraper_event
from app.scraper.models import ItemReference
from app.scraper.orchestrator import run_partition
from app.scraper.utils import ensure_dirs, log_line

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

# Initialise storage paths on import so WSGI entrypoints also have the
# expected layout. Idempotent.
ensure_dirs()

_KICK_LOCK = threading.Lock()
_KICKED: set[str] = set()


def _store() -> JobStore:
    return JobStore()


def _current_year() -> str:
    return str(datetime.utcnow().year)


def _kick_current_partition() -> bool:
    """Start one background discovery run for this year's partition if it is missing.

    This is the only place the viewer triggers extraction; it happens at most
    once per process and only while no partition file exists.
    """

    if not config.VIEWER_AUTO_KICK:
        return False
    year = _current_year()
    with _KICK_LOCK:
        if year in _KICKED or _store().exists(year):
            return False
        _KICKED.add(year)

    def _run() -> None:
        try:
            run_partition(year, "discover")
        except Exception as exc:  # noqa: BLE001
            log_line(f"Viewer kick for {year} failed: {exc}")

    _scraper_event("viewer", action="kick", partition=year)
    threading.Thread(target=_run, daemon=True).start()
    return True


def _record_row(ref: ItemReference) -> Dict[str, Any]:
    payload = {
        "id": ref.id,
        "url": ref.url,
        "title": ref.title,
        "scope": ref.scope.to_dict() if ref.scope is not None else None,
        "pdf_url": ref.pdf_url,
        "updated_at": ref.updated_at,
    }
    payload.update(ref.record.to_dict() if ref.record is not None else {})
    return payload


def _done_rows(key: str) -> List[Dict[str, Any]]:
    store = _store()
    if not store.exists(key):
        abort(404)
    try:
        partition = store.load(key)
    except PersistenceFailure as exc:
        log_line(f"[VIEWER] Unable to read partition {key}: {exc}")
        abort(500)
    return [_record_row(ref) for ref in partition.done_records()]


@app.context_processor
def inject_globals() -> dict[str, object]:
    """Inject global configuration into all template contexts."""

    return {"config": config}


@app.route("/")
def index() -> str:
    """List the harvested years with their status counts."""

    ensure_dirs()
    kicked = _kick_current_partition()
    store = _store()
    partitions = []
    for key in sorted(store.partitions(), reverse=True):
        try:
            partitions.append(store.summary(key))
        except PersistenceFailure as exc:
            partitions.append({"partition": key, "error": str(exc)})
    return render_template(
        "index.html",
        partitions=partitions,
        kicked=kicked,
        current_year=_current_year(),
    )


@app.get("/partitions/<key>")
def partition_view(key: str) -> str:
    rows = _done_rows(key)
    return render_template("partition.html", key=key, rows=rows)


@app.get("/api/partitions")
def api_partitions() -> Response:
    store = _store()
    return jsonify({"ok": True, "partitions": store.partitions()})


@app.get("/api/partitions/<key>")
def api_partition_records(key: str) -> Response:
    """Return only the extracted (``done``) records of a partition."""

    rows = _done_rows(key)
    return jsonify({"ok": True, "partition": key, "count": len(rows), "records": rows})


@app.get("/api/partitions/<key>/summary")
def api_partition_summary(key: str) -> Response:
    store = _store()
    if not store.exists(key):
        return jsonify({"ok": False, "error": "unknown partition"}), 404
    try:
        summary = store.summary(key)
    except PersistenceFailure as exc:
        return jsonify({"ok": False, "error": str(exc)}), 500
    return jsonify({"ok": True, "summary": summary})


@app.get("/api/partitions/<key>/export.xlsx")
def api_partition_export(key: str) -> Response:
    if not _store().exists(key):
        return jsonify({"ok": False, "error": "unknown partition"}), 404
    path = export_partition_to_excel(key)
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem and partitions."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


if __name__ == "__main__":
    # Direct invocation is primarily for local development.
    app.run(host="0.0.0.0", port=8080)
