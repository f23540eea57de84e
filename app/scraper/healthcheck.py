from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from . import config
from .config_validation import validate_runtime_config
from .errors import PersistenceFailure
from .job_store import JobStore
from .logging_utils import _scraper_event
from .utils import disk_has_room, ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def run_health_checks(entrypoint: str = "cli", *, store: JobStore | None = None) -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli", mode=None)
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    ensure_dirs()
    fs_ok = disk_has_room(config.MIN_FREE_MB, config.DATA_DIR)
    checks["filesystem"] = {
        "ok": fs_ok,
        "data_dir": str(config.DATA_DIR),
        "min_free_mb": config.MIN_FREE_MB,
    }

    store = store or JobStore()
    unreadable: dict[str, str] = {}
    keys = store.partitions()
    for key in keys:
        try:
            store.load(key)
        except PersistenceFailure as exc:
            unreadable[key] = str(exc)
    checks["partitions"] = {
        "ok": not unreadable,
        "count": len(keys),
        "unreadable": unreadable,
    }

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
