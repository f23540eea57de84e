from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from . import config

LOGGER = logging.getLogger("digiscr")
_LOGGER_INITIALISED = False


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def setup_run_logger(label: str = "run") -> Path:
    """Rotate to a fresh timestamped log file for the current run."""

    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"{sanitize_filename_component(label) or 'run'}_{timestamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def ensure_dirs() -> None:
    """Ensure that the application's expected directory structure exists."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.PARTITIONS_DIR.mkdir(parents=True, exist_ok=True)
    config.PDF_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def utc_now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def sanitize_filename_component(component: str | None) -> str:
    """Sanitise a filename component by removing unsafe characters."""

    if not component:
        return ""

    cleaned = "".join(ch if ord(ch) >= 32 else " " for ch in component)
    cleaned = re.sub(r"[\\/:*?\"<>|@]+", "_", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = cleaned.strip(" ._")

    return cleaned


def truncate_to_max_bytes(value: str, max_bytes: int) -> str:
    """Truncate *value* so its UTF-8 byte length does not exceed *max_bytes*."""

    encoded = value.encode("utf-8")
    if len(encoded) <= max_bytes:
        return value

    encoded = encoded[:max_bytes]
    while encoded and (encoded[-1] & 0b11000000) == 0b10000000:
        encoded = encoded[:-1]

    return encoded.decode("utf-8", "ignore")


def save_json_file(path: Path, payload: Any) -> None:
    """Persist ``payload`` to ``path`` atomically (write temp, then replace)."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError):
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise


def disk_has_room(min_free_mb: int, path: Path) -> bool:
    """Return ``True`` when the filesystem holding ``path`` has enough space."""

    try:
        usage = shutil.disk_usage(str(path))
    except OSError as exc:
        log_line(f"[UTILS] Unable to stat free space for {path}: {exc}")
        return False
    return usage.free >= max(0, min_free_mb) * 1024 * 1024


__all__ = [
    "ensure_dirs",
    "setup_run_logger",
    "log_line",
    "utc_now_iso",
    "sanitize_filename_component",
    "truncate_to_max_bytes",
    "save_json_file",
    "disk_has_room",
]
