"""Configuration constants for the digiscr crawl-and-extract pipeline."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("DIGISCR_DATA_DIR", "/app/data"))
PARTITIONS_DIR: Path = DATA_DIR / "partitions"
PDF_DIR: Path = DATA_DIR / "pdfs"
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
RUNS_DIR: Path = DATA_DIR / "runs"
EXPORTS_DIR: Path = DATA_DIR / "exports"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"

DEFAULT_BASE_URL: str = os.getenv("DIGISCR_BASE_URL", "https://digiscr.sci.gov.in/")

# Backend used to build driver sessions: "playwright" or "selenium".
DRIVER_BACKEND: str = os.getenv("DIGISCR_DRIVER", "playwright").strip().lower() or "playwright"
HEADLESS: bool = os.getenv("DIGISCR_HEADLESS", "true").strip().lower() not in {"0", "false"}
CHROMIUM_BINARY: str = os.getenv("DIGISCR_CHROMIUM_BINARY", "/usr/bin/chromium")

# "direct" loads each reference URL; "modal" re-selects the scope and opens
# the in-page judgment view.
EXTRACT_MODE_DEFAULT: str = os.getenv("DIGISCR_EXTRACT_MODE", "direct").strip().lower() or "direct"

MAX_ATTEMPTS: int = int(os.getenv("DIGISCR_MAX_ATTEMPTS", "3"))
SCRAPER_MAX_RETRIES: int = int(os.getenv("DIGISCR_MAX_RESTARTS", "3"))
MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "200"))
DOWNLOAD_TIMEOUT_S: int = int(os.getenv("DOWNLOAD_TIMEOUT_S", "120"))
DOWNLOAD_RETRIES: int = int(os.getenv("DOWNLOAD_RETRIES", "3"))


def _parse_timeout_seconds(env_var: str, default: float, *, minimum: float = 1) -> float:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_delay_seconds(env_var: str, default: float) -> float:
    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(0.0, value)


# Driver timeouts (seconds). These bound how long we tolerate a wait; the
# settle delays below only describe how long a dynamic update usually takes.
NAV_TIMEOUT_SECONDS: float = _parse_timeout_seconds("DIGISCR_NAV_TIMEOUT_SECONDS", 30)
SELECTOR_TIMEOUT_SECONDS: float = _parse_timeout_seconds("DIGISCR_SELECTOR_TIMEOUT_SECONDS", 20)
CLICK_TIMEOUT_SECONDS: float = _parse_timeout_seconds("DIGISCR_CLICK_TIMEOUT_SECONDS", 5)
# A leaf with no results never renders its list, so this stays short.
RESULTS_WAIT_SECONDS: float = _parse_timeout_seconds("DIGISCR_RESULTS_WAIT_SECONDS", 10)
CITED_WAIT_SECONDS: float = _parse_timeout_seconds("DIGISCR_CITED_WAIT_SECONDS", 8)
PAGER_REFRESH_TIMEOUT_SECONDS: float = _parse_timeout_seconds(
    "DIGISCR_PAGER_REFRESH_TIMEOUT_SECONDS", 15
)
# How long an empty dropdown is re-read before it counts as "no options".
OPTIONS_RETRY_SECONDS: float = _parse_timeout_seconds("DIGISCR_OPTIONS_RETRY_SECONDS", 6)
# Volumes without parts never show the part control; each one costs this wait.
PART_CONTROL_WAIT_SECONDS: float = _parse_timeout_seconds("DIGISCR_PART_CONTROL_WAIT_SECONDS", 3)
SESSION_ACQUIRE_TIMEOUT_SECONDS: float = _parse_timeout_seconds(
    "DIGISCR_SESSION_ACQUIRE_TIMEOUT_SECONDS", 60
)
LOCK_TIMEOUT_SECONDS: float = _parse_timeout_seconds("DIGISCR_LOCK_TIMEOUT_SECONDS", 30)

SETTLE_SECONDS: float = _parse_delay_seconds("DIGISCR_SETTLE_SECONDS", 1.0)
POLL_INTERVAL_SECONDS: float = _parse_delay_seconds("DIGISCR_POLL_INTERVAL_SECONDS", 0.25)
PER_ITEM_DELAY: float = _parse_delay_seconds("DIGISCR_PER_ITEM_DELAY", 0.5)

# Concurrency controls
MAX_PARALLEL_PARTITIONS: int = int(os.getenv("DIGISCR_MAX_PARALLEL_PARTITIONS", "1"))
MAX_EXTRACT_WORKERS: int = int(os.getenv("DIGISCR_MAX_EXTRACT_WORKERS", "1"))
MAX_DRIVER_SESSIONS: int = int(os.getenv("DIGISCR_MAX_DRIVER_SESSIONS", "4"))

# Viewer: kick a discovery run for the current year when its partition is missing.
VIEWER_AUTO_KICK: bool = os.getenv("DIGISCR_VIEWER_AUTO_KICK", "1").strip().lower() not in {
    "0",
    "false",
}

USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}


def is_discover_mode(mode: str) -> bool:
    """Return ``True`` when ``mode`` asks for a hierarchy walk before extraction."""

    return str(mode).strip().lower() == "discover"


def is_resume_mode(mode: str) -> bool:
    """Return ``True`` when ``mode`` asks to drain an existing job list only."""

    return str(mode).strip().lower() == "resume"


def is_modal_extraction(mode: str) -> bool:
    return str(mode).strip().lower() == "modal"
