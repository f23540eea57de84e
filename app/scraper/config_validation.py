from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "tests"]

_BACKENDS = {"playwright", "selenium"}
_EXTRACT_MODES = {"direct", "modal"}


def _raise_config_error(
    message: str, *, entrypoint: Entrypoint, error: str, mode: str | None
) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
        mode=mode,
    )
    mode_fragment = f", mode={mode}" if mode else ""
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint}{mode_fragment})")
    raise ValueError(message)


def _clamp_to_one(field: str, *, entrypoint: Entrypoint, mode: str | None) -> None:
    value = getattr(config, field)
    if value >= 1:
        return
    _scraper_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field,
        value=value,
        adjusted=1,
        entrypoint=entrypoint,
        mode=mode,
    )
    log_line(f"[CONFIG] {field} < 1; clamping to 1.")
    setattr(config, field, 1)


def validate_runtime_config(entrypoint: Entrypoint, *, mode: str | None = None) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Worker and session knobs below 1 are clamped and logged instead.
    """

    if mode is not None and not (config.is_discover_mode(mode) or config.is_resume_mode(mode)):
        _raise_config_error(
            f"Unknown run mode {mode!r}; expected 'discover' or 'resume'.",
            entrypoint=entrypoint,
            error="invalid_mode",
            mode=mode,
        )

    if config.DRIVER_BACKEND not in _BACKENDS:
        _raise_config_error(
            f"DIGISCR_DRIVER must be one of {sorted(_BACKENDS)}.",
            entrypoint=entrypoint,
            error="invalid_driver_backend",
            mode=mode,
        )

    if config.EXTRACT_MODE_DEFAULT not in _EXTRACT_MODES:
        _raise_config_error(
            f"DIGISCR_EXTRACT_MODE must be one of {sorted(_EXTRACT_MODES)}.",
            entrypoint=entrypoint,
            error="invalid_extract_mode",
            mode=mode,
        )

    if config.MAX_ATTEMPTS < 1:
        _raise_config_error(
            "DIGISCR_MAX_ATTEMPTS must be at least 1.",
            entrypoint=entrypoint,
            error="max_attempts_invalid",
            mode=mode,
        )

    for field in ("MAX_PARALLEL_PARTITIONS", "MAX_EXTRACT_WORKERS", "MAX_DRIVER_SESSIONS"):
        _clamp_to_one(field, entrypoint=entrypoint, mode=mode)

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
            mode=mode,
        )

    timeout_fields = [
        ("NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("SELECTOR_TIMEOUT_SECONDS", config.SELECTOR_TIMEOUT_SECONDS),
        ("LOCK_TIMEOUT_SECONDS", config.LOCK_TIMEOUT_SECONDS),
        ("SESSION_ACQUIRE_TIMEOUT_SECONDS", config.SESSION_ACQUIRE_TIMEOUT_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
                mode=mode,
            )


__all__ = ["validate_runtime_config", "Entrypoint"]
