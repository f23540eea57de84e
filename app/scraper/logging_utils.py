from __future__ import annotations

from typing import Any

from .utils import log_line


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit a structured pipeline log line.

    Lines look like ``[SCRAPER][HARVEST] leaf='2023/1/2', count=14`` so that
    they can be grepped per stage. ``phase`` may be used as a keyword alias for
    the label; when both are provided, ``phase`` is emitted in the payload.
    """

    try:
        phase_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(f"{k}={repr(v)}" for k, v in sorted(fields.items()))
        log_line(f"[SCRAPER][{phase_label.upper()}] {payload}")
    except Exception:
        # Never let logging break the scraper.
        return


def _short_error_message(exc: BaseException, max_length: int = 200) -> str:
    """Return a truncated string representation of ``exc`` for persistence."""

    message = str(exc) or type(exc).__name__
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


__all__ = ["_scraper_event", "_short_error_message"]
