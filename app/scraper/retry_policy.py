from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _scraper_event

RETRYABLE_ERROR_CODES = {
    ErrorCode.NAVIGATION_TIMEOUT,
    ErrorCode.SITE_STRUCTURE,
    ErrorCode.NETWORK,
    ErrorCode.HTTP_5XX,
    ErrorCode.INTERNAL,
}

NON_RETRYABLE_ERROR_CODES = {
    ErrorCode.INVALID_REFERENCE,
    ErrorCode.HTTP_404,
    ErrorCode.HTTP_4XX,
    ErrorCode.MALFORMED_PDF,
}


def compute_backoff_seconds(attempt_index: int) -> float:
    """Return a capped exponential backoff for the given attempt (1-based)."""

    return float(min(2 ** max(0, attempt_index - 1), 30))


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
    http_status: Optional[int] = None,
    quiet: bool = False,
) -> bool:
    """Decide whether a failed attempt should be retried.

    ``attempt_index`` is the number of attempts already made. Failed
    references are re-queued on the next invocation only while this returns
    ``True``. ``quiet`` suppresses the decision event for bulk filtering.
    """

    def _emit(kind: str, will_retry: bool, **extra: object) -> None:
        if quiet:
            return
        _scraper_event(
            "state",
            phase="retry_decision",
            kind=kind,
            attempt=attempt_index,
            max_attempts=max_attempts,
            error_code=code or None,
            http_status=http_status,
            will_retry=will_retry,
            **extra,
        )

    code = (error_code or "").strip()

    if attempt_index >= max_attempts:
        _emit("capped", False)
        return False

    if code in NON_RETRYABLE_ERROR_CODES:
        _emit("non_retryable", False)
        return False

    if code in RETRYABLE_ERROR_CODES:
        _emit("retryable", True)
        return True

    if http_status is not None and http_status >= 500:
        _emit("retryable", True)
        return True

    # Unknown context: be conservative and allow a single retry if available.
    fallback_retry = attempt_index < max_attempts - 1
    _emit(
        "unknown" if code else "missing_error_code",
        fallback_retry,
        error_repr=repr(error) if error is not None else None,
    )
    return fallback_retry


__all__ = [
    "decide_retry",
    "compute_backoff_seconds",
    "RETRYABLE_ERROR_CODES",
    "NON_RETRYABLE_ERROR_CODES",
]
