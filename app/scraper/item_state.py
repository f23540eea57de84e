from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _scraper_event
from .models import ExtractedRecord, ItemReference, ItemStatus
from .utils import utc_now_iso


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    """``done`` is terminal; every other move is allowed."""

    return current is not ItemStatus.DONE


def apply_transition(
    ref: ItemReference,
    target: ItemStatus,
    *,
    partition: str,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
    record: Optional[ExtractedRecord] = None,
    attempts: Optional[int] = None,
) -> bool:
    """Move ``ref`` to ``target`` in place and emit a state event.

    Returns ``False`` (and leaves ``ref`` untouched) when the transition is
    refused. Every transition to ``done`` or ``failed`` counts one attempt
    unless ``attempts`` gives the new total explicitly.
    """

    if not can_transition(ref.status, target):
        _scraper_event(
            "error",
            partition=partition,
            item_id=ref.id,
            current_status=ref.status.value,
            attempted_status=target.value,
            error="invalid_transition_after_done",
        )
        return False

    previous = ref.status
    ref.status = target
    ref.updated_at = utc_now_iso()

    if attempts is not None:
        ref.attempts = max(0, int(attempts))
    elif target in (ItemStatus.DONE, ItemStatus.FAILED):
        ref.attempts += 1

    if target is ItemStatus.DONE:
        ref.record = record
        ref.last_error_code = None
        ref.last_error_message = None
    elif target is ItemStatus.FAILED:
        ref.last_error_code = error_code or ErrorCode.INTERNAL
        ref.last_error_message = error_message

    payload = dict(
        partition=partition,
        item_id=ref.id,
        from_status=previous.value,
        to_status=target.value,
        attempt=ref.attempts,
    )
    if target is ItemStatus.FAILED:
        payload["error_code"] = ref.last_error_code
        if error_message is not None:
            payload["error_message"] = error_message

    _scraper_event("state", **payload)
    return True


__all__ = ["can_transition", "apply_transition"]
