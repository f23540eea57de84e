from __future__ import annotations

import sys
from typing import Any, List

import pytest

from app.scraper.error_codes import ErrorCode
from app.scraper.item_state import apply_transition, can_transition
from app.scraper.models import ExtractedRecord, ItemReference, ItemStatus, SelectionPath


def _ref(status: ItemStatus = ItemStatus.PENDING, attempts: int = 0) -> ItemReference:
    return ItemReference(
        id="a1",
        url="https://digiscr.sci.gov.in/view_judgment?id=a1",
        scope=SelectionPath("2023", "A"),
        status=status,
        attempts=attempts,
    )


@pytest.fixture
def events(monkeypatch: pytest.MonkeyPatch) -> List[Any]:
    recorded: List[Any] = []
    monkeypatch.setattr(
        sys.modules["app.scraper.item_state"],
        "_scraper_event",
        lambda phase, **fields: recorded.append((phase, fields)),
    )
    return recorded


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (ItemStatus.PENDING, ItemStatus.DONE, True),
        (ItemStatus.PENDING, ItemStatus.FAILED, True),
        (ItemStatus.FAILED, ItemStatus.DONE, True),
        (ItemStatus.FAILED, ItemStatus.PENDING, True),
        (ItemStatus.DONE, ItemStatus.FAILED, False),
        (ItemStatus.DONE, ItemStatus.PENDING, False),
    ],
)
def test_can_transition(current: ItemStatus, target: ItemStatus, allowed: bool) -> None:
    assert can_transition(current, target) is allowed


def test_failed_then_done_counts_attempts(events: List[Any]) -> None:
    ref = _ref()

    assert apply_transition(
        ref,
        ItemStatus.FAILED,
        partition="2023",
        error_code=ErrorCode.NAVIGATION_TIMEOUT,
        error_message="slow",
    )
    assert ref.attempts == 1
    assert ref.last_error_code == ErrorCode.NAVIGATION_TIMEOUT

    record = ExtractedRecord(scr_citation="[2023] 1 S.C.R. 1")
    assert apply_transition(ref, ItemStatus.DONE, partition="2023", record=record)
    assert ref.status is ItemStatus.DONE
    assert ref.attempts == 2
    assert ref.record is record
    assert ref.last_error_code is None
    assert ref.last_error_message is None

    phases = [phase for phase, _ in events]
    assert phases == ["state", "state"]
    assert events[0][1]["error_code"] == ErrorCode.NAVIGATION_TIMEOUT
    assert events[1][1]["to_status"] == "done"


def test_failed_without_code_defaults_to_internal(events: List[Any]) -> None:
    ref = _ref()
    apply_transition(ref, ItemStatus.FAILED, partition="2023")
    assert ref.last_error_code == ErrorCode.INTERNAL


def test_done_is_terminal(events: List[Any]) -> None:
    record = ExtractedRecord(petitioner="P")
    ref = _ref(ItemStatus.DONE, attempts=1)
    ref.record = record

    assert apply_transition(ref, ItemStatus.FAILED, partition="2023") is False

    assert ref.status is ItemStatus.DONE
    assert ref.attempts == 1
    assert ref.record is record
    phase, fields = events[-1]
    assert phase == "error"
    assert fields["error"] == "invalid_transition_after_done"


def test_explicit_attempts_override(events: List[Any]) -> None:
    ref = _ref(attempts=2)
    apply_transition(ref, ItemStatus.FAILED, partition="2023", attempts=7)
    assert ref.attempts == 7
