from __future__ import annotations

import pytest

from app.scraper import retry_policy
from app.scraper.error_codes import ErrorCode


@pytest.fixture
def event_recorder(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    def _record(event_phase: str, **fields: object) -> None:
        events.append((event_phase, fields))

    monkeypatch.setattr(retry_policy, "_scraper_event", _record)
    return events


@pytest.mark.parametrize(
    "attempt, expected, kind",
    [
        (1, True, "retryable"),
        (2, True, "retryable"),
        (3, False, "capped"),
        (5, False, "capped"),
    ],
)
def test_navigation_timeout_retry_limits(
    attempt: int, expected: bool, kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    result = retry_policy.decide_retry(attempt, 3, error_code=ErrorCode.NAVIGATION_TIMEOUT)
    assert result is expected
    assert len(event_recorder) == 1
    phase, fields = event_recorder[0]
    assert phase == "state"
    assert fields["phase"] == "retry_decision"
    assert fields["error_code"] == ErrorCode.NAVIGATION_TIMEOUT
    assert fields["attempt"] == attempt
    assert fields["max_attempts"] == 3
    assert fields["will_retry"] is expected
    assert fields["kind"] == kind


@pytest.mark.parametrize(
    "error_code",
    [ErrorCode.INVALID_REFERENCE, ErrorCode.HTTP_404, ErrorCode.HTTP_4XX, ErrorCode.MALFORMED_PDF],
)
def test_non_retryable_error_codes(error_code: str, event_recorder: list[tuple[str, dict]]) -> None:
    assert error_code in retry_policy.NON_RETRYABLE_ERROR_CODES
    assert retry_policy.decide_retry(1, 3, error_code=error_code) is False
    _, fields = event_recorder[0]
    assert fields["kind"] == "non_retryable"
    assert fields["will_retry"] is False


def test_site_structure_is_retried_until_budget(event_recorder: list[tuple[str, dict]]) -> None:
    assert retry_policy.decide_retry(1, 3, error_code=ErrorCode.SITE_STRUCTURE) is True
    assert retry_policy.decide_retry(3, 3, error_code=ErrorCode.SITE_STRUCTURE) is False


@pytest.mark.parametrize(
    "error_code, expected_kind",
    [
        ("", "missing_error_code"),
        (None, "missing_error_code"),
        ("unexpected_code", "unknown"),
    ],
)
def test_missing_or_unknown_error_codes_allow_one_retry(
    error_code: str | None, expected_kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    assert retry_policy.decide_retry(1, 3, error_code=error_code) is True
    assert retry_policy.decide_retry(2, 3, error_code=error_code) is False
    kinds = [fields["kind"] for _, fields in event_recorder]
    assert kinds == [expected_kind, expected_kind]


def test_server_status_without_code_is_retryable(event_recorder: list[tuple[str, dict]]) -> None:
    assert retry_policy.decide_retry(2, 3, http_status=503) is True
    assert event_recorder[0][1]["http_status"] == 503


def test_quiet_suppresses_events(event_recorder: list[tuple[str, dict]]) -> None:
    retry_policy.decide_retry(1, 3, error_code=ErrorCode.NETWORK, quiet=True)
    assert event_recorder == []


def test_backoff_is_capped() -> None:
    assert retry_policy.compute_backoff_seconds(1) == 1
    assert retry_policy.compute_backoff_seconds(3) == 4
    assert retry_policy.compute_backoff_seconds(10) == 30
