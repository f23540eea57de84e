from __future__ import annotations

import threading
from pathlib import Path

import pytest

from app.scraper import sessions
from app.scraper.errors import DriverUnavailable
from app.scraper.models import SelectionPath
from app.scraper.sessions import DriverSession, SessionPool, SessionState, driver_factory
from tests.fake_site import build_2023_site, configure_temp_paths


def test_session_state_tracks_selection() -> None:
    state = SessionState()
    path = SelectionPath("2023", "B", "1")

    assert not state.matches(path)
    state.record(path)
    assert state.matches(path)
    assert not state.matches(SelectionPath("2023", "B", "2"))

    state.reset()
    assert (state.year, state.volume, state.part) == (None, None, None)


def test_driver_is_bound_to_owner_thread() -> None:
    site = build_2023_site()
    session = DriverSession(site.driver(), name="owner")
    errors = []

    def _touch() -> None:
        try:
            session.driver
        except RuntimeError as exc:
            errors.append(exc)

    worker = threading.Thread(target=_touch)
    worker.start()
    worker.join()

    assert session.driver is site.drivers[0]
    assert len(errors) == 1
    assert "owner" in str(errors[0])


def test_pool_closes_driver_on_exit(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    configure_temp_paths(tmp_path, monkeypatch)
    site = build_2023_site()
    pool = SessionPool(site.driver, size=2)

    with pool.acquire() as session:
        assert session.driver.closed is False

    assert site.drivers[0].closed is True
    assert pool.peak_active == 1


def test_pool_acquire_times_out_when_exhausted(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    configure_temp_paths(tmp_path, monkeypatch)
    events = []
    monkeypatch.setattr(sessions, "_scraper_event", lambda phase, **fields: events.append((phase, fields)))
    site = build_2023_site()
    pool = SessionPool(site.driver, size=1)

    with pool.acquire():
        with pytest.raises(DriverUnavailable):
            with pool.acquire(timeout=0.05):
                pass

    assert any(fields.get("action") == "acquire_timeout" for _, fields in events)
    # The slot is free again once the holder exits.
    with pool.acquire(timeout=0.05):
        pass


def test_pool_factory_failure_is_driver_unavailable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    configure_temp_paths(tmp_path, monkeypatch)

    def _broken():
        raise OSError("chromium not found")

    pool = SessionPool(_broken, size=1)

    with pytest.raises(DriverUnavailable):
        with pool.acquire():
            pass
    with pytest.raises(DriverUnavailable):
        with pool.acquire(timeout=0.05):
            pass


def test_driver_factory_rejects_unknown_backend() -> None:
    with pytest.raises(ValueError):
        driver_factory("lynx")
