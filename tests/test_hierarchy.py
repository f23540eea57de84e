from __future__ import annotations

from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from app.scraper import hierarchy
from app.scraper.errors import StructuralChange
from app.scraper.hierarchy import HierarchyEnumerator, control_enabled, read_options
from app.scraper.models import SelectionPath
from app.scraper.sessions import DriverSession
from tests.fake_site import LaggingDriver, Volume, build_2023_site, configure_temp_paths


@pytest.fixture(autouse=True)
def _temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    configure_temp_paths(tmp_path, monkeypatch)


def _selects(driver) -> list:  # noqa: ANN001
    return [call for call in driver.calls if call[0] == "select"]


def test_read_options_skips_placeholder() -> None:
    soup = BeautifulSoup(
        "<select name='year'><option value=''>Select</option>"
        "<option value='2023'>2023</option><option value='2022'> 2022 </option></select>",
        "html5lib",
    )

    options = read_options(soup, "select[name='year']")

    assert [(o.value, o.label) for o in options] == [("2023", "2023"), ("2022", "2022")]
    assert read_options(soup, "select[name='volume']") is None


def test_control_enabled_hidden_or_disabled() -> None:
    soup = BeautifulSoup(
        "<select name='a' disabled></select><select name='b' style='display: none'></select>"
        "<select name='c'></select>",
        "html5lib",
    )
    assert control_enabled(soup, "select[name='a']") is False
    assert control_enabled(soup, "select[name='b']") is False
    assert control_enabled(soup, "select[name='c']") is True
    assert control_enabled(soup, "select[name='d']") is False


def test_iter_paths_yields_every_leaf_in_order() -> None:
    site = build_2023_site()
    session = DriverSession(site.driver())
    enumerator = HierarchyEnumerator(session)

    paths = list(enumerator.iter_paths(years=["2023"]))

    assert paths == [
        SelectionPath("2023", "A", None),
        SelectionPath("2023", "B", "1"),
        SelectionPath("2023", "B", "2"),
    ]
    assert paths[0].volume_label == "Volume A"
    assert paths[2].label() == "2023/Volume B/Part 2"
    assert session.state.matches(paths[-1])


def test_iter_paths_waits_for_late_volume_options() -> None:
    site = build_2023_site()
    site.flaky_volume_reads = 2
    session = DriverSession(site.driver())

    paths = list(HierarchyEnumerator(session).iter_paths(years=["2023"]))

    assert len(paths) == 3


def test_iter_paths_waits_for_late_part_control() -> None:
    site = build_2023_site()
    session = DriverSession(LaggingDriver(site, lag=3))

    paths = list(HierarchyEnumerator(session).iter_paths(years=["2023"]))

    assert [(path.volume, path.part) for path in paths] == [("A", None), ("B", "1"), ("B", "2")]


def test_root_is_loaded_once_per_walk() -> None:
    site = build_2023_site()
    driver = site.driver()
    session = DriverSession(driver)
    enumerator = HierarchyEnumerator(session)

    enumerator.open_root()
    list(enumerator.iter_paths(years=["2023"]))
    enumerator.apply(SelectionPath("2023", "A", None))

    assert [call for call in driver.calls if call[0] == "navigate"] == [("navigate", enumerator.base_url)]
    assert session.state.on_search_page is True


def test_year_without_volumes_yields_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    events = []
    monkeypatch.setattr(hierarchy, "_scraper_event", lambda phase, **fields: events.append(fields))
    site = build_2023_site()
    site.years["2021"] = {}
    session = DriverSession(site.driver())

    paths = list(HierarchyEnumerator(session, options_retry_seconds=0.05).iter_paths(years=["2021"]))

    assert paths == []
    assert any(fields.get("action") == "options_empty" for fields in events)


def test_open_root_without_year_control() -> None:
    site = build_2023_site()
    driver = site.driver()
    driver.render = lambda: "<html><body><p>Maintenance</p></body></html>"
    session = DriverSession(driver)

    with pytest.raises(StructuralChange):
        HierarchyEnumerator(session).open_root()


def test_apply_reestablishes_scope_once() -> None:
    site = build_2023_site()
    driver = site.driver()
    session = DriverSession(driver)
    enumerator = HierarchyEnumerator(session)
    path = SelectionPath("2023", "B", "2")

    enumerator.apply(path)
    first = len(_selects(driver))
    enumerator.apply(path)

    assert first == 3
    assert len(_selects(driver)) == first
    assert (driver.year, driver.volume, driver.part) == ("2023", "B", "2")


def test_apply_missing_option_is_structural() -> None:
    site = build_2023_site()
    site.add_volume("2023", "C", Volume(label="Volume C", items=["c1"]))
    session = DriverSession(site.driver())
    enumerator = HierarchyEnumerator(session)

    with pytest.raises(StructuralChange):
        enumerator.apply(SelectionPath("2023", "Z"))
