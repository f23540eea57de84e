"""Walk the Year → Volume → Part selection tree of the search form.

The three controls cascade: choosing a year repopulates the volume control,
and choosing a volume either repopulates or hides the part control. All
reads go through a fresh DOM snapshot after each selection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from bs4 import BeautifulSoup

from . import config
from .driver import settle, snapshot, wait_until
from .errors import NavigationTimeout, StructuralChange
from .logging_utils import _scraper_event
from .models import SelectionPath
from .selectors_digiscr import DIGISCR_SELECTORS, DigiScrSelectors
from .sessions import DriverSession


@dataclass(frozen=True)
class ControlOption:
    value: str
    label: str


def read_options(soup: BeautifulSoup, control: str) -> Optional[List[ControlOption]]:
    """Return the non-placeholder options of ``control``.

    ``None`` means the control is not in the document at all, which is
    different from a control that is present but currently empty.
    """

    element = soup.select_one(control)
    if element is None:
        return None
    options: List[ControlOption] = []
    for option in element.find_all("option"):
        value = (option.get("value") or "").strip()
        if not value:
            continue
        options.append(ControlOption(value=value, label=option.get_text(" ", strip=True)))
    return options


def control_enabled(soup: BeautifulSoup, control: str) -> bool:
    element = soup.select_one(control)
    if element is None:
        return False
    if element.has_attr("disabled"):
        return False
    style = (element.get("style") or "").replace(" ", "").lower()
    return "display:none" not in style


class HierarchyEnumerator:
    def __init__(
        self,
        session: DriverSession,
        selectors: DigiScrSelectors = DIGISCR_SELECTORS,
        *,
        base_url: Optional[str] = None,
        options_retry_seconds: Optional[float] = None,
        part_wait_seconds: Optional[float] = None,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.base_url = base_url or config.DEFAULT_BASE_URL or selectors.base_url
        self.options_retry_seconds = (
            config.OPTIONS_RETRY_SECONDS if options_retry_seconds is None else options_retry_seconds
        )
        self.part_wait_seconds = (
            config.PART_CONTROL_WAIT_SECONDS if part_wait_seconds is None else part_wait_seconds
        )

    def open_root(self) -> None:
        """Load the catalog root and wait for the year control."""

        driver = self.session.driver
        driver.navigate(self.base_url)
        if not driver.wait_for(self.selectors.year_control, config.SELECTOR_TIMEOUT_SECONDS):
            raise StructuralChange(f"Year control never appeared on {self.base_url}")
        self.session.state.reset()
        self.session.state.on_search_page = True
        _scraper_event("hierarchy", action="root_opened", url=self.base_url)

    def _options(self, control: str, *, label: str) -> List[ControlOption]:
        """Read ``control``'s options, re-reading for a bounded time while empty."""

        driver = self.session.driver
        options = read_options(snapshot(driver), control)
        if options:
            return options

        def _reread() -> Optional[List[ControlOption]]:
            return read_options(snapshot(driver), control) or None

        try:
            return wait_until(
                _reread,
                timeout=self.options_retry_seconds,
                label=f"{label} options",
            )
        except NavigationTimeout:
            _scraper_event(
                "hierarchy",
                action="options_empty",
                control=label,
                waited=self.options_retry_seconds,
            )
            return []

    def _part_options(self) -> List[ControlOption]:
        """Wait a bounded time for the part control; a volume without one has no parts."""

        driver = self.session.driver
        control = self.selectors.part_control
        try:
            wait_until(
                lambda: control_enabled(snapshot(driver), control),
                timeout=self.part_wait_seconds,
                label="part control",
            )
        except NavigationTimeout:
            return []
        return self._options(self.selectors.part_control, label="part")

    def _select(self, control: str, value: str) -> None:
        self.session.driver.select_option(control, value)
        settle()

    def years(self) -> List[str]:
        if not self.session.state.on_search_page:
            self.open_root()
        return [option.value for option in self._options(self.selectors.year_control, label="year")]

    def iter_paths(self, years: Optional[Iterable[str]] = None) -> Iterator[SelectionPath]:
        """Yield every leaf in native option order.

        Each path is yielded with its selection already applied to the page,
        so the caller may harvest it before resuming the generator.
        """

        wanted = {str(year) for year in years} if years is not None else None
        state = self.session.state

        for year in self.years():
            if wanted is not None and year not in wanted:
                continue
            self._select(self.selectors.year_control, year)
            state.year, state.volume, state.part = year, None, None

            volumes = self._options(self.selectors.volume_control, label="volume")
            _scraper_event("hierarchy", year=year, volumes=len(volumes))

            for volume in volumes:
                self._select(self.selectors.volume_control, volume.value)
                state.volume, state.part = volume.value, None

                parts = self._part_options()
                _scraper_event("hierarchy", year=year, volume=volume.label, parts=len(parts))

                if not parts:
                    path = SelectionPath(year, volume.value, None, volume_label=volume.label)
                    state.record(path)
                    yield path
                    continue

                for part in parts:
                    self._select(self.selectors.part_control, part.value)
                    path = SelectionPath(
                        year,
                        volume.value,
                        part.value,
                        volume_label=volume.label,
                        part_label=part.label,
                    )
                    state.record(path)
                    yield path

    def _require_option(self, control: str, value: str, *, label: str) -> None:
        values = {option.value for option in self._options(control, label=label)}
        if value not in values:
            raise StructuralChange(f"{label} option {value!r} is not offered")

    def apply(self, path: SelectionPath) -> None:
        """Re-establish ``path`` on the session's page."""

        state = self.session.state
        if state.matches(path):
            return
        if not state.on_search_page:
            self.open_root()

        self._require_option(self.selectors.year_control, path.year, label="year")
        self._select(self.selectors.year_control, path.year)
        self._require_option(self.selectors.volume_control, path.volume, label="volume")
        self._select(self.selectors.volume_control, path.volume)
        if path.part is not None:
            self._require_option(self.selectors.part_control, path.part, label="part")
            self._select(self.selectors.part_control, path.part)
        state.record(path)
        _scraper_event("hierarchy", action="scope_applied", leaf=path.label())


__all__ = ["ControlOption", "HierarchyEnumerator", "read_options", "control_enabled"]
