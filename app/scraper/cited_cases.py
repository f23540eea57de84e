"""Collect the "cases referred" table, following its pager to the last page."""
from __future__ import annotations

from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from . import config
from .driver import settle, snapshot, wait_until
from .errors import StructuralChange
from .logging_utils import _scraper_event
from .models import CitedCase
from .selectors_digiscr import DIGISCR_SELECTORS, DigiScrSelectors
from .sessions import DriverSession


def _cell_text(cell: Tag) -> str:
    return " ".join(cell.get_text(" ").split())


def parse_cited_rows(soup: BeautifulSoup, selectors: DigiScrSelectors = DIGISCR_SELECTORS) -> List[CitedCase]:
    """Map data rows to ``CitedCase``; header rows and rows without a citation are skipped."""

    cases: List[CitedCase] = []
    for row in soup.select(selectors.cited_rows):
        cells = row.find_all("td", recursive=False)
        if not cells:
            continue
        values = [_cell_text(cell) for cell in cells[:4]]
        values += [""] * (4 - len(values))
        serial, citation, consideration, linked = values
        if not citation:
            continue
        cases.append(
            CitedCase(
                serial=serial,
                citation=citation,
                consideration_type=consideration,
                linked_judgment_name=linked,
            )
        )
    return cases


def pager_labels(soup: BeautifulSoup, selectors: DigiScrSelectors = DIGISCR_SELECTORS) -> List[str]:
    return [_cell_text(link) for link in soup.select(selectors.cited_pager_link)]


def total_pages(soup: BeautifulSoup, selectors: DigiScrSelectors = DIGISCR_SELECTORS) -> int:
    """Largest numeric pager label; 1 when there is no pager."""

    numbers = [int(label) for label in pager_labels(soup, selectors) if label.isdigit()]
    return max(numbers) if numbers else 1


def active_page(soup: BeautifulSoup, selectors: DigiScrSelectors = DIGISCR_SELECTORS) -> Optional[int]:
    element = soup.select_one(selectors.cited_pager_active)
    if element is None:
        return None
    label = _cell_text(element)
    return int(label) if label.isdigit() else None


def _row_signature(soup: BeautifulSoup, selectors: DigiScrSelectors) -> Tuple[str, ...]:
    return tuple(_cell_text(row) for row in soup.select(selectors.cited_rows))


class PaginatedTableWalker:
    def __init__(
        self,
        session: DriverSession,
        selectors: DigiScrSelectors = DIGISCR_SELECTORS,
        *,
        wait_seconds: Optional[float] = None,
        refresh_timeout: Optional[float] = None,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.wait_seconds = config.CITED_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self.refresh_timeout = (
            config.PAGER_REFRESH_TIMEOUT_SECONDS if refresh_timeout is None else refresh_timeout
        )

    def _goto_page(self, page: int, *, item_id: str) -> Tuple[BeautifulSoup, int]:
        """Click towards ``page`` and return the refreshed snapshot and the page shown."""

        driver = self.session.driver
        # Pager links may be regenerated after every page change, so the
        # target is re-resolved from a fresh snapshot each time.
        before = snapshot(driver)
        labels = pager_labels(before, self.selectors)
        if str(page) not in labels:
            raise StructuralChange(f"Pager has no link for page {page} (labels={labels})")
        index = labels.index(str(page))
        target = page

        signature = _row_signature(before, self.selectors)
        driver.click(self.selectors.cited_pager_link, index)
        settle()

        def _refreshed() -> Optional[BeautifulSoup]:
            current = snapshot(driver)
            shown = active_page(current, self.selectors)
            if shown == target:
                return current
            if shown is None and _row_signature(current, self.selectors) != signature:
                return current
            return None

        soup = wait_until(
            _refreshed,
            timeout=self.refresh_timeout,
            label=f"cited cases page {target} for {item_id or 'item'}",
        )
        return soup, target

    def walk(self, *, item_id: str = "") -> List[CitedCase]:
        """Return every cited case across all pages, in page-then-row order."""

        driver = self.session.driver
        if not driver.wait_for(self.selectors.cited_container, self.wait_seconds):
            _scraper_event("cited", item_id=item_id, pages=0, rows=0, reason="table_absent")
            return []

        soup = snapshot(driver)
        pages = total_pages(soup, self.selectors)
        seen: set[Tuple[str, str]] = set()
        cases: List[CitedCase] = []

        def _accumulate(current: BeautifulSoup) -> None:
            for case in parse_cited_rows(current, self.selectors):
                key = (case.serial, case.citation)
                if key in seen:
                    continue
                seen.add(key)
                cases.append(case)

        _accumulate(soup)
        page = 2
        while page <= pages:
            soup, shown = self._goto_page(page, item_id=item_id)
            _accumulate(soup)
            page = shown + 1
            # Windowed pagers reveal higher page numbers as they advance.
            pages = max(pages, total_pages(soup, self.selectors))

        _scraper_event("cited", item_id=item_id, pages=pages, rows=len(cases))
        return cases


__all__ = [
    "PaginatedTableWalker",
    "parse_cited_rows",
    "total_pages",
    "active_page",
    "pager_labels",
]
