"""Bring one judgment's detail view up and extract its record."""
from __future__ import annotations

from typing import Optional

from . import config
from .cited_cases import PaginatedTableWalker
from .driver import settle, snapshot, wait_until
from .errors import ScraperError, StructuralChange
from .fields import build_record, resolve_fields
from .hierarchy import HierarchyEnumerator
from .logging_utils import _scraper_event, _short_error_message
from .models import ExtractedRecord, ItemReference
from .selectors_digiscr import DIGISCR_SELECTORS, DigiScrSelectors
from .sessions import DriverSession

EXTRACT_MODES = ("direct", "modal")


class DetailExtractor:
    """Extract the fixed-shape record for one reference.

    ``direct`` mode loads the reference URL. ``modal`` mode re-establishes the
    reference's selection on the search page, then opens the in-page judgment
    view; references without a recorded scope fall back to ``direct``.
    """

    def __init__(
        self,
        session: DriverSession,
        selectors: DigiScrSelectors = DIGISCR_SELECTORS,
        *,
        mode: str = "direct",
        enumerator: Optional[HierarchyEnumerator] = None,
        walker: Optional[PaginatedTableWalker] = None,
        container_timeout: Optional[float] = None,
    ) -> None:
        mode = (mode or "direct").strip().lower()
        if mode not in EXTRACT_MODES:
            raise ValueError(f"Unknown extract mode: {mode!r}")
        self.session = session
        self.selectors = selectors
        self.mode = mode
        self.enumerator = enumerator or HierarchyEnumerator(session, selectors)
        self.walker = walker or PaginatedTableWalker(session, selectors)
        self.container_timeout = (
            config.SELECTOR_TIMEOUT_SECONDS if container_timeout is None else container_timeout
        )

    def _wait_for_container(self, ref: ItemReference) -> None:
        if not self.session.driver.wait_for(self.selectors.detail_container, self.container_timeout):
            raise StructuralChange(f"Detail view for {ref.id} never rendered")

    def _container_signature(self) -> Optional[str]:
        element = snapshot(self.session.driver).select_one(self.selectors.detail_container)
        if element is None:
            return None
        return element.get_text(" ", strip=True)

    def _open_direct(self, ref: ItemReference) -> None:
        # Leaving the search page discards the selection.
        self.session.state.reset()
        self.session.driver.navigate(ref.url)
        self._wait_for_container(ref)

    def _open_modal(self, ref: ItemReference) -> None:
        self.enumerator.apply(ref.scope)
        # A closed modal may stay in the DOM with the previous judgment in it.
        previous = self._container_signature()
        opened = self.session.driver.evaluate(self.selectors.view_judgment_script, ref.id)
        if not opened:
            raise StructuralChange("view_judgment hook is not available on the search page")
        self._wait_for_container(ref)
        if previous is None:
            return
        wait_until(
            lambda: self._container_signature() not in (None, previous),
            timeout=self.container_timeout,
            label=f"detail view of {ref.id}",
        )

    def _close_modal(self, ref: ItemReference) -> None:
        driver = self.session.driver
        try:
            if snapshot(driver).select_one(self.selectors.modal_close) is None:
                return
            driver.click(self.selectors.modal_close, 0)
            settle()
        except ScraperError as exc:
            _scraper_event(
                "extract",
                item_id=ref.id,
                action="modal_close_failed",
                error=_short_error_message(exc),
            )

    def _expand_read_more(self, ref: ItemReference) -> None:
        driver = self.session.driver
        count = len(snapshot(driver).select(self.selectors.read_more))
        if not count:
            return
        # Last to first so earlier indexes survive controls that remove themselves.
        for index in reversed(range(count)):
            try:
                driver.click(self.selectors.read_more, index)
            except StructuralChange as exc:
                _scraper_event(
                    "extract",
                    item_id=ref.id,
                    action="read_more_failed",
                    index=index,
                    error=_short_error_message(exc),
                )
        settle()

    def extract(self, ref: ItemReference) -> ExtractedRecord:
        modal = self.mode == "modal" and ref.scope is not None
        if self.mode == "modal" and ref.scope is None:
            _scraper_event("extract", item_id=ref.id, action="modal_without_scope", fallback="direct")

        if modal:
            self._open_modal(ref)
        else:
            self._open_direct(ref)

        try:
            self._expand_read_more(ref)
            values = resolve_fields(snapshot(self.session.driver), self.selectors, item_id=ref.id)
            record = build_record(values)
            record.case_referred = self.walker.walk(item_id=ref.id)
        finally:
            if modal:
                self._close_modal(ref)

        _scraper_event(
            "extract",
            item_id=ref.id,
            mode="modal" if modal else "direct",
            citation=record.scr_citation,
            cited=len(record.case_referred),
        )
        return record


__all__ = ["DetailExtractor", "EXTRACT_MODES"]
