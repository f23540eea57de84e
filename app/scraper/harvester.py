"""Turn the result list rendered at one leaf into item references."""
from __future__ import annotations

from typing import FrozenSet, List, Optional, Tuple
from urllib.parse import unquote, urljoin

from bs4 import BeautifulSoup

from . import config
from .driver import snapshot, wait_until
from .errors import NavigationTimeout
from .logging_utils import _scraper_event
from .models import ItemReference, SelectionPath
from .selectors_digiscr import DIGISCR_SELECTORS, DigiScrSelectors
from .sessions import DriverSession


def _pdf_url_for(anchor, selectors: DigiScrSelectors) -> Optional[str]:
    item = anchor.find_parent("li")
    if item is None:
        return None
    link = item.select_one(selectors.pdf_link)
    href = (link.get("href") or "").strip() if link is not None else ""
    if not href:
        return None
    return unquote(urljoin(selectors.base_url, href))


def parse_result_links(
    soup: BeautifulSoup,
    path: SelectionPath,
    selectors: DigiScrSelectors = DIGISCR_SELECTORS,
) -> List[ItemReference]:
    """Extract references from a result-list snapshot, first occurrence wins."""

    refs: List[ItemReference] = []
    seen: set[str] = set()
    for anchor in soup.select(selectors.result_link):
        match = selectors.onclick_pattern.search(anchor.get("onclick") or "")
        if not match:
            continue
        item_id = match.group(1).strip()
        if not item_id or item_id in seen:
            continue
        seen.add(item_id)
        refs.append(
            ItemReference(
                id=item_id,
                url=selectors.view_url(item_id),
                scope=path,
                param=match.group(2),
                title=anchor.get_text(" ", strip=True),
                pdf_url=_pdf_url_for(anchor, selectors),
            )
        )
    return refs


class LinkHarvester:
    """Harvests leaves one after another on a single session.

    The ids of the last harvested list are kept so that a list still showing
    the previous leaf is never taken for the current one.
    """

    def __init__(
        self,
        session: DriverSession,
        selectors: DigiScrSelectors = DIGISCR_SELECTORS,
        *,
        wait_seconds: Optional[float] = None,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.wait_seconds = config.RESULTS_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self._previous_ids: FrozenSet[str] = frozenset()

    def harvest(self, path: SelectionPath) -> List[ItemReference]:
        """Return the references listed at ``path``, which must already be applied.

        A leaf whose result list never renders is an empty contribution. A
        list that keeps the previous leaf's ids for the whole wait raises
        ``NavigationTimeout``.
        """

        driver = self.session.driver
        if not driver.wait_for(self.selectors.result_link, self.wait_seconds):
            _scraper_event("harvest", leaf=path.label(), count=0, reason="no_links_found")
            self._previous_ids = frozenset()
            return []

        previous = self._previous_ids

        def _current() -> Optional[Tuple[List[ItemReference]]]:
            found = parse_result_links(snapshot(driver), path, self.selectors)
            ids = frozenset(ref.id for ref in found)
            if ids and ids == previous:
                return None
            return (found,)

        try:
            (refs,) = wait_until(
                _current,
                timeout=self.wait_seconds,
                label=f"results of {path.label()}",
            )
        except NavigationTimeout:
            _scraper_event("harvest", leaf=path.label(), count=0, reason="stale_results")
            raise NavigationTimeout(
                f"Result list at {path.label()} still shows the previous leaf"
            ) from None

        self._previous_ids = frozenset(ref.id for ref in refs)
        _scraper_event(
            "harvest",
            leaf=path.label(),
            count=len(refs),
            with_pdf=sum(1 for ref in refs if ref.pdf_url),
        )
        return refs


__all__ = ["LinkHarvester", "parse_result_links"]
