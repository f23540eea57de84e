from __future__ import annotations

"""Selectors and page hooks for the digiscr.sci.gov.in judgment browser."""

import re
from dataclasses import dataclass
from typing import Pattern


@dataclass(frozen=True)
class DigiScrSelectors:
    """Site-specific selector hints for the SCR digital archive.

    The search form is three cascading ``<select>`` controls. Result links
    carry their identifier inside an ``onclick="view_judgment('<id>','<p>')"``
    handler rather than an ``href``, so ``onclick_pattern`` pulls both values
    out of the attribute.
    """

    base_url: str = "https://digiscr.sci.gov.in/"
    view_url_template: str = "https://digiscr.sci.gov.in/view_judgment?id={id}"

    year_control: str = "select[name='year']"
    volume_control: str = "select[name='volume']"
    part_control: str = "select[name='partno']"

    result_link: str = "li a[onclick]"
    onclick_pattern: Pattern[str] = re.compile(r"view_judgment\('([^']+)','([^']*)'\)")
    pdf_link: str = ".inner-icon a[href*='pdf_viewer_print']"

    detail_container: str = ".table-responsive table"
    detail_rows: str = ".table-responsive table tbody tr"
    keyword_panel: str = ".view-keyword"
    read_more: str = ".view-keyword .read-more"

    cited_container: str = "#dynamic_content"
    cited_rows: str = "#dynamic_content tr"
    cited_pager_link: str = "#dynamic_pagination a"
    cited_pager_active: str = "#dynamic_pagination .active"

    modal_close: str = ".close-button, .btn-close"
    view_judgment_script: str = (
        "(id) => { if (window.view_judgment) { window.view_judgment(id, '0'); "
        "return true; } return false; }"
    )

    def view_url(self, item_id: str) -> str:
        return self.view_url_template.format(id=item_id)


DIGISCR_SELECTORS = DigiScrSelectors()

__all__ = [
    "DigiScrSelectors",
    "DIGISCR_SELECTORS",
]
