"""Declarative field contract for the judgment detail view.

Each field names one lookup strategy:

- ``by_row_label(text)``: the row of the details table whose first cell reads
  ``text``; the value is the second cell.
- ``by_panel_heading(text)``: the keyword panel whose first child reads
  ``text``; the value is the second child.

A lookup that finds nothing (or an empty value) raises ``MissingField``;
:func:`resolve_fields` absorbs it into the ``N/A`` sentinel.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .errors import MissingField
from .logging_utils import _scraper_event
from .models import NOT_AVAILABLE, ExtractedRecord
from .selectors_digiscr import DIGISCR_SELECTORS, DigiScrSelectors

_WHITESPACE = re.compile(r"[ \t\r\f\v]+")


def normalise_text(value: str) -> str:
    lines = [_WHITESPACE.sub(" ", line).strip() for line in value.splitlines()]
    return "\n".join(line for line in lines if line)


def _child_tags(element: Tag) -> list[Tag]:
    return [child for child in element.children if isinstance(child, Tag)]


@dataclass(frozen=True)
class RowLabelLookup:
    text: str

    def describe(self) -> str:
        return f"row {self.text!r}"

    def read(self, soup: BeautifulSoup, selectors: DigiScrSelectors) -> Optional[str]:
        wanted = normalise_text(self.text)
        for row in soup.select(selectors.detail_rows):
            cells = _child_tags(row)
            if len(cells) < 2:
                continue
            if normalise_text(cells[0].get_text(" ")) != wanted:
                continue
            value = normalise_text(cells[1].get_text(" "))
            return value or None
        return None


@dataclass(frozen=True)
class PanelHeadingLookup:
    text: str

    def describe(self) -> str:
        return f"panel {self.text!r}"

    def read(self, soup: BeautifulSoup, selectors: DigiScrSelectors) -> Optional[str]:
        wanted = normalise_text(self.text)
        for panel in soup.select(selectors.keyword_panel):
            children = _child_tags(panel)
            if len(children) < 2:
                continue
            if normalise_text(children[0].get_text(" ")) != wanted:
                continue
            content = children[1]
            # Expansion controls are not part of the value.
            for control in content.select(".read-more"):
                control.decompose()
            value = normalise_text(content.get_text("\n"))
            return value or None
        return None


def by_row_label(text: str) -> RowLabelLookup:
    return RowLabelLookup(text)


def by_panel_heading(text: str) -> PanelHeadingLookup:
    return PanelHeadingLookup(text)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    lookup: RowLabelLookup | PanelHeadingLookup

    def resolve(self, soup: BeautifulSoup, selectors: DigiScrSelectors) -> str:
        value = self.lookup.read(soup, selectors)
        if value is None:
            raise MissingField(self.name, self.lookup.describe())
        return value


FIELD_CONTRACT: Tuple[FieldSpec, ...] = (
    FieldSpec("scr_citation", by_row_label("SCR Citation:")),
    FieldSpec("year_volume", by_row_label("Year/Volume:")),
    FieldSpec("date_of_judgment", by_row_label("Date of Judgment:")),
    FieldSpec("petitioner", by_row_label("Petitioner:")),
    FieldSpec("disposal_nature", by_row_label("Disposal Nature:")),
    FieldSpec("neutral_citation", by_row_label("Neutral Citation:")),
    FieldSpec("judgment_delivered_by", by_row_label("Judgment Delivered by:")),
    FieldSpec("respondent", by_row_label("Respondent:")),
    FieldSpec("case_type", by_row_label("Case Type:")),
    FieldSpec("order_judgment", by_row_label("Order/Judgment:")),
    FieldSpec("headnote", by_panel_heading("1. Headnote")),
    FieldSpec("act", by_panel_heading("3. Act")),
    FieldSpec("keyword", by_panel_heading("4. Keyword")),
)


def resolve_fields(
    soup: BeautifulSoup,
    selectors: DigiScrSelectors = DIGISCR_SELECTORS,
    *,
    item_id: str = "",
    contract: Tuple[FieldSpec, ...] = FIELD_CONTRACT,
) -> Dict[str, str]:
    values: Dict[str, str] = {}
    missing: list[str] = []
    for spec in contract:
        try:
            values[spec.name] = spec.resolve(soup, selectors)
        except MissingField as exc:
            values[spec.name] = NOT_AVAILABLE
            missing.append(exc.field_name)
    if missing:
        _scraper_event("extract", item_id=item_id, missing_fields=missing)
    return values


def build_record(values: Dict[str, str]) -> ExtractedRecord:
    known = set(ExtractedRecord.scalar_field_names())
    return ExtractedRecord(**{name: value for name, value in values.items() if name in known})


__all__ = [
    "FieldSpec",
    "FIELD_CONTRACT",
    "by_row_label",
    "by_panel_heading",
    "normalise_text",
    "resolve_fields",
    "build_record",
]
