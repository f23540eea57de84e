"""Data model shared by the harvest and extraction phases.

Everything here round-trips through plain dicts so that partition files stay
human-readable JSON.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

NOT_AVAILABLE = "N/A"


class ItemStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


def _safe_status(value: Any) -> ItemStatus:
    try:
        return ItemStatus(value)
    except Exception:
        return ItemStatus.PENDING


@dataclass(frozen=True)
class SelectionPath:
    """One leaf of the Year → Volume → Part hierarchy.

    Equality and hashing use the option values only; the labels are carried
    for logs and output paths.
    """

    year: str
    volume: str
    part: Optional[str] = None
    volume_label: str = field(default="", compare=False)
    part_label: str = field(default="", compare=False)

    def label(self) -> str:
        volume = self.volume_label or self.volume
        if self.part is None:
            return f"{self.year}/{volume}"
        return f"{self.year}/{volume}/{self.part_label or self.part}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "volume": self.volume,
            "part": self.part,
            "volume_label": self.volume_label,
            "part_label": self.part_label,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SelectionPath"]:
        if not isinstance(data, dict) or not data.get("year"):
            return None
        part = data.get("part")
        return cls(
            year=str(data["year"]),
            volume=str(data.get("volume") or ""),
            part=str(part) if part not in (None, "") else None,
            volume_label=str(data.get("volume_label") or ""),
            part_label=str(data.get("part_label") or ""),
        )


@dataclass(frozen=True)
class CitedCase:
    serial: str
    citation: str
    consideration_type: str
    linked_judgment_name: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CitedCase":
        return cls(
            serial=str(data.get("serial") or ""),
            citation=str(data.get("citation") or ""),
            consideration_type=str(data.get("consideration_type") or ""),
            linked_judgment_name=str(data.get("linked_judgment_name") or ""),
        )


@dataclass
class ExtractedRecord:
    scr_citation: str = NOT_AVAILABLE
    year_volume: str = NOT_AVAILABLE
    date_of_judgment: str = NOT_AVAILABLE
    petitioner: str = NOT_AVAILABLE
    respondent: str = NOT_AVAILABLE
    disposal_nature: str = NOT_AVAILABLE
    neutral_citation: str = NOT_AVAILABLE
    judgment_delivered_by: str = NOT_AVAILABLE
    case_type: str = NOT_AVAILABLE
    order_judgment: str = NOT_AVAILABLE
    headnote: str = NOT_AVAILABLE
    act: str = NOT_AVAILABLE
    keyword: str = NOT_AVAILABLE
    case_referred: List[CitedCase] = field(default_factory=list)

    @classmethod
    def scalar_field_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name != "case_referred"]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {name: getattr(self, name) for name in self.scalar_field_names()}
        payload["case_referred"] = [case.to_dict() for case in self.case_referred]
        return payload

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ExtractedRecord"]:
        if not isinstance(data, dict):
            return None
        scalars = {
            name: str(data.get(name) if data.get(name) is not None else NOT_AVAILABLE)
            for name in cls.scalar_field_names()
        }
        cited = [
            CitedCase.from_dict(item)
            for item in data.get("case_referred") or []
            if isinstance(item, dict)
        ]
        return cls(case_referred=cited, **scalars)


@dataclass
class ItemReference:
    """A stable, independently loadable pointer to one judgment."""

    id: str
    url: str
    scope: Optional[SelectionPath]
    status: ItemStatus = ItemStatus.PENDING
    attempts: int = 0
    param: str = ""
    title: str = ""
    pdf_url: Optional[str] = None
    last_error_code: Optional[str] = None
    last_error_message: Optional[str] = None
    updated_at: Optional[str] = None
    record: Optional[ExtractedRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "scope": self.scope.to_dict() if self.scope is not None else None,
            "status": self.status.value,
            "attempts": self.attempts,
            "param": self.param,
            "title": self.title,
            "pdf_url": self.pdf_url,
            "last_error_code": self.last_error_code,
            "last_error_message": self.last_error_message,
            "updated_at": self.updated_at,
            "record": self.record.to_dict() if self.record is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemReference":
        try:
            attempts = int(data.get("attempts") or 0)
        except (TypeError, ValueError):
            attempts = 0
        return cls(
            id=str(data["id"]),
            url=str(data.get("url") or ""),
            scope=SelectionPath.from_dict(data.get("scope")),
            status=_safe_status(data.get("status")),
            attempts=attempts,
            param=str(data.get("param") or ""),
            title=str(data.get("title") or ""),
            pdf_url=data.get("pdf_url") or None,
            last_error_code=data.get("last_error_code") or None,
            last_error_message=data.get("last_error_message") or None,
            updated_at=data.get("updated_at") or None,
            record=ExtractedRecord.from_dict(data.get("record")),
        )


@dataclass
class Partition:
    """All references harvested for one partition key (a year)."""

    key: str
    references: List[ItemReference] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __iter__(self) -> Iterator[ItemReference]:
        return iter(self.references)

    def __len__(self) -> int:
        return len(self.references)

    def get(self, item_id: str) -> Optional[ItemReference]:
        for ref in self.references:
            if ref.id == item_id:
                return ref
        return None

    def ids(self) -> List[str]:
        return [ref.id for ref in self.references]

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in ItemStatus}
        for ref in self.references:
            counts[ref.status.value] += 1
        return counts

    def done_records(self) -> List[ItemReference]:
        return [ref for ref in self.references if ref.status is ItemStatus.DONE]


__all__ = [
    "NOT_AVAILABLE",
    "ItemStatus",
    "SelectionPath",
    "CitedCase",
    "ExtractedRecord",
    "ItemReference",
    "Partition",
]
