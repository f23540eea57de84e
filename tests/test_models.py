from app.scraper.models import (
    NOT_AVAILABLE,
    ExtractedRecord,
    ItemReference,
    ItemStatus,
    Partition,
    SelectionPath,
)


def test_selection_path_equality_ignores_labels() -> None:
    assert SelectionPath("2023", "B", "1", volume_label="Volume B") == SelectionPath("2023", "B", "1")
    assert SelectionPath("2023", "B", "1") != SelectionPath("2023", "B", None)
    assert SelectionPath("2023", "A").label() == "2023/A"


def test_selection_path_from_dict_requires_year() -> None:
    assert SelectionPath.from_dict(None) is None
    assert SelectionPath.from_dict({"volume": "A"}) is None
    path = SelectionPath.from_dict({"year": 2023, "volume": "A", "part": ""})
    assert path == SelectionPath("2023", "A", None)


def test_item_reference_tolerates_unknown_status() -> None:
    ref = ItemReference.from_dict({"id": "x", "status": "in_progress", "attempts": "oops"})
    assert ref.status is ItemStatus.PENDING
    assert ref.attempts == 0
    assert ref.scope is None
    assert ref.record is None


def test_record_from_dict_fills_sentinel() -> None:
    record = ExtractedRecord.from_dict({"petitioner": "A", "case_referred": [{"serial": "1", "citation": "C"}]})
    assert record.petitioner == "A"
    assert record.keyword == NOT_AVAILABLE
    assert record.case_referred[0].consideration_type == ""


def test_partition_counts() -> None:
    partition = Partition(
        key="2023",
        references=[
            ItemReference(id="a", url="", scope=None, status=ItemStatus.DONE),
            ItemReference(id="b", url="", scope=None),
        ],
    )
    assert partition.status_counts() == {"pending": 1, "done": 1, "failed": 0}
    assert [ref.id for ref in partition.done_records()] == ["a"]
    assert partition.get("zz") is None
