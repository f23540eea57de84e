from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import List

import pytest
from filelock import FileLock

from app.scraper import job_store
from app.scraper.error_codes import ErrorCode
from app.scraper.errors import PersistenceFailure
from app.scraper.job_store import JobStore
from app.scraper.models import ExtractedRecord, ItemReference, ItemStatus, SelectionPath
from tests.fake_site import configure_temp_paths

LEAF_A = SelectionPath("2023", "A", None, volume_label="Volume A")
LEAF_B1 = SelectionPath("2023", "B", "1", volume_label="Volume B", part_label="Part 1")


def _refs(ids: List[str], path: SelectionPath = LEAF_A) -> List[ItemReference]:
    return [
        ItemReference(
            id=item_id,
            url=f"https://digiscr.sci.gov.in/view_judgment?id={item_id}",
            scope=path,
            title=f"Judgment {item_id}",
        )
        for item_id in ids
    ]


@pytest.fixture
def store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> JobStore:
    configure_temp_paths(tmp_path, monkeypatch)
    return JobStore()


def test_merge_is_idempotent(store: JobStore) -> None:
    first = store.merge("2023", _refs(["a1", "a2", "a3"]))
    assert first.added == 3
    before = store.partition_path("2023").read_bytes()

    second = store.merge("2023", _refs(["a1", "a2", "a3"]))

    assert second.added == 0
    assert second.existing == 3
    assert store.partition_path("2023").read_bytes() == before
    assert store.load("2023").ids() == ["a1", "a2", "a3"]


def test_merge_appends_without_touching_done(store: JobStore) -> None:
    store.merge("2023", _refs(["a1", "a2"]))
    record = ExtractedRecord(scr_citation="[2023] 1 S.C.R. 1", petitioner="P")
    store.update_status("2023", "a1", ItemStatus.DONE, record=record)

    rediscovered = _refs(["a1", "b1"], LEAF_B1)
    rediscovered[0].title = "Renamed"
    result = store.merge("2023", rediscovered)

    assert result.added == 1
    partition = store.load("2023")
    assert partition.ids() == ["a1", "a2", "b1"]
    first = partition.get("a1")
    assert first.status is ItemStatus.DONE
    assert first.title == "Judgment a1"
    assert first.scope == LEAF_A
    assert first.record.petitioner == "P"


def test_links_file_mirrors_partition(store: JobStore) -> None:
    store.merge("2023", _refs(["a1", "a2"]))
    store.update_status("2023", "a2", ItemStatus.FAILED, error_code=ErrorCode.SITE_STRUCTURE)

    links = json.loads(store.links_path("2023").read_text(encoding="utf-8"))

    assert links == [
        {"id": "a1", "url": "https://digiscr.sci.gov.in/view_judgment?id=a1", "status": "pending"},
        {"id": "a2", "url": "https://digiscr.sci.gov.in/view_judgment?id=a2", "status": "failed"},
    ]
    document = json.loads(store.partition_path("2023").read_text(encoding="utf-8"))
    assert document["schema_version"] == job_store.SCHEMA_VERSION
    assert document["counts"] == {"pending": 1, "done": 0, "failed": 1}


def test_failed_commit_keeps_previous_document(store: JobStore, monkeypatch: pytest.MonkeyPatch) -> None:
    store.merge("2023", _refs(["a1"]))
    before = store.partition_path("2023").read_bytes()
    events = []
    monkeypatch.setattr(job_store, "_scraper_event", lambda phase, **fields: events.append((phase, fields)))

    def _fail(*_args, **_kwargs):  # noqa: ANN001
        raise OSError("No space left on device")

    monkeypatch.setattr(job_store, "save_json_file", _fail)

    with pytest.raises(PersistenceFailure):
        store.update_status("2023", "a1", ItemStatus.DONE, record=ExtractedRecord())

    assert store.partition_path("2023").read_bytes() == before
    assert any(phase == "error" and fields.get("phase") == "persist" for phase, fields in events)


def test_unserialisable_record_leaves_no_temp_file(store: JobStore) -> None:
    store.merge("2023", _refs(["a1"]))
    before = store.partition_path("2023").read_bytes()

    with pytest.raises(PersistenceFailure):
        store.update_status("2023", "a1", ItemStatus.DONE, record=ExtractedRecord(petitioner=object()))

    assert store.partition_path("2023").read_bytes() == before
    assert list(store.root.glob("*.tmp")) == []
    assert store.load("2023").get("a1").status is ItemStatus.PENDING


def test_corrupt_partition_is_never_overwritten(store: JobStore) -> None:
    path = store.partition_path("2023")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceFailure):
        store.load("2023")
    with pytest.raises(PersistenceFailure):
        store.merge("2023", _refs(["a1"]))

    assert path.read_text(encoding="utf-8") == "{not json"


def test_pending_of_respects_attempt_budget(store: JobStore) -> None:
    store.merge("2023", _refs(["a1", "a2", "a3", "a4", "a5"]))
    store.update_status("2023", "a2", ItemStatus.DONE, record=ExtractedRecord())
    store.update_status("2023", "a3", ItemStatus.FAILED, error_code=ErrorCode.NAVIGATION_TIMEOUT)
    store.update_status(
        "2023", "a4", ItemStatus.FAILED, error_code=ErrorCode.NAVIGATION_TIMEOUT, attempts=3
    )
    store.update_status("2023", "a5", ItemStatus.FAILED, error_code=ErrorCode.INVALID_REFERENCE)

    pending = [ref.id for ref in store.pending_of("2023", max_attempts=3)]

    assert pending == ["a1", "a3"]


def test_update_status_unknown_item(store: JobStore) -> None:
    store.merge("2023", _refs(["a1"]))
    with pytest.raises(KeyError):
        store.update_status("2023", "zzz", ItemStatus.DONE)


def test_refused_transition_leaves_file_untouched(store: JobStore) -> None:
    store.merge("2023", _refs(["a1"]))
    store.update_status("2023", "a1", ItemStatus.DONE, record=ExtractedRecord(act="Act"))
    before = store.partition_path("2023").read_bytes()

    ref = store.update_status("2023", "a1", ItemStatus.FAILED, error_code=ErrorCode.INTERNAL)

    assert ref.status is ItemStatus.DONE
    assert store.partition_path("2023").read_bytes() == before


def test_seed_from_links_only(store: JobStore, tmp_path: Path) -> None:
    store.merge("2023", _refs(["a1", "a2"]))
    other_root = tmp_path / "other"
    other_root.mkdir()
    shutil.copy(store.links_path("2023"), other_root / "Links_2023.json")

    seeded_store = JobStore(other_root)
    assert not seeded_store.exists("2023")

    result = seeded_store.seed_from_links("2023")

    assert result.added == 2
    partition = seeded_store.load("2023")
    assert partition.ids() == ["a1", "a2"]
    assert all(ref.scope is None for ref in partition)
    assert all(ref.status is ItemStatus.PENDING for ref in partition)


def test_partitions_and_summary(store: JobStore) -> None:
    store.merge("2023", _refs(["a1", "a2", "a3"]))
    store.merge("2022", _refs(["x1"]))
    store.update_status("2023", "a1", ItemStatus.DONE, record=ExtractedRecord())
    store.update_status(
        "2023", "a2", ItemStatus.FAILED, error_code=ErrorCode.SITE_STRUCTURE, attempts=3
    )

    assert store.partitions() == ["2022", "2023"]

    summary = store.summary("2023", max_attempts=3)
    assert summary["total"] == 3
    assert summary["done"] == 1
    assert summary["failed"] == 1
    assert summary["pending"] == 1
    assert summary["failed_exhausted"] == 1
    assert summary["failure_reasons"] == {ErrorCode.SITE_STRUCTURE: 1}
    assert summary["complete"] is False


def test_lock_timeout_is_persistence_failure(store: JobStore) -> None:
    store.merge("2023", _refs(["a1"]))
    impatient = JobStore(lock_timeout=0.05)
    holder = FileLock(str(store.root / "2023.lock"))

    with holder:
        with pytest.raises(PersistenceFailure):
            impatient.merge("2023", _refs(["a2"]))

    assert store.load("2023").ids() == ["a1"]


def test_invalid_key_rejected(store: JobStore) -> None:
    with pytest.raises(ValueError):
        store.partition_path("///")
