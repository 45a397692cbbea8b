import json

import pytest

from src.shared.batch import CheckpointError, ProgressRecord, ProgressStore


def test_load_creates_zeroed_checkpoint_when_missing(tmp_path):
    store = ProgressStore(tmp_path / "data" / "progress.json")

    record = store.load()

    assert record.last_processed_id is None
    assert record.total_count == 0
    assert record.processed_count == 0
    assert record.remaining_count == 0
    on_disk = json.loads(store.filepath.read_text(encoding="utf-8"))
    assert on_disk["totalCount"] == 0
    assert on_disk["lastUpdate"] is not None


def test_save_then_load_preserves_counters(tmp_path):
    store = ProgressStore(tmp_path / "progress.json")
    record = ProgressRecord(total_count=25)
    record.mark_processed("a1")
    record.mark_processed("a2")
    record.defer("a3")

    store.save(record)
    loaded = store.load()

    assert loaded.last_processed_id == "a2"
    assert loaded.processed_count == 2
    assert loaded.remaining_count == 23
    assert loaded.deferred_ids == ["a3"]
    assert loaded.cursor == 3
    assert not (tmp_path / "progress.tmp").exists()


def test_remaining_count_on_disk_is_ignored(tmp_path):
    path = tmp_path / "progress.json"
    path.write_text(
        json.dumps({"totalCount": 10, "processedCount": 4, "remainingCount": 99, "lastProcessedId": "x"}),
        encoding="utf-8",
    )

    record = ProgressStore(path).load()

    assert record.remaining_count == 6


def test_legacy_total_articles_key_is_accepted(tmp_path):
    path = tmp_path / "progress.json"
    path.write_text(
        json.dumps({"lastProcessedId": "7", "totalArticles": 12, "processedCount": 3, "remainingCount": 9}),
        encoding="utf-8",
    )

    record = ProgressStore(path).load()

    assert record.total_count == 12
    assert record.processed_count == 3
    assert record.deferred_ids == []


@pytest.mark.parametrize(
    "payload",
    [
        {"totalCount": 3, "processedCount": 5},
        {"totalCount": -1, "processedCount": 0},
        {"totalCount": 2, "processedCount": 1, "deferredIds": ["a", "b"]},
        {"totalCount": "ten", "processedCount": 0},
        [1, 2, 3],
    ],
)
def test_invalid_checkpoint_raises(tmp_path, payload):
    path = tmp_path / "progress.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(CheckpointError):
        ProgressStore(path).load()


def test_corrupt_json_raises_checkpoint_error(tmp_path):
    path = tmp_path / "progress.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CheckpointError):
        ProgressStore(path).load()


def test_save_failure_raises_checkpoint_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("", encoding="utf-8")
    store = ProgressStore(blocker / "progress.json")

    with pytest.raises(CheckpointError):
        store.save(ProgressRecord())


def test_mark_processed_for_deferred_item_keeps_last_processed_id():
    record = ProgressRecord(total_count=5)
    record.mark_processed("a")
    record.defer("b")
    record.mark_processed("c")

    record.mark_processed("b", frontier=False)

    assert record.last_processed_id == "c"
    assert record.processed_count == 3
    assert record.deferred_ids == []
    assert record.cursor == 3


def test_defer_is_idempotent():
    record = ProgressRecord(total_count=5)

    record.defer("b")
    record.defer("b")

    assert record.deferred_ids == ["b"]
    assert record.processed_count == 0


def test_defer_again_moves_item_to_back_of_queue():
    record = ProgressRecord(total_count=5)
    for item_id in ("a", "b", "c"):
        record.defer(item_id)

    record.defer("a")

    assert record.deferred_ids == ["b", "c", "a"]
    assert record.cursor == 3
