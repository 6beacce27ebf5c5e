"""
Tests for snapshot and history stores.
"""

from datetime import datetime, timedelta, timezone

import pytest

from watcher.models import ChangeRecord, Snapshot, SnapshotState
from watcher.stores import HistoryStore, SnapshotStore

BASE_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_record(url: str, index: int) -> ChangeRecord:
    return ChangeRecord(
        url=url,
        timestamp=BASE_TIME + timedelta(minutes=index),
        old_content=f"v{index}",
        new_content=f"v{index + 1}"
    )


class TestSnapshotStore:
    """Test cases for SnapshotStore."""

    def test_put_and_get(self, snapshot_store):
        snapshot = Snapshot(url="https://a.test", fingerprint="1", normalized_content="x")
        snapshot_store.put(snapshot)

        assert snapshot_store.get("https://a.test") == snapshot
        assert snapshot_store.get("https://b.test") is None
        assert "https://a.test" in snapshot_store
        assert len(snapshot_store) == 1

    def test_put_replaces(self, snapshot_store):
        snapshot_store.put(Snapshot(url="https://a.test", fingerprint="1", normalized_content="x"))
        snapshot_store.put(Snapshot(url="https://a.test", fingerprint="2", normalized_content="y"))

        assert snapshot_store.get("https://a.test").fingerprint == "2"
        assert len(snapshot_store) == 1

    def test_insertion_order(self, snapshot_store):
        for url in ["https://c.test", "https://a.test", "https://b.test"]:
            snapshot_store.put(Snapshot(url=url, fingerprint="1", normalized_content="x"))

        assert snapshot_store.urls() == ["https://c.test", "https://a.test", "https://b.test"]

    def test_state_conversion(self, snapshot_store):
        snapshot_store.put(Snapshot(url="https://a.test", fingerprint="1", normalized_content="x"))

        state = snapshot_store.to_state()
        assert state == {"https://a.test": SnapshotState(fingerprint="1", normalized_content="x")}

        restored = SnapshotStore.from_state(state)
        assert restored.get("https://a.test").url == "https://a.test"

    def test_clear(self, snapshot_store):
        snapshot_store.put(Snapshot(url="https://a.test", fingerprint="1", normalized_content="x"))
        snapshot_store.clear()
        assert len(snapshot_store) == 0

    def test_remove(self, snapshot_store):
        snapshot_store.put(Snapshot(url="https://a.test", fingerprint="1", normalized_content="x"))
        snapshot_store.remove("https://a.test")
        snapshot_store.remove("https://a.test")

        assert snapshot_store.get("https://a.test") is None


class TestHistoryStore:
    """Test cases for HistoryStore."""

    def test_empty_history(self, history_store):
        assert history_store.get("https://a.test") == ()
        assert history_store.total_records() == 0

    def test_append_keeps_order(self, history_store):
        for i in range(3):
            history_store.append(make_record("https://a.test", i))

        records = history_store.get("https://a.test")
        assert [r.old_content for r in records] == ["v0", "v1", "v2"]

    def test_retention_limit(self):
        store = HistoryStore(retention_limit=10)
        for i in range(12):
            store.append(make_record("https://a.test", i))

        records = store.get("https://a.test")
        assert len(records) == 10
        assert records[0].old_content == "v2"
        assert records[-1].old_content == "v11"

    def test_with_record_does_not_mutate(self, history_store):
        history_store.with_record(make_record("https://a.test", 0))
        assert history_store.get("https://a.test") == ()

    def test_initial_history_is_truncated(self):
        records = [make_record("https://a.test", i) for i in range(5)]
        store = HistoryStore({"https://a.test": records}, retention_limit=3)

        assert [r.old_content for r in store.get("https://a.test")] == ["v2", "v3", "v4"]

    def test_invalid_retention_limit(self):
        with pytest.raises(ValueError):
            HistoryStore(retention_limit=0)

    def test_to_state_and_counts(self, history_store):
        history_store.append(make_record("https://a.test", 0))
        history_store.append(make_record("https://b.test", 0))
        history_store.append(make_record("https://b.test", 1))

        assert history_store.total_records() == 3
        assert history_store.urls() == ["https://a.test", "https://b.test"]
        assert len(history_store.to_state()["https://b.test"]) == 2

    def test_remove(self, history_store):
        history_store.append(make_record("https://a.test", 0))
        history_store.remove("https://a.test")
        history_store.remove("https://b.test")

        assert history_store.get("https://a.test") == ()
        assert history_store.urls() == []
