"""
Tests for the change detection engine.
"""

from datetime import datetime, timezone

import pytest

from watcher.change_detector import ChangeDetector, parse_timestamp
from watcher.exceptions import EmptyContentError, NotFoundError
from watcher.fingerprinting import SHA256, ContentFingerprinter
from watcher.models import DetectionOutcome
from watcher.stores import HistoryStore, SnapshotStore

URL = "https://a.test"
V1 = "<html><body>v1</body></html>"
V2 = "<html><body>v2</body></html>"


class TestChangeDetector:
    """Test cases for ChangeDetector.observe."""

    def test_first_seen_changed_unchanged(self, detector, clock):
        assert detector.observe(URL, V1, clock) == DetectionOutcome.FIRST_SEEN
        assert detector.observe(URL, V2, clock) == DetectionOutcome.CHANGED
        assert detector.observe(URL, V2, clock) == DetectionOutcome.UNCHANGED

        history = detector.get_history(URL)[URL]
        assert len(history) == 1
        assert history[0].old_content == V1
        assert history[0].new_content == V2
        assert detector.snapshot_store.get(URL).normalized_content == V2

    def test_first_seen_records_no_history(self, detector):
        detector.observe(URL, V1)
        assert detector.get_history() == {}
        assert detector.snapshot_store.get(URL) is not None

    def test_repeat_observation_is_idempotent(self, detector, clock):
        detector.observe(URL, V1, clock)
        snapshot = detector.snapshot_store.get(URL)

        assert detector.observe(URL, V1, clock) == DetectionOutcome.UNCHANGED
        assert detector.snapshot_store.get(URL) == snapshot
        assert detector.history_store.get(URL) == ()

    def test_volatile_parts_do_not_count_as_change(self, detector):
        detector.observe(URL, '<div timestamp="1700000000">x</div><script>a()</script>')
        outcome = detector.observe(URL, '<div timestamp="1700000099">x</div><script>b()</script>')
        assert outcome == DetectionOutcome.UNCHANGED

    def test_whitespace_only_change_is_unchanged(self, detector):
        detector.observe(URL, "<p>a</p>\n<p>b</p>")
        assert detector.observe(URL, "<p>a</p>    <p>b</p>") == DetectionOutcome.UNCHANGED

    def test_history_is_bounded_to_last_ten(self, detector, clock):
        detector.observe(URL, "<p>0</p>", clock)
        for i in range(1, 13):
            assert detector.observe(URL, f"<p>{i}</p>", clock) == DetectionOutcome.CHANGED

        history = detector.get_history(URL)[URL]
        assert len(history) == 10
        assert history[0].old_content == "<p>2</p>"
        assert history[-1].new_content == "<p>12</p>"
        timestamps = [record.timestamp for record in history]
        assert timestamps == sorted(timestamps)

    def test_empty_content_leaves_state_untouched(self, detector):
        detector.observe(URL, V1)

        with pytest.raises(EmptyContentError) as exc_info:
            detector.observe(URL, "")

        assert exc_info.value.url == URL
        assert detector.snapshot_store.get(URL).normalized_content == V1
        assert detector.history_store.get(URL) == ()

    def test_empty_content_for_unknown_url(self, detector):
        with pytest.raises(EmptyContentError):
            detector.observe(URL, None)
        assert URL not in detector.snapshot_store

    def test_listener_fires_only_on_change(self, detector, clock):
        events = []
        detector.add_listener(events.append)

        detector.observe(URL, V1, clock)
        detector.observe(URL, V1, clock)
        assert events == []

        detector.observe(URL, V2, clock)
        assert len(events) == 1
        assert events[0].url == URL
        assert events[0].timestamp == detector.get_history(URL)[URL][0].timestamp

    def test_failing_listener_does_not_break_detection(self, detector):
        def broken(event):
            raise RuntimeError("boom")

        detector.add_listener(broken)
        detector.observe(URL, V1)
        assert detector.observe(URL, V2) == DetectionOutcome.CHANGED
        assert len(detector.history_store.get(URL)) == 1

    def test_detect_does_not_notify(self, detector, clock):
        events = []
        detector.add_listener(events.append)
        detector.observe(URL, V1, clock)

        outcome, event = detector.detect(URL, V2, clock)

        assert outcome == DetectionOutcome.CHANGED
        assert event.url == URL
        assert events == []

        detector.emit(event)
        assert events == [event]

    def test_restore_previous_state(self, detector, clock):
        detector.observe(URL, V1, clock)
        previous_snapshot = detector.snapshot_store.get(URL)
        previous_records = detector.history_store.get(URL)

        detector.observe(URL, V2, clock)
        detector.restore(URL, previous_snapshot, previous_records)

        assert detector.snapshot_store.get(URL) == previous_snapshot
        assert detector.get_history() == {}
        assert detector.observe(URL, V2, clock) == DetectionOutcome.CHANGED

    def test_restore_unknown_url_forgets_it(self, detector):
        detector.observe(URL, V1)
        detector.restore(URL, None, ())

        assert URL not in detector.snapshot_store
        assert URL not in detector.history_store

    def test_sha256_fingerprints(self):
        detector = ChangeDetector(
            SnapshotStore(),
            HistoryStore(),
            fingerprinter=ContentFingerprinter(SHA256)
        )
        detector.observe(URL, V1)
        assert len(detector.snapshot_store.get(URL).fingerprint) == 64
        assert detector.observe(URL, V2) == DetectionOutcome.CHANGED


class TestHistoryLookup:
    """Test cases for history queries."""

    def test_get_history_unknown_url(self, detector):
        assert detector.get_history("https://unknown.test") == {}

    def test_get_history_is_a_copy(self, detector, clock):
        detector.observe(URL, V1, clock)
        detector.observe(URL, V2, clock)

        history = detector.get_history()
        history[URL].clear()
        assert len(detector.get_history(URL)[URL]) == 1

    def test_get_change_by_timestamp(self, detector, clock):
        detector.observe(URL, V1, clock)
        detector.observe(URL, V2, clock)
        record = detector.get_history(URL)[URL][0]

        assert detector.get_change(URL, record.timestamp) == record
        assert detector.get_change(URL, record.timestamp.isoformat()) == record

    def test_get_change_missing_url(self, detector):
        with pytest.raises(NotFoundError, match="No history found"):
            detector.get_change(URL, "2024-01-15T12:00:00Z")

    def test_get_change_missing_entry(self, detector, clock):
        detector.observe(URL, V1, clock)
        detector.observe(URL, V2, clock)

        with pytest.raises(NotFoundError, match="Change entry not found"):
            detector.get_change(URL, "1999-01-01T00:00:00Z")

    def test_clear_history_keeps_snapshots(self, detector):
        detector.observe(URL, V1)
        detector.observe(URL, V2)
        detector.clear_history()

        assert detector.get_history() == {}
        assert detector.snapshot_store.get(URL) is not None

    def test_clear_all(self, detector):
        detector.observe(URL, V1)
        detector.observe(URL, V2)
        detector.clear_all()

        assert detector.get_history() == {}
        assert len(detector.snapshot_store) == 0


class TestParseTimestamp:
    """Test cases for timestamp parsing."""

    def test_zulu_suffix(self):
        assert parse_timestamp("2024-01-15T12:00:00Z") == datetime(2024, 1, 15, 12, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp(datetime(2024, 1, 15, 12)).tzinfo == timezone.utc
