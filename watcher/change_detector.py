"""
Change detection engine for monitored pages.

This module provides:
- First-seen / unchanged / changed classification of page fetches
- Snapshot and bounded history updates
- Change event emission to notification listeners
- History lookup for diff display
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, Union

import structlog

from watcher.exceptions import EmptyContentError, NotFoundError
from watcher.fingerprinting import ContentFingerprinter
from watcher.models import ChangeEvent, ChangeRecord, DetectionOutcome, Snapshot
from watcher.normalizer import ContentNormalizer
from watcher.stores import HistoryStore, SnapshotStore

logger = structlog.get_logger(__name__)

ChangeListener = Callable[[ChangeEvent], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[datetime, str]) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class ChangeDetector:
    """Engine for detecting changes in monitored page content."""

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        history_store: HistoryStore,
        normalizer: Optional[ContentNormalizer] = None,
        fingerprinter: Optional[ContentFingerprinter] = None,
        listeners: Optional[List[ChangeListener]] = None
    ):
        """
        Initialize change detector.

        Args:
            snapshot_store: Store holding the current snapshot per URL
            history_store: Store holding the change history per URL
            normalizer: Content normalizer
            fingerprinter: Content fingerprinter
            listeners: Callables receiving a ChangeEvent on every change
        """
        self.snapshot_store = snapshot_store
        self.history_store = history_store
        self.normalizer = normalizer or ContentNormalizer()
        self.fingerprinter = fingerprinter or ContentFingerprinter()
        self.listeners: List[ChangeListener] = list(listeners or [])
        self.logger = logger.bind(component="change_detector")

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a change event listener."""
        self.listeners.append(listener)

    def observe(
        self,
        url: str,
        raw_html: Optional[str],
        now_fn: Optional[Callable[[], datetime]] = None
    ) -> DetectionOutcome:
        """Detect changes in fetched content and notify listeners of a change."""
        outcome, event = self.detect(url, raw_html, now_fn)
        if event is not None:
            self.emit(event)
        return outcome

    def detect(
        self,
        url: str,
        raw_html: Optional[str],
        now_fn: Optional[Callable[[], datetime]] = None
    ) -> Tuple[DetectionOutcome, Optional[ChangeEvent]]:
        """
        Compare fetched content against the stored snapshot and update state.

        Listeners are not called; deliver the returned event with ``emit``.

        Args:
            url: Monitored URL
            raw_html: Raw page content as fetched
            now_fn: Clock used to stamp change records

        Returns:
            DetectionOutcome of the observation and the ChangeEvent of a change

        Raises:
            EmptyContentError: If no content was supplied; state is untouched
        """
        if not raw_html:
            self.logger.warning("No content received", url=url)
            raise EmptyContentError(url)

        normalized = self.normalizer.normalize(raw_html)
        current_fingerprint = self.fingerprinter.fingerprint(normalized)
        stored = self.snapshot_store.get(url)

        if stored is None:
            self.snapshot_store.put(Snapshot(
                url=url,
                fingerprint=current_fingerprint,
                normalized_content=normalized
            ))
            self.logger.info(
                "Stored first snapshot",
                url=url,
                fingerprint=current_fingerprint
            )
            return DetectionOutcome.FIRST_SEEN, None

        if not self.fingerprinter.fingerprints_differ(stored.fingerprint, current_fingerprint):
            self.logger.debug("Content unchanged", url=url)
            return DetectionOutcome.UNCHANGED, None

        record = ChangeRecord(
            url=url,
            timestamp=(now_fn or utc_now)(),
            old_content=stored.normalized_content,
            new_content=normalized
        )
        new_snapshot = Snapshot(
            url=url,
            fingerprint=current_fingerprint,
            normalized_content=normalized
        )

        # Both values are built before either store is touched.
        records = self.history_store.with_record(record)
        self.history_store.replace(url, records)
        self.snapshot_store.put(new_snapshot)

        self.logger.info(
            "Change detected",
            url=url,
            old_fingerprint=stored.fingerprint,
            new_fingerprint=current_fingerprint,
            history_length=len(records)
        )

        return DetectionOutcome.CHANGED, ChangeEvent(url=url, timestamp=record.timestamp)

    def emit(self, event: ChangeEvent) -> None:
        """Deliver a change event to every listener."""
        for listener in self.listeners:
            try:
                listener(event)
            except Exception as e:
                self.logger.error(
                    "Change listener failed",
                    url=event.url,
                    error=str(e)
                )

    def get_history(self, url: Optional[str] = None) -> Dict[str, List[ChangeRecord]]:
        """
        Get a copy of the change history.

        Args:
            url: Restrict to one URL (None for all)

        Returns:
            Mapping of URL to records, oldest first
        """
        if url is not None:
            records = self.history_store.get(url)
            return {url: list(records)} if records else {}
        return {key: list(records) for key, records in self.history_store.items()}

    def get_change(self, url: str, timestamp: Union[datetime, str]) -> ChangeRecord:
        """
        Find the change record of a URL by its timestamp.

        Args:
            url: Monitored URL
            timestamp: Timestamp of the change (datetime or ISO-8601 string)

        Returns:
            The matching ChangeRecord

        Raises:
            NotFoundError: If the URL has no history or no record matches
        """
        records = self.history_store.get(url)
        if not records:
            raise NotFoundError(f"No history found for {url}")

        wanted = parse_timestamp(timestamp)
        for record in records:
            if record.timestamp == wanted:
                return record

        raise NotFoundError(f"Change entry not found for {url} at {wanted.isoformat()}")

    def restore(
        self,
        url: str,
        snapshot: Optional[Snapshot],
        records: Tuple[ChangeRecord, ...]
    ) -> None:
        """
        Reinstall the snapshot and history a URL had before an observation.

        Args:
            url: Monitored URL
            snapshot: Previous snapshot (None if the URL had none)
            records: Previous change records
        """
        if snapshot is None:
            self.snapshot_store.remove(url)
        else:
            self.snapshot_store.put(snapshot)

        if records:
            self.history_store.replace(url, records)
        else:
            self.history_store.remove(url)

        self.logger.warning("Restored previous state", url=url)

    def clear_history(self) -> None:
        """Remove every change record."""
        self.history_store.clear()
        self.logger.info("Cleared change history")

    def clear_all(self) -> None:
        """Remove every snapshot and change record."""
        self.history_store.clear()
        self.snapshot_store.clear()
        self.logger.info("Cleared snapshots and change history")
