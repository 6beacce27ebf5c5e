"""
In-memory state stores for snapshots and change history.

SnapshotStore keeps one Snapshot per URL. HistoryStore keeps a bounded,
oldest-first tuple of ChangeRecords per URL. Both preserve URL insertion order,
which fixes the iteration order used by search ranking tie-breaks.
"""

from typing import Dict, Iterator, List, Optional, Tuple

import structlog

from watcher.models import RETENTION_LIMIT, ChangeRecord, Snapshot, SnapshotState

logger = structlog.get_logger(__name__)


class SnapshotStore:
    """Holds the current snapshot of every monitored URL."""

    def __init__(self, snapshots: Optional[Dict[str, Snapshot]] = None):
        self._snapshots: Dict[str, Snapshot] = dict(snapshots or {})

    def get(self, url: str) -> Optional[Snapshot]:
        return self._snapshots.get(url)

    def put(self, snapshot: Snapshot) -> None:
        """Install a snapshot, replacing any previous one for the URL."""
        self._snapshots[snapshot.url] = snapshot

    def remove(self, url: str) -> None:
        self._snapshots.pop(url, None)

    def items(self) -> List[Tuple[str, Snapshot]]:
        """Return a copy of (url, snapshot) pairs in insertion order."""
        return list(self._snapshots.items())

    def urls(self) -> List[str]:
        return list(self._snapshots.keys())

    def clear(self) -> None:
        self._snapshots.clear()

    def __contains__(self, url: str) -> bool:
        return url in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls())

    def to_state(self) -> Dict[str, SnapshotState]:
        """Convert to the persisted layout."""
        return {
            url: SnapshotState(
                fingerprint=snapshot.fingerprint,
                normalized_content=snapshot.normalized_content
            )
            for url, snapshot in self._snapshots.items()
        }

    @classmethod
    def from_state(cls, snapshots: Dict[str, SnapshotState]) -> "SnapshotStore":
        """Build a store from the persisted layout."""
        return cls({
            url: Snapshot(
                url=url,
                fingerprint=state.fingerprint,
                normalized_content=state.normalized_content
            )
            for url, state in snapshots.items()
        })


class HistoryStore:
    """Holds a bounded log of change records per URL."""

    def __init__(
        self,
        history: Optional[Dict[str, List[ChangeRecord]]] = None,
        retention_limit: int = RETENTION_LIMIT
    ):
        """
        Initialize the history store.

        Args:
            history: Initial records per URL, oldest first
            retention_limit: Maximum number of records kept per URL
        """
        if retention_limit < 1:
            raise ValueError("retention_limit must be at least 1")
        self.retention_limit = retention_limit
        self._history: Dict[str, Tuple[ChangeRecord, ...]] = {}
        for url, records in (history or {}).items():
            self._history[url] = tuple(records)[-retention_limit:]
        self.logger = logger.bind(component="history_store")

    def get(self, url: str) -> Tuple[ChangeRecord, ...]:
        return self._history.get(url, ())

    def with_record(self, record: ChangeRecord) -> Tuple[ChangeRecord, ...]:
        """
        Compute the sequence that appending a record would produce.

        The store itself is not modified; install the result with ``replace``.

        Args:
            record: Record to append

        Returns:
            The last ``retention_limit`` records including the new one
        """
        records = self.get(record.url) + (record,)
        if len(records) > self.retention_limit:
            dropped = len(records) - self.retention_limit
            records = records[-self.retention_limit:]
            self.logger.debug(
                "Dropped records beyond retention limit",
                url=record.url,
                dropped=dropped,
                retention_limit=self.retention_limit
            )
        return records

    def replace(self, url: str, records: Tuple[ChangeRecord, ...]) -> None:
        self._history[url] = tuple(records)

    def remove(self, url: str) -> None:
        self._history.pop(url, None)

    def append(self, record: ChangeRecord) -> Tuple[ChangeRecord, ...]:
        """Append a record, enforcing the retention limit."""
        records = self.with_record(record)
        self.replace(record.url, records)
        return records

    def items(self) -> List[Tuple[str, Tuple[ChangeRecord, ...]]]:
        """Return a copy of (url, records) pairs in insertion order."""
        return list(self._history.items())

    def urls(self) -> List[str]:
        return list(self._history.keys())

    def total_records(self) -> int:
        return sum(len(records) for records in self._history.values())

    def clear(self) -> None:
        self._history.clear()

    def __contains__(self, url: str) -> bool:
        return url in self._history

    def __len__(self) -> int:
        return len(self._history)

    def to_state(self) -> Dict[str, List[ChangeRecord]]:
        """Convert to the persisted layout."""
        return {url: list(records) for url, records in self._history.items()}
