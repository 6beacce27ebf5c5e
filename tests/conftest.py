"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import pytest

from crawler.storage import MemoryStateStore
from watcher.alerting import AlertManager
from watcher.change_detector import ChangeDetector
from watcher.models import AlertConfig
from watcher.report_generator import ReportBuilder
from watcher.service import WatchService
from watcher.stores import HistoryStore, SnapshotStore

BASE_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


class FakeFetcher:
    """Returns canned page bodies; None simulates a failed fetch."""

    def __init__(self, pages: Optional[Dict[str, Optional[str]]] = None):
        self.pages = dict(pages or {})
        self.calls = []

    async def fetch(self, url: str) -> Optional[str]:
        self.calls.append(url)
        return self.pages.get(url)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fixed_now():
    """Clock that always returns the same instant."""
    return lambda: BASE_TIME


@pytest.fixture
def snapshot_store():
    return SnapshotStore()


@pytest.fixture
def history_store():
    return HistoryStore()


@pytest.fixture
def detector(snapshot_store, history_store):
    return ChangeDetector(snapshot_store, history_store)


@pytest.fixture
def memory_store():
    return MemoryStateStore()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def service(memory_store, fake_fetcher, clock, tmp_path):
    """Watch service backed by memory storage and a fake fetcher."""
    return WatchService(
        memory_store,
        fetcher=fake_fetcher,
        alert_manager=AlertManager(AlertConfig()),
        report_builder=ReportBuilder(str(tmp_path / "reports")),
        now_fn=clock
    )


@pytest.fixture
def sample_html():
    """Sample page with volatile parts."""
    return """
    <html>
        <head>
            <title>Status</title>
            <script>var renderedAt = Date.now();</script>
            <style>body { color: red; }</style>
        </head>
        <body>
            <!-- build 2024-01-15T11:59:59Z -->
            <div timestamp="1705319999">Rendered 2024-01-15T11:59:59.123Z</div>
            <p>Hello world</p>
        </body>
    </html>
    """
