"""
Watch service orchestrating change detection, search and persistence.

This module provides:
- Loading and saving of persisted state through a state store
- Serialized fetch, observe and save per URL
- Check cycles over every monitored URL
- Monitored URL management with validation
- Search, diff, report and export operations
- Typed command dispatch
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

import structlog

from utilities.logger import WatchLogger
from watcher.alerting import AlertManager
from watcher.change_detector import ChangeDetector
from watcher.commands import (
    AckResponse, BuildExportCommand, BuildReportCommand, CheckNowCommand,
    CheckResponse, ClearAllStateCommand, ClearHistoryCommand, Command,
    DiffResponse, ExportResponse, GetAllStateCommand, GetHistoryCommand,
    HistoryResponse, MonitoredUrlsResponse, ObserveCommand, ObserveResponse,
    RenderChangeDiffCommand, RenderDiffCommand, ReportResponse, SearchCommand,
    SearchResponse, SetMonitoredUrlsCommand, StateResponse
)
from watcher.diff_renderer import DiffRenderer
from watcher.exceptions import InvalidUrlError, WatcherError
from watcher.fingerprinting import ROLLING32, ContentFingerprinter
from watcher.models import (
    RETENTION_LIMIT, ChangeRecord, CheckCycleResult, DetectionOutcome,
    DiffMode, DiffResult, PersistedState, SearchExport, SearchOptions,
    SearchResult, StateStatistics
)
from watcher.normalizer import ContentNormalizer
from watcher.report_generator import ReportBuilder
from watcher.search_engine import SearchEngine
from watcher.stores import HistoryStore, SnapshotStore

logger = structlog.get_logger(__name__)


def validate_urls(urls: List[str]) -> List[str]:
    """
    Clean and validate a monitored URL list.

    Entries are stripped, blanks dropped and duplicates removed keeping the
    first occurrence.

    Raises:
        InvalidUrlError: If any entry is not an absolute http(s) URL
    """
    cleaned = []
    for url in urls:
        url = url.strip()
        if url and url not in cleaned:
            cleaned.append(url)

    invalid = []
    for url in cleaned:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            invalid.append(url)

    if invalid:
        raise InvalidUrlError(invalid)
    return cleaned


class WatchService:
    """Owns the watcher state and exposes every watcher operation."""

    def __init__(
        self,
        state_store,
        fetcher=None,
        retention_limit: int = RETENTION_LIMIT,
        fingerprint_algorithm: str = ROLLING32,
        alert_manager: Optional[AlertManager] = None,
        report_builder: Optional[ReportBuilder] = None,
        seed_urls: Optional[List[str]] = None,
        check_stagger_seconds: float = 0.0,
        now_fn: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the watch service.

        Args:
            state_store: Backend used to load and save state
            fetcher: Object with an async ``fetch(url) -> Optional[str]``
            retention_limit: Maximum change records kept per URL
            fingerprint_algorithm: rolling32 or sha256
            alert_manager: Listener notified of every change
            report_builder: Builder for reports and exports
            seed_urls: Monitored URLs used when stored state has none
            check_stagger_seconds: Delay between URLs in a check cycle
            now_fn: Clock for change records and searches
        """
        self.state_store = state_store
        self.fetcher = fetcher
        self.retention_limit = retention_limit
        self.normalizer = ContentNormalizer()
        self.fingerprinter = ContentFingerprinter(fingerprint_algorithm)
        self.alert_manager = alert_manager
        self.report_builder = report_builder or ReportBuilder()
        self.diff_renderer = DiffRenderer()
        self.seed_urls = list(seed_urls or [])
        self.check_stagger_seconds = check_stagger_seconds
        self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(component="watch_service")
        self.watch_logger = WatchLogger("watch_service")

        self.monitored_urls: List[str] = []
        self._locks: Dict[str, asyncio.Lock] = {}
        self._apply_state(PersistedState())

    def _apply_state(self, state: PersistedState) -> None:
        """Rebuild stores and engines from persisted state."""
        self.monitored_urls = list(state.monitored_urls)
        self.snapshot_store = SnapshotStore.from_state(state.snapshots)
        self.history_store = HistoryStore(state.history, self.retention_limit)
        self.change_detector = ChangeDetector(
            self.snapshot_store,
            self.history_store,
            normalizer=self.normalizer,
            fingerprinter=self.fingerprinter,
            listeners=[self.alert_manager] if self.alert_manager else None
        )
        self.search_engine = SearchEngine(self.snapshot_store, self.history_store, self.now_fn)

    async def start(self) -> None:
        """Load persisted state; seed monitored URLs when none are stored."""
        state = await self.state_store.load()
        self._apply_state(state)

        if not self.monitored_urls and self.seed_urls:
            self.monitored_urls = validate_urls(self.seed_urls)
            await self.save()
            self.logger.info("Seeded monitored URLs", urls=self.monitored_urls)

        self.logger.info(
            "Watch service started",
            monitored_urls=len(self.monitored_urls),
            snapshots=len(self.snapshot_store),
            history_urls=len(self.history_store)
        )

    async def stop(self) -> None:
        await self.state_store.close()
        self.logger.info("Watch service stopped")

    def snapshot_state(self) -> PersistedState:
        """Return the current state in the persisted layout."""
        return PersistedState(
            monitored_urls=list(self.monitored_urls),
            snapshots=self.snapshot_store.to_state(),
            history=self.history_store.to_state()
        )

    async def save(self) -> None:
        await self.state_store.save(self.snapshot_state())

    def _lock_for(self, url: str) -> asyncio.Lock:
        lock = self._locks.get(url)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[url] = lock
        return lock

    async def _observe_and_save(self, url: str, content: Optional[str]) -> DetectionOutcome:
        """
        Observe content and persist the result.

        If saving fails the URL's snapshot and history are restored and no
        change event is emitted, so a retry sees the same state.
        """
        previous_snapshot = self.snapshot_store.get(url)
        previous_records = self.history_store.get(url)

        outcome, event = self.change_detector.detect(url, content, self.now_fn)
        if outcome == DetectionOutcome.UNCHANGED:
            return outcome

        try:
            await self.save()
        except WatcherError as e:
            self.change_detector.restore(url, previous_snapshot, previous_records)
            self.logger.error("Failed to save observation", url=url, error=str(e))
            raise

        if event is not None:
            self.change_detector.emit(event)
        return outcome

    async def observe(self, url: str, content: Optional[str]) -> DetectionOutcome:
        """
        Observe delivered page content and persist any state change.

        Raises:
            EmptyContentError: If no content was delivered
        """
        async with self._lock_for(url):
            return await self._observe_and_save(url, content)

    async def check_url(self, url: str, fetcher=None) -> Optional[DetectionOutcome]:
        """
        Fetch one URL and observe its content.

        Args:
            url: URL to check
            fetcher: Fetcher overriding the configured one

        Returns:
            DetectionOutcome, or None when the fetch failed
        """
        fetcher = fetcher or self.fetcher
        if fetcher is None:
            raise WatcherError("No page fetcher configured")

        async with self._lock_for(url):
            content = await fetcher.fetch(url)
            if content is None:
                self.logger.warning("Fetch failed, skipping", url=url)
                return None
            return await self._observe_and_save(url, content)

    async def check_all(self, fetcher=None, stagger_seconds: Optional[float] = None) -> CheckCycleResult:
        """
        Check every monitored URL once, sequentially.

        Args:
            fetcher: Fetcher overriding the configured one
            stagger_seconds: Delay between URLs (defaults to the configured value)

        Returns:
            CheckCycleResult with per-outcome counters
        """
        stagger = self.check_stagger_seconds if stagger_seconds is None else stagger_seconds
        started_at = datetime.now(timezone.utc)
        urls = list(self.monitored_urls)
        result = CheckCycleResult(cycle_id=str(uuid.uuid4()), started_at=started_at)

        self.watch_logger.bind_context(cycle_id=result.cycle_id)
        self.watch_logger.log_cycle_start(len(urls))

        for index, url in enumerate(urls):
            if index > 0 and stagger > 0:
                await asyncio.sleep(stagger)

            result.urls_checked += 1
            try:
                outcome = await self.check_url(url, fetcher)
            except WatcherError as e:
                result.failed += 1
                result.errors.append(f"{url}: {e}")
                self.watch_logger.log_error(str(e), url=url)
                continue

            if outcome is None:
                result.failed += 1
                result.errors.append(f"{url}: fetch failed")
            elif outcome == DetectionOutcome.FIRST_SEEN:
                result.first_seen += 1
            elif outcome == DetectionOutcome.CHANGED:
                result.changed += 1
            else:
                result.unchanged += 1

            if outcome is not None:
                self.watch_logger.log_outcome(url, outcome.value)
            self.watch_logger.log_cycle_progress(index + 1, len(urls))

        result.duration_seconds = (datetime.now(timezone.utc) - started_at).total_seconds()
        result.success = result.failed == 0

        self.watch_logger.log_cycle_complete(
            result.urls_checked, result.changed, result.failed, result.duration_seconds
        )
        self.watch_logger.clear_context()

        if self.alert_manager:
            self.alert_manager.send_cycle_summary(result)

        return result

    def get_history(self, url: Optional[str] = None) -> Dict[str, List[ChangeRecord]]:
        return self.change_detector.get_history(url)

    def get_all_state(self) -> PersistedState:
        return self.snapshot_state()

    def get_monitored_urls(self) -> List[str]:
        return list(self.monitored_urls)

    async def set_monitored_urls(self, urls: List[str]) -> List[str]:
        """
        Replace the monitored URL list.

        Raises:
            InvalidUrlError: If any entry is invalid; the list is left unchanged
        """
        cleaned = validate_urls(urls)
        self.monitored_urls = cleaned
        await self.save()
        self.logger.info("Updated monitored URLs", count=len(cleaned))
        return list(cleaned)

    async def clear_history(self) -> None:
        self.change_detector.clear_history()
        await self.save()

    async def clear_all_state(self) -> None:
        """Remove snapshots, history and monitored URLs."""
        self.change_detector.clear_all()
        self.monitored_urls = []
        await self.state_store.clear()
        self.logger.info("Cleared all state")

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        return self.search_engine.search(query, options)

    def render_diff(self, old_content: str, new_content: str, mode: DiffMode = DiffMode.FORMATTED) -> DiffResult:
        return self.diff_renderer.render_diff(old_content, new_content, mode)

    def render_change_diff(
        self,
        url: str,
        timestamp: Union[datetime, str],
        mode: DiffMode = DiffMode.FORMATTED
    ) -> DiffResult:
        """
        Render the diff of a stored change record.

        Raises:
            NotFoundError: If the URL has no history or no record matches
        """
        record = self.change_detector.get_change(url, timestamp)
        return self.render_diff(record.old_content, record.new_content, mode)

    def build_report(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        generated_at: Optional[datetime] = None
    ) -> str:
        results = self.search(query, options)
        return self.report_builder.build_report(results, query, generated_at or self.now_fn())

    def build_export(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        generated_at: Optional[datetime] = None
    ) -> SearchExport:
        options = options or SearchOptions()
        results = self.search(query, options)
        return self.report_builder.build_export(results, query, options, generated_at or self.now_fn())

    def get_statistics(self) -> StateStatistics:
        return self.report_builder.build_state_statistics(self.snapshot_state())

    async def dispatch(self, command: Command):
        """
        Execute a typed command and return its typed response.

        Errors propagate unchanged to the caller.
        """
        if isinstance(command, ObserveCommand):
            outcome = await self.observe(command.url, command.content)
            return ObserveResponse(url=command.url, outcome=outcome)
        if isinstance(command, CheckNowCommand):
            return CheckResponse(result=await self.check_all())
        if isinstance(command, GetHistoryCommand):
            return HistoryResponse(history=self.get_history(command.url))
        if isinstance(command, GetAllStateCommand):
            return StateResponse(state=self.get_all_state())
        if isinstance(command, SetMonitoredUrlsCommand):
            return MonitoredUrlsResponse(urls=await self.set_monitored_urls(command.urls))
        if isinstance(command, ClearHistoryCommand):
            await self.clear_history()
            return AckResponse(message="History cleared")
        if isinstance(command, ClearAllStateCommand):
            await self.clear_all_state()
            return AckResponse(message="All data cleared")
        if isinstance(command, SearchCommand):
            results = self.search(command.query, command.options)
            return SearchResponse(
                query=command.query,
                options=command.options,
                total_results=len(results),
                total_matches=sum(result.match_count for result in results),
                results=results
            )
        if isinstance(command, RenderDiffCommand):
            return DiffResponse(diff=self.render_diff(command.old_content, command.new_content, command.mode))
        if isinstance(command, RenderChangeDiffCommand):
            return DiffResponse(diff=self.render_change_diff(command.url, command.timestamp, command.mode))
        if isinstance(command, BuildReportCommand):
            return ReportResponse(report=self.build_report(command.query, command.options))
        if isinstance(command, BuildExportCommand):
            return ExportResponse(export=self.build_export(command.query, command.options))

        raise WatcherError(f"Unsupported command: {type(command).__name__}")
