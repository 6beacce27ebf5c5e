"""
Search across current snapshots and change history.

This module provides:
- Literal and regex pattern construction
- Scanning of snapshots and historical old/new content
- URL and recency filters
- Stable ranking by match count
- Context extraction around matches
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Pattern

import structlog

from watcher.exceptions import InvalidPatternError
from watcher.models import MatchContext, MatchSpan, SearchOptions, SearchResult, SourceKind
from watcher.stores import HistoryStore, SnapshotStore

logger = structlog.get_logger(__name__)

CONTEXT_RADIUS = 200
MAX_CONTEXTS_PER_RESULT = 10


def build_pattern(query: str, options: SearchOptions) -> Pattern:
    """
    Compile the search pattern for a query.

    Args:
        query: Search text or regular expression
        options: Search options

    Returns:
        Compiled pattern

    Raises:
        InvalidPatternError: If the query is empty or does not compile
    """
    if not query:
        raise InvalidPatternError("Search query must not be empty")

    source = query if options.use_regex else re.escape(query)
    flags = 0 if options.case_sensitive else re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise InvalidPatternError(f"Invalid regular expression: {e}") from e


def find_matches(pattern: Pattern, content: str) -> List[MatchSpan]:
    """Return every non-overlapping match in content."""
    return [
        MatchSpan(start_offset=match.start(), matched_text=match.group(0))
        for match in pattern.finditer(content)
    ]


def extract_context(content: str, match: MatchSpan, radius: int = CONTEXT_RADIUS) -> MatchContext:
    """
    Extract a window of text around a match.

    Args:
        content: Content the match belongs to
        match: Match span
        radius: Characters kept on each side of the match

    Returns:
        MatchContext clipped to content bounds
    """
    start = max(0, match.start_offset - radius)
    end = min(len(content), match.end_offset + radius)
    return MatchContext(
        start_offset=start,
        before=content[start:match.start_offset],
        matched_text=match.matched_text,
        after=content[match.end_offset:end],
        truncated_start=start > 0,
        truncated_end=end < len(content)
    )


def extract_contexts(
    content: str,
    matches: List[MatchSpan],
    radius: int = CONTEXT_RADIUS,
    limit: int = MAX_CONTEXTS_PER_RESULT
) -> List[MatchContext]:
    """Extract windows for the first ``limit`` matches, one per offset."""
    contexts = []
    seen_offsets = set()
    for match in matches[:limit]:
        if match.start_offset in seen_offsets:
            continue
        seen_offsets.add(match.start_offset)
        contexts.append(extract_context(content, match, radius))
    return contexts


class SearchEngine:
    """Read-only search over snapshot and history stores."""

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        history_store: HistoryStore,
        now_fn: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the search engine.

        Args:
            snapshot_store: Store of current snapshots
            history_store: Store of change history
            now_fn: Clock for recency filtering and snapshot result stamps
        """
        self.snapshot_store = snapshot_store
        self.history_store = history_store
        self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(component="search_engine")

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Search stored content.

        Results are ordered by match count, descending. Ties keep discovery
        order: snapshots before history, URLs in insertion order, records
        oldest first, old content before new content.

        Args:
            query: Search text or regular expression
            options: Search options (defaults search everything literally)

        Returns:
            Ranked list of SearchResult

        Raises:
            InvalidPatternError: If the query cannot be compiled
        """
        options = options or SearchOptions()
        pattern = build_pattern(query, options)
        now = self.now_fn()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - timedelta(days=options.max_age_days) if options.max_age_days else None

        results: List[SearchResult] = []

        if options.include_snapshots:
            for url, snapshot in self.snapshot_store.items():
                if options.url_filter and url != options.url_filter:
                    continue
                result = self._scan(pattern, SourceKind.CURRENT_SNAPSHOT, url, now, snapshot.normalized_content)
                if result:
                    results.append(result)

        if options.include_history:
            for url, records in self.history_store.items():
                if options.url_filter and url != options.url_filter:
                    continue
                for record in records:
                    if cutoff and record.timestamp < cutoff:
                        continue
                    old_result = self._scan(pattern, SourceKind.HISTORICAL_OLD, url, record.timestamp, record.old_content)
                    if old_result:
                        results.append(old_result)
                    new_result = self._scan(pattern, SourceKind.HISTORICAL_NEW, url, record.timestamp, record.new_content)
                    if new_result:
                        results.append(new_result)

        ranked = sorted(results, key=lambda result: result.match_count, reverse=True)

        self.logger.info(
            "Search completed",
            query=query,
            use_regex=options.use_regex,
            results=len(ranked),
            total_matches=sum(result.match_count for result in ranked)
        )

        return ranked

    def _scan(
        self,
        pattern: Pattern,
        kind: SourceKind,
        url: str,
        timestamp: datetime,
        content: str
    ) -> Optional[SearchResult]:
        """Build a result for one content string, or None without matches."""
        matches = find_matches(pattern, content or "")
        if not matches:
            return None
        return SearchResult(
            source_kind=kind,
            url=url,
            timestamp=timestamp,
            content=content,
            matches=matches,
            match_count=len(matches),
            contexts=extract_contexts(content, matches)
        )
