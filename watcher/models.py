"""
Models for change detection, search and reporting.

This module defines Pydantic models for:
- Snapshots and change records
- Detection outcomes and change events
- Search options, results and match contexts
- Diff views
- Persisted state and exports
- Alerting and scheduler configuration
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


RETENTION_LIMIT = 10


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DetectionOutcome(str, Enum):
    """Outcome of observing one page fetch."""
    FIRST_SEEN = "first_seen"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class SourceKind(str, Enum):
    """Where a search result was found."""
    CURRENT_SNAPSHOT = "current_snapshot"
    HISTORICAL_OLD = "historical_old"
    HISTORICAL_NEW = "historical_new"


class DiffMode(str, Enum):
    """Rendering modes for content diffs."""
    FORMATTED = "formatted"
    RAW = "raw"


class LineTag(str, Enum):
    """Tag attached to every line of a formatted diff."""
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ADDED = "added"


class Snapshot(BaseModel):
    """Latest known normalized content of a monitored URL."""
    url: str = Field(..., description="Monitored URL")
    fingerprint: str = Field(..., description="Fingerprint of the normalized content")
    normalized_content: str = Field(..., description="Normalized page content")

    model_config = {"frozen": True}


class ChangeRecord(BaseModel):
    """Immutable log entry for a detected change."""
    url: str = Field(..., description="Monitored URL")
    timestamp: datetime = Field(..., description="When the change was detected")
    old_content: str = Field(..., description="Normalized content before the change")
    new_content: str = Field(..., description="Normalized content after the change")

    model_config = {"frozen": True}

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v):
        """Store timestamps as timezone-aware UTC values."""
        return _as_utc(v)


class ChangeEvent(BaseModel):
    """Notification payload emitted when a change is detected."""
    url: str
    timestamp: datetime


class MatchSpan(BaseModel):
    """One regex match inside a content string."""
    start_offset: int = Field(..., ge=0, description="Character offset of the match")
    matched_text: str = Field(..., description="Matched text")

    @property
    def end_offset(self) -> int:
        return self.start_offset + len(self.matched_text)


class MatchContext(BaseModel):
    """Context window around a single match."""
    start_offset: int = Field(..., ge=0)
    before: str = ""
    matched_text: str = ""
    after: str = ""
    truncated_start: bool = False
    truncated_end: bool = False

    def render(self, open_mark: str = "[[", close_mark: str = "]]") -> str:
        """Render the window with the match wrapped in marks."""
        text = f"{self.before}{open_mark}{self.matched_text}{close_mark}{self.after}"
        if self.truncated_start:
            text = "..." + text
        if self.truncated_end:
            text = text + "..."
        return text


class SearchOptions(BaseModel):
    """Options controlling a content search."""
    case_sensitive: bool = Field(default=False)
    use_regex: bool = Field(default=False)
    include_snapshots: bool = Field(default=True)
    include_history: bool = Field(default=True)
    url_filter: Optional[str] = Field(default=None, description="Exact URL to restrict the search to")
    max_age_days: Optional[int] = Field(default=None, ge=1, description="Skip history older than this")


class SearchResult(BaseModel):
    """Matches found in one content string."""
    source_kind: SourceKind
    url: str
    timestamp: datetime
    content: str
    matches: List[MatchSpan] = Field(default_factory=list)
    match_count: int = Field(default=0, ge=0)
    contexts: List[MatchContext] = Field(default_factory=list)


class DiffLine(BaseModel):
    """A reflowed line with its diff tag."""
    text: str
    tag: LineTag


class DiffView(BaseModel):
    """One side of a rendered diff."""
    text: str = Field(..., description="Input content, verbatim")
    lines: List[DiffLine] = Field(default_factory=list, description="Tagged lines (formatted mode only)")


class DiffSummary(BaseModel):
    """Line counts of a formatted diff."""
    unchanged: int = 0
    removed: int = 0
    added: int = 0


class DiffResult(BaseModel):
    """Old and new views of a rendered diff."""
    mode: DiffMode
    old_view: DiffView
    new_view: DiffView
    summary: DiffSummary = Field(default_factory=DiffSummary)


class SnapshotState(BaseModel):
    """Persisted form of a snapshot, keyed by URL in PersistedState."""
    fingerprint: str
    normalized_content: str


class PersistedState(BaseModel):
    """Logical layout handed to and received from the state store."""
    monitored_urls: List[str] = Field(default_factory=list)
    snapshots: Dict[str, SnapshotState] = Field(default_factory=dict)
    history: Dict[str, List[ChangeRecord]] = Field(default_factory=dict)


class ExportedMatch(BaseModel):
    """Match entry of a search export."""
    text: str
    index: int


class ExportedResult(BaseModel):
    """Result entry of a search export."""
    type: SourceKind
    url: str
    timestamp: datetime
    match_count: int
    matches: List[ExportedMatch] = Field(default_factory=list)


class SearchExport(BaseModel):
    """Machine-readable export of a search."""
    search_query: str
    search_options: SearchOptions
    timestamp: datetime
    total_results: int = 0
    total_matches: int = 0
    results: List[ExportedResult] = Field(default_factory=list)


class StateStatistics(BaseModel):
    """Summary counters over the stored state."""
    monitored_urls: int = 0
    stored_snapshots: int = 0
    total_changes: int = 0
    last_change_at: Optional[datetime] = None


class CheckCycleResult(BaseModel):
    """Result of checking every monitored URL once."""
    cycle_id: str = Field(..., description="Unique check cycle identifier")
    started_at: datetime
    urls_checked: int = Field(default=0)
    first_seen: int = Field(default=0)
    unchanged: int = Field(default=0)
    changed: int = Field(default=0)
    failed: int = Field(default=0)
    duration_seconds: float = Field(default=0.0)
    errors: List[str] = Field(default_factory=list)
    success: bool = Field(default=True)


class AlertConfig(BaseModel):
    """Configuration for the alerting system (logging only)."""
    enabled: bool = Field(default=True)
    log_enabled: bool = Field(default=True)

    # Rate limiting
    max_alerts_per_hour: int = Field(default=30, ge=1)
    alert_cooldown_minutes: int = Field(default=0, ge=0)


class SchedulerConfig(BaseModel):
    """Configuration for the check scheduler."""
    check_interval_minutes: int = Field(default=15, ge=1, le=1440, description="Minutes between check cycles")
    check_stagger_seconds: float = Field(default=2.0, ge=0, description="Delay between URLs in a cycle")
    timezone: str = Field(default="UTC", description="Timezone for scheduling")
    generate_reports: bool = Field(default=False, description="Write a statistics export after each cycle")

    alert_config: AlertConfig = Field(default_factory=AlertConfig)
