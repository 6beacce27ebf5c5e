"""
Typed commands and responses for the watch service.

Every command carries a ``type`` discriminator so that raw payloads can be
parsed into the matching variant with :func:`parse_command`.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from watcher.models import (
    ChangeRecord, CheckCycleResult, DetectionOutcome, DiffMode, DiffResult,
    PersistedState, SearchExport, SearchOptions, SearchResult
)


class ObserveCommand(BaseModel):
    """Page content delivered for a monitored URL."""
    type: Literal["observe"] = "observe"
    url: str
    content: Optional[str] = None


class CheckNowCommand(BaseModel):
    """Check every monitored URL immediately."""
    type: Literal["check_now"] = "check_now"


class GetHistoryCommand(BaseModel):
    type: Literal["get_history"] = "get_history"
    url: Optional[str] = None


class GetAllStateCommand(BaseModel):
    type: Literal["get_all_state"] = "get_all_state"


class SetMonitoredUrlsCommand(BaseModel):
    type: Literal["set_monitored_urls"] = "set_monitored_urls"
    urls: List[str] = Field(default_factory=list)


class ClearHistoryCommand(BaseModel):
    type: Literal["clear_history"] = "clear_history"


class ClearAllStateCommand(BaseModel):
    type: Literal["clear_all_state"] = "clear_all_state"


class SearchCommand(BaseModel):
    type: Literal["search"] = "search"
    query: str
    options: SearchOptions = Field(default_factory=SearchOptions)


class RenderDiffCommand(BaseModel):
    type: Literal["render_diff"] = "render_diff"
    old_content: str
    new_content: str
    mode: DiffMode = DiffMode.FORMATTED


class RenderChangeDiffCommand(BaseModel):
    """Render the diff of a stored change record."""
    type: Literal["render_change_diff"] = "render_change_diff"
    url: str
    timestamp: datetime
    mode: DiffMode = DiffMode.FORMATTED


class BuildReportCommand(BaseModel):
    type: Literal["build_report"] = "build_report"
    query: str
    options: SearchOptions = Field(default_factory=SearchOptions)


class BuildExportCommand(BaseModel):
    type: Literal["build_export"] = "build_export"
    query: str
    options: SearchOptions = Field(default_factory=SearchOptions)


Command = Annotated[
    Union[
        ObserveCommand,
        CheckNowCommand,
        GetHistoryCommand,
        GetAllStateCommand,
        SetMonitoredUrlsCommand,
        ClearHistoryCommand,
        ClearAllStateCommand,
        SearchCommand,
        RenderDiffCommand,
        RenderChangeDiffCommand,
        BuildReportCommand,
        BuildExportCommand,
    ],
    Field(discriminator="type"),
]

_command_adapter = TypeAdapter(Command)


def parse_command(data: Dict[str, Any]) -> Command:
    """
    Parse a raw payload into a command.

    Raises:
        pydantic.ValidationError: If the type is unknown or fields are invalid
    """
    return _command_adapter.validate_python(data)


class ObserveResponse(BaseModel):
    url: str
    outcome: DetectionOutcome


class CheckResponse(BaseModel):
    result: CheckCycleResult


class HistoryResponse(BaseModel):
    history: Dict[str, List[ChangeRecord]] = Field(default_factory=dict)


class StateResponse(BaseModel):
    state: PersistedState


class MonitoredUrlsResponse(BaseModel):
    urls: List[str] = Field(default_factory=list)


class AckResponse(BaseModel):
    success: bool = True
    message: str = ""


class SearchResponse(BaseModel):
    query: str
    options: SearchOptions
    total_results: int = 0
    total_matches: int = 0
    results: List[SearchResult] = Field(default_factory=list)


class DiffResponse(BaseModel):
    diff: DiffResult


class ReportResponse(BaseModel):
    report: str


class ExportResponse(BaseModel):
    export: SearchExport
