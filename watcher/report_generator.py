"""
Report generation for search results and stored state.

This module provides:
- Human-readable search reports
- Machine-readable search exports
- State statistics
- JSON and CSV state exports
- Report storage in the reports directory
"""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from watcher.models import (
    ExportedMatch, ExportedResult, PersistedState, SearchExport,
    SearchOptions, SearchResult, SourceKind, StateStatistics
)
from watcher.search_engine import extract_context

logger = structlog.get_logger(__name__)

DETAILED_RESULT_LIMIT = 20
DETAILED_MATCH_LIMIT = 3
DETAILED_CONTEXT_RADIUS = 100

KIND_LABELS = {
    SourceKind.CURRENT_SNAPSHOT: "Current",
    SourceKind.HISTORICAL_OLD: "Historical (Old)",
    SourceKind.HISTORICAL_NEW: "Historical (New)",
}

CSV_HEADER = [
    "URL", "Timestamp", "Change Type",
    "Content Length (Old)", "Content Length (New)"
]


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


class ReportBuilder:
    """Builder for search reports, search exports and state exports."""

    def __init__(self, reports_dir: str = "reports"):
        """
        Initialize report builder.

        Args:
            reports_dir: Directory to store report files
        """
        self.reports_dir = Path(reports_dir)
        self.logger = logger.bind(component="report_builder")

    def build_report(
        self,
        results: List[SearchResult],
        query: str,
        generated_at: Optional[datetime] = None
    ) -> str:
        """
        Build a human-readable search report.

        Args:
            results: Ranked search results
            query: Query the results were produced by
            generated_at: Report time (defaults to now)

        Returns:
            Report text
        """
        generated_at = generated_at or datetime.now(timezone.utc)
        total_matches = sum(result.match_count for result in results)

        # URL grouping keeps the order in which URLs first appear in results
        by_url: Dict[str, List[SearchResult]] = {}
        for result in results:
            by_url.setdefault(result.url, []).append(result)

        average = total_matches / len(by_url) if by_url else 0.0

        lines = [
            "SEARCH REPORT",
            "=============",
            "",
            f'Search Query: "{query}"',
            f"Generated: {_format_time(generated_at)}",
            "",
            "SUMMARY",
            "-------",
            f"Total Matches: {total_matches}",
            f"URLs with Matches: {len(by_url)}",
            f"Total Results: {len(results)}",
            f"Average Matches per URL: {average:.1f}",
            "",
            "RESULTS BY URL",
            "--------------",
        ]

        for url, url_results in by_url.items():
            lines.append("")
            lines.append(url)
            lines.append(f"  Total Matches: {sum(r.match_count for r in url_results)}")
            for result in url_results:
                lines.append(
                    f"  - {KIND_LABELS[result.source_kind]}: {result.match_count} matches "
                    f"({_format_time(result.timestamp)})"
                )

        lines.extend(["", "", "DETAILED MATCHES", "================"])

        for result in results[:DETAILED_RESULT_LIMIT]:
            lines.append("")
            lines.append(f"URL: {result.url}")
            lines.append(f"Type: {result.source_kind.value}")
            lines.append(f"Timestamp: {_format_time(result.timestamp)}")
            lines.append(f"Matches: {result.match_count}")
            for match in result.matches[:DETAILED_MATCH_LIMIT]:
                context = extract_context(result.content, match, DETAILED_CONTEXT_RADIUS)
                lines.append("")
                lines.append(f'Match: "{match.matched_text}"')
                lines.append(f"Context: {context.render(open_mark='', close_mark='')}")

        self.logger.info(
            "Built search report",
            query=query,
            results=len(results),
            total_matches=total_matches
        )

        return "\n".join(lines) + "\n"

    def build_export(
        self,
        results: List[SearchResult],
        query: str,
        options: SearchOptions,
        generated_at: Optional[datetime] = None
    ) -> SearchExport:
        """
        Build a machine-readable search export.

        Every match of every result is included.

        Args:
            results: Ranked search results
            query: Query the results were produced by
            options: Options the search ran with
            generated_at: Export time (defaults to now)

        Returns:
            SearchExport instance
        """
        export = SearchExport(
            search_query=query,
            search_options=options,
            timestamp=generated_at or datetime.now(timezone.utc),
            total_results=len(results),
            total_matches=sum(result.match_count for result in results),
            results=[
                ExportedResult(
                    type=result.source_kind,
                    url=result.url,
                    timestamp=result.timestamp,
                    match_count=result.match_count,
                    matches=[
                        ExportedMatch(text=match.matched_text, index=match.start_offset)
                        for match in result.matches
                    ]
                )
                for result in results
            ]
        )

        self.logger.info(
            "Built search export",
            query=query,
            total_results=export.total_results,
            total_matches=export.total_matches
        )

        return export

    def build_state_statistics(self, state: PersistedState) -> StateStatistics:
        """Summarize stored state."""
        last_change_at = None
        total_changes = 0
        for records in state.history.values():
            total_changes += len(records)
            for record in records:
                if last_change_at is None or record.timestamp > last_change_at:
                    last_change_at = record.timestamp

        return StateStatistics(
            monitored_urls=len(state.monitored_urls),
            stored_snapshots=len(state.snapshots),
            total_changes=total_changes,
            last_change_at=last_change_at
        )

    def default_path(self, kind: str, extension: str, when: Optional[datetime] = None) -> Path:
        """Return ``<reports_dir>/<kind>-YYYY-MM-DD.<extension>``."""
        when = when or datetime.now(timezone.utc)
        return self.reports_dir / f"{kind}-{when.strftime('%Y-%m-%d')}.{extension}"

    def _prepare(self, path: Optional[Path], kind: str, extension: str) -> Path:
        filepath = Path(path) if path else self.default_path(kind, extension)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        return filepath

    def export_state_json(self, state: PersistedState, path: Optional[Path] = None) -> Path:
        """
        Export the full stored state to a JSON file.

        Args:
            state: State to export
            path: Target file (defaults to the reports directory)

        Returns:
            Path of the written file
        """
        filepath = self._prepare(path, "pagewatch-data", "json")
        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(state.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error("Failed to export state JSON", filepath=str(filepath), error=str(e))
            raise

        self.logger.info("Exported state JSON", filepath=str(filepath))
        return filepath

    def export_history_csv(self, state: PersistedState, path: Optional[Path] = None) -> Path:
        """
        Export the change history to a CSV file, one row per change record.

        Args:
            state: State whose history is exported
            path: Target file (defaults to the reports directory)

        Returns:
            Path of the written file
        """
        filepath = self._prepare(path, "pagewatch-history", "csv")
        rows = 0
        try:
            with open(filepath, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(CSV_HEADER)
                for url, records in state.history.items():
                    for record in records:
                        writer.writerow([
                            url,
                            record.timestamp.isoformat(),
                            "Content Change",
                            len(record.old_content),
                            len(record.new_content)
                        ])
                        rows += 1
        except OSError as e:
            self.logger.error("Failed to export history CSV", filepath=str(filepath), error=str(e))
            raise

        self.logger.info("Exported history CSV", filepath=str(filepath), rows=rows)
        return filepath

    def write_report(self, text: str, path: Optional[Path] = None) -> Path:
        """Write a search report to a text file."""
        filepath = self._prepare(path, "search-report", "txt")
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(text)
        self.logger.info("Wrote search report", filepath=str(filepath))
        return filepath

    def write_export(self, export: SearchExport, path: Optional[Path] = None) -> Path:
        """Write a search export to a JSON file."""
        filepath = self._prepare(path, "search-export", "json")
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(export.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        self.logger.info("Wrote search export", filepath=str(filepath))
        return filepath
