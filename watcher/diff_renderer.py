"""
Line-level diff rendering for change display.

The formatted mode uses a positional comparison: line i of the old content is
compared with line i of the new content, without realignment. A single
inserted line therefore marks every following line as changed.
"""

import re
from typing import List, Tuple

import structlog

from watcher.models import DiffLine, DiffMode, DiffResult, DiffSummary, DiffView, LineTag

logger = structlog.get_logger(__name__)

TAG_BOUNDARY_PATTERN = re.compile(r"(?<=>)\s*(?=<)")
WHITESPACE_PATTERN = re.compile(r"\s+")


def reflow(content: str) -> List[str]:
    """
    Split content into one line per tag boundary.

    Args:
        content: Normalized page content

    Returns:
        Non-empty lines with internal whitespace collapsed
    """
    lines = []
    for piece in TAG_BOUNDARY_PATTERN.split(content):
        line = WHITESPACE_PATTERN.sub(" ", piece).strip()
        if line:
            lines.append(line)
    return lines


def compare_lines(old_lines: List[str], new_lines: List[str]) -> Tuple[List[DiffLine], List[DiffLine]]:
    """Tag two line sequences position by position."""
    old_view = []
    for index, line in enumerate(old_lines):
        if index < len(new_lines) and new_lines[index] == line:
            old_view.append(DiffLine(text=line, tag=LineTag.UNCHANGED))
        else:
            old_view.append(DiffLine(text=line, tag=LineTag.REMOVED))

    new_view = []
    for index, line in enumerate(new_lines):
        if index < len(old_lines) and old_lines[index] == line:
            new_view.append(DiffLine(text=line, tag=LineTag.UNCHANGED))
        else:
            new_view.append(DiffLine(text=line, tag=LineTag.ADDED))

    return old_view, new_view


class DiffRenderer:
    """Renders old/new content views for display."""

    def __init__(self):
        self.logger = logger.bind(component="diff_renderer")

    def render_diff(
        self,
        old_content: str,
        new_content: str,
        mode: DiffMode = DiffMode.FORMATTED
    ) -> DiffResult:
        """
        Render a diff between two content strings.

        Args:
            old_content: Content before the change
            new_content: Content after the change
            mode: Formatted (tagged lines) or raw (verbatim, untagged)

        Returns:
            DiffResult with one view per side
        """
        mode = DiffMode(mode)

        if mode == DiffMode.RAW:
            return DiffResult(
                mode=mode,
                old_view=DiffView(text=old_content),
                new_view=DiffView(text=new_content)
            )

        old_lines, new_lines = compare_lines(reflow(old_content), reflow(new_content))
        summary = DiffSummary(
            unchanged=sum(1 for line in old_lines if line.tag == LineTag.UNCHANGED),
            removed=sum(1 for line in old_lines if line.tag == LineTag.REMOVED),
            added=sum(1 for line in new_lines if line.tag == LineTag.ADDED)
        )

        self.logger.debug(
            "Rendered diff",
            old_lines=len(old_lines),
            new_lines=len(new_lines),
            removed=summary.removed,
            added=summary.added
        )

        return DiffResult(
            mode=mode,
            old_view=DiffView(text=old_content, lines=old_lines),
            new_view=DiffView(text=new_content, lines=new_lines),
            summary=summary
        )


def render_diff(old_content: str, new_content: str, mode: DiffMode = DiffMode.FORMATTED) -> DiffResult:
    """Render a diff with a default renderer."""
    return DiffRenderer().render_diff(old_content, new_content, mode)
