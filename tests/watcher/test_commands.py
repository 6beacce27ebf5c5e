"""
Tests for command parsing.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from watcher.commands import (
    CheckNowCommand, ClearAllStateCommand, ObserveCommand, RenderChangeDiffCommand,
    SearchCommand, SetMonitoredUrlsCommand, parse_command
)
from watcher.models import DiffMode


class TestParseCommand:
    """Test cases for parse_command."""

    def test_observe(self):
        command = parse_command({"type": "observe", "url": "https://a.test", "content": "<p>x</p>"})
        assert isinstance(command, ObserveCommand)
        assert command.content == "<p>x</p>"

    def test_commands_without_fields(self):
        assert isinstance(parse_command({"type": "check_now"}), CheckNowCommand)
        assert isinstance(parse_command({"type": "clear_all_state"}), ClearAllStateCommand)

    def test_search_with_options(self):
        command = parse_command({
            "type": "search",
            "query": "price",
            "options": {"use_regex": True, "max_age_days": 7}
        })

        assert isinstance(command, SearchCommand)
        assert command.options.use_regex is True
        assert command.options.max_age_days == 7
        assert command.options.include_snapshots is True

    def test_set_monitored_urls(self):
        command = parse_command({"type": "set_monitored_urls", "urls": ["https://a.test"]})
        assert isinstance(command, SetMonitoredUrlsCommand)
        assert command.urls == ["https://a.test"]

    def test_render_change_diff_parses_timestamp(self):
        command = parse_command({
            "type": "render_change_diff",
            "url": "https://a.test",
            "timestamp": "2024-01-15T12:00:00Z",
            "mode": "raw"
        })

        assert isinstance(command, RenderChangeDiffCommand)
        assert command.timestamp == datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        assert command.mode == DiffMode.RAW

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            parse_command({"type": "reboot"})

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            parse_command({"type": "search"})

    def test_invalid_option_value(self):
        with pytest.raises(ValidationError):
            parse_command({"type": "search", "query": "x", "options": {"max_age_days": 0}})

    def test_default_type_on_construction(self):
        assert ObserveCommand(url="https://a.test").type == "observe"
