"""
Tests for the state management command line.
"""

import pytest

from manage_state import parse_search_args, run_search, show_history


class TestParseSearchArgs:
    """Test cases for search flag parsing."""

    def test_query_only(self):
        query, options = parse_search_args(["price"])
        assert query == "price"
        assert options.use_regex is False

    def test_all_flags(self):
        query, options = parse_search_args([
            r"\d+", "--regex", "--case-sensitive", "--history-only",
            "--url", "https://a.test", "--days", "7"
        ])

        assert query == r"\d+"
        assert options.use_regex is True
        assert options.case_sensitive is True
        assert options.include_snapshots is False
        assert options.url_filter == "https://a.test"
        assert options.max_age_days == 7

    def test_missing_query(self):
        with pytest.raises(ValueError):
            parse_search_args([])

    def test_unknown_flag(self):
        with pytest.raises(ValueError):
            parse_search_args(["price", "--fuzzy"])


@pytest.mark.asyncio
async def test_search_and_history_output(service, capsys):
    await service.observe("https://a.test", "<p>price 1</p>")
    await service.observe("https://a.test", "<p>price 2</p>")

    run_search(service, "price", parse_search_args(["price"])[1])
    show_history(service)

    output = capsys.readouterr().out
    assert '3 matches in 3 results for "price"' in output
    assert "1 changes detected" in output
