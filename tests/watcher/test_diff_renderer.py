"""
Tests for diff rendering.
"""

from watcher.diff_renderer import DiffRenderer, compare_lines, reflow, render_diff
from watcher.models import DiffMode, LineTag


class TestReflow:
    """Test cases for line reflow."""

    def test_splits_on_tag_boundaries(self):
        assert reflow("<p>A</p><p>B</p>") == ["<p>A</p>", "<p>B</p>"]

    def test_whitespace_between_tags_is_dropped(self):
        assert reflow("<ul>\n  <li>one</li>  <li>two</li>\n</ul>") == [
            "<ul>", "<li>one</li>", "<li>two</li>", "</ul>"
        ]

    def test_text_inside_tags_is_kept_together(self):
        assert reflow("<p>hello   world</p>") == ["<p>hello world</p>"]

    def test_empty_content(self):
        assert reflow("") == []
        assert reflow("   ") == []


class TestDiffRenderer:
    """Test cases for DiffRenderer."""

    def test_formatted_diff_scenario(self):
        result = render_diff("<p>A</p><p>B</p>", "<p>A</p><p>C</p>")

        assert result.mode == DiffMode.FORMATTED
        assert [(line.text, line.tag) for line in result.old_view.lines] == [
            ("<p>A</p>", LineTag.UNCHANGED),
            ("<p>B</p>", LineTag.REMOVED),
        ]
        assert [(line.text, line.tag) for line in result.new_view.lines] == [
            ("<p>A</p>", LineTag.UNCHANGED),
            ("<p>C</p>", LineTag.ADDED),
        ]
        assert result.summary.unchanged == 1
        assert result.summary.removed == 1
        assert result.summary.added == 1

    def test_identical_content(self):
        result = render_diff("<p>A</p>", "<p>A</p>")
        assert all(line.tag == LineTag.UNCHANGED for line in result.old_view.lines + result.new_view.lines)
        assert result.summary.removed == 0
        assert result.summary.added == 0

    def test_positional_comparison_does_not_realign(self):
        old_lines, new_lines = compare_lines(["a", "b"], ["x", "a", "b"])

        assert [line.tag for line in old_lines] == [LineTag.REMOVED, LineTag.REMOVED]
        assert [line.tag for line in new_lines] == [LineTag.ADDED, LineTag.ADDED, LineTag.ADDED]

    def test_extra_trailing_lines(self):
        old_lines, new_lines = compare_lines(["a"], ["a", "b"])

        assert [line.tag for line in old_lines] == [LineTag.UNCHANGED]
        assert [line.tag for line in new_lines] == [LineTag.UNCHANGED, LineTag.ADDED]

    def test_raw_mode_returns_verbatim_text(self):
        old = "<p>A</p>\n<p>B</p>"
        new = "<p>A</p>\n<p>C</p>"
        result = DiffRenderer().render_diff(old, new, DiffMode.RAW)

        assert result.mode == DiffMode.RAW
        assert result.old_view.text == old
        assert result.new_view.text == new
        assert result.old_view.lines == []
        assert result.new_view.lines == []

    def test_mode_accepts_string_value(self):
        assert render_diff("a", "b", "raw").mode == DiffMode.RAW

    def test_formatted_views_keep_original_text(self):
        result = render_diff("<p>A</p> <p>B</p>", "<p>A</p>")
        assert result.old_view.text == "<p>A</p> <p>B</p>"
        assert result.new_view.text == "<p>A</p>"
