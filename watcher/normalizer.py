"""
Content normalization for stable change detection.

Pages embed render timestamps, scripts and comments that change on every
load. Normalization removes or masks them so that two fetches of an unchanged
page produce identical text.
"""

import re

import structlog

logger = structlog.get_logger(__name__)

TIMESTAMP_PLACEHOLDER = "[TIMESTAMP]"

SCRIPT_PATTERN = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
STYLE_PATTERN = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)
EPOCH_ATTRIBUTE_PATTERN = re.compile(r'\b(timestamp|data-time)="\d+"')
ISO_TIMESTAMP_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?"
)
WHITESPACE_PATTERN = re.compile(r"\s+")


class ContentNormalizer:
    """Strips volatile substrings from raw page content."""

    def __init__(self, placeholder: str = TIMESTAMP_PLACEHOLDER):
        """
        Initialize the normalizer.

        Args:
            placeholder: Token substituted for timestamps
        """
        self.placeholder = placeholder
        self.logger = logger.bind(component="normalizer")

    def normalize(self, raw_html: str) -> str:
        """
        Normalize raw HTML for comparison.

        Removals repeat until nothing changes, since deleting one element can
        join its neighbours into a new one. Placeholders are substituted
        before whitespace is collapsed so that normalizing an already
        normalized string is a no-op.

        Args:
            raw_html: Raw page content

        Returns:
            Normalized content
        """
        if not raw_html:
            return ""

        content = self._strip_volatile_elements(raw_html)
        content = EPOCH_ATTRIBUTE_PATTERN.sub(rf'\1="{self.placeholder}"', content)
        content = ISO_TIMESTAMP_PATTERN.sub(self.placeholder, content)
        content = WHITESPACE_PATTERN.sub(" ", content)
        content = content.strip()

        self.logger.debug(
            "Normalized content",
            raw_length=len(raw_html),
            normalized_length=len(content)
        )

        return content

    @staticmethod
    def _strip_volatile_elements(content: str) -> str:
        """Remove scripts, styles and comments until a fixed point is reached."""
        while True:
            stripped = SCRIPT_PATTERN.sub("", content)
            stripped = STYLE_PATTERN.sub("", stripped)
            stripped = COMMENT_PATTERN.sub("", stripped)
            if stripped == content:
                return stripped
            content = stripped


def normalize(raw_html: str) -> str:
    """Normalize content with the default placeholder."""
    return ContentNormalizer().normalize(raw_html)
