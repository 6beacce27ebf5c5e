"""
Exception classes for the watcher package.

All exceptions inherit from :class:`WatcherError` so callers can catch a single
base class while still distinguishing individual failures.
"""

from typing import List, Optional


class WatcherError(Exception):
    """Base exception for page watcher failures."""


class EmptyContentError(WatcherError):
    """Raised when a check delivers no content to observe."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No content received for {url}")


class InvalidPatternError(WatcherError):
    """Raised when a search query cannot be compiled."""


class NotFoundError(WatcherError):
    """Raised when a requested URL history or change entry does not exist."""


class InvalidUrlError(WatcherError):
    """Raised when a monitored URL update contains invalid entries."""

    def __init__(self, invalid_urls: List[str]):
        self.invalid_urls = list(invalid_urls)
        super().__init__(f"Invalid URLs found: {', '.join(self.invalid_urls)}")


class StateStoreError(WatcherError):
    """Raised when persisted state cannot be loaded or saved."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)
