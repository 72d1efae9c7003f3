"""Error types raised by the feed ingestion pipeline."""

from __future__ import annotations

from typing import Optional, Tuple


class FeedError(Exception):
    """Base class for feed ingestion failures."""


class MalformedFeedError(FeedError):
    """Raised when the feed document is not well-formed XML."""

    def __init__(self, message: str, position: Optional[Tuple[int, int]] = None):
        super().__init__(message)
        self.position = position


class DateParseError(FeedError, ValueError):
    """Raised when a pubDate value does not match the expected layout."""


class IngestionInProgressError(FeedError):
    """Raised when an ingestion is attempted while another one is running."""
