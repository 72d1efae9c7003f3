"""Shared data models for rss_cache."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .dates import to_epoch_millis


@dataclass(frozen=True)
class NewsItem:
    """A single news entry parsed from an RSS <item>."""

    title: str
    description: str
    link: str
    category: str
    published: Optional[datetime]
    raw_pub_date: str = ""
    item_id: Optional[int] = None

    @property
    def has_valid_date(self) -> bool:
        return self.published is not None

    @property
    def published_millis(self) -> Optional[int]:
        if self.published is None:
            return None
        return to_epoch_millis(self.published)


@dataclass(frozen=True)
class IngestionState:
    """When the cache was last refreshed successfully."""

    last_ingested: Optional[datetime] = None

    def is_due(self, interval: timedelta, now: datetime) -> bool:
        """Return True when a new ingestion should run."""
        if self.last_ingested is None:
            return True
        return now - self.last_ingested >= interval


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of a completed ingestion."""

    items_stored: int
    invalid_dates: int
    timestamp: datetime
