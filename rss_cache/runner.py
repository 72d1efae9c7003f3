"""High-level orchestration for the rss_cache application."""

from __future__ import annotations

import contextlib
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import IO, Iterator, Optional

from . import db
from .cache import FeedCache, ingest
from .config import STDIN_FEED
from .models import IngestionResult, IngestionState
from .parser import DEFAULT_CHUNK_SIZE
from .renderers import build_items_text

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Runtime options for executing the application."""

    feed: str
    connection_string: str
    refresh_interval_minutes: float = 60.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    display_limit: Optional[int] = 20
    force: bool = False
    show_only: bool = False


@dataclass
class RunResult:
    """Returned data after executing the app."""

    output_text: str
    ingestion: Optional[IngestionResult]
    state: IngestionState


@contextlib.contextmanager
def _open_feed(feed: str) -> Iterator[IO[bytes]]:
    if feed == STDIN_FEED:
        yield sys.stdin.buffer
        return

    location = Path(feed)
    if not location.exists():
        raise FileNotFoundError(f"Feed file not found: {location}")
    with location.open("rb") as stream:
        yield stream


def build_cache(connection_string: str) -> FeedCache:
    engine = db.init_engine(connection_string)
    if engine is None:
        raise RuntimeError("A database connection string is required.")
    return FeedCache(db.get_session_factory(engine))


def execute(config: RunConfig, cache: Optional[FeedCache] = None) -> RunResult:
    """Refresh the cache when due and render its contents."""
    if cache is None:
        cache = build_cache(config.connection_string)

    state = cache.state()
    result: Optional[IngestionResult] = None
    now = datetime.now(timezone.utc)
    interval = timedelta(minutes=config.refresh_interval_minutes)

    if config.show_only:
        logger.info("Skipping ingestion; showing cached items only")
    elif config.force or state.is_due(interval, now):
        logger.info("Ingesting feed from %s", config.feed)
        with _open_feed(config.feed) as stream:
            result = ingest(stream, cache, chunk_size=config.chunk_size)
        state = cache.state()
    else:
        logger.info(
            "Cache refreshed at %s; next refresh due after %s",
            state.last_ingested,
            state.last_ingested + interval,
        )

    items = cache.items(limit=config.display_limit)
    return RunResult(
        output_text=build_items_text(items, state),
        ingestion=result,
        state=state,
    )
