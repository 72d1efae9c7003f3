"""Local cache of feed items and the ingestion sequence that refreshes it."""

from __future__ import annotations

import contextlib
import logging
import threading
from datetime import datetime, timezone
from typing import IO, Callable, Iterator, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from . import db
from .dates import from_epoch_millis, to_epoch_millis
from .exceptions import IngestionInProgressError, MalformedFeedError
from .models import IngestionResult, IngestionState, NewsItem
from .parser import DEFAULT_CHUNK_SIZE, FeedParser

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_item(row: db.NewsItemModel) -> NewsItem:
    return NewsItem(
        title=row.title,
        description=row.description,
        link=row.link,
        category=row.category,
        published=from_epoch_millis(row.pub_date) if row.pub_date_valid else None,
        raw_pub_date=row.raw_pub_date,
        item_id=row.id,
    )


class FeedCache:
    """Stores exactly one generation of feed items.

    Writes happen inside ``ingestion()``, which wraps begin_ingestion, the
    stores and record_ingestion_time in one database transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._session: Optional[Session] = None

    @contextlib.contextmanager
    def ingestion(self) -> Iterator["FeedCache"]:
        """Open the transaction for a new cache generation.

        A feed that turns out to be malformed, or a stream that fails, still
        commits the items stored so far; record_ingestion_time will not have
        run, so the next refresh remains due. Any other error rolls back.
        """
        if not self._lock.acquire(blocking=False):
            raise IngestionInProgressError("An ingestion is already running.")

        session = self._session_factory()
        self._session = session
        try:
            yield self
            session.commit()
        except (MalformedFeedError, OSError):
            session.commit()
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            self._session = None
            session.close()
            self._lock.release()

    def _writer(self) -> Session:
        if self._session is None:
            raise RuntimeError("Cache writes require an open ingestion().")
        return self._session

    def begin_ingestion(self) -> None:
        """Delete every stored item."""
        session = self._writer()
        result = session.execute(delete(db.NewsItemModel))
        logger.debug("Removed %d items of the previous generation", result.rowcount)

    def store(self, item: NewsItem) -> int:
        """Append one item and return its row id."""
        session = self._writer()
        published = item.published_millis
        row = db.NewsItemModel(
            title=item.title,
            description=item.description,
            link=item.link,
            category=item.category,
            pub_date=published if published is not None else 0,
            pub_date_valid=published is not None,
            raw_pub_date=item.raw_pub_date,
        )
        session.add(row)
        session.flush()
        return row.id

    def record_ingestion_time(self, timestamp: datetime) -> None:
        session = self._writer()
        db.put_setting(session, db.LAST_UPDATED_KEY, str(to_epoch_millis(timestamp)))

    def state(self) -> IngestionState:
        with self._session_factory() as session:
            value = db.get_setting(session, db.LAST_UPDATED_KEY)
        if value is None:
            return IngestionState()
        return IngestionState(last_ingested=from_epoch_millis(int(value)))

    def items(self, limit: Optional[int] = None) -> List[NewsItem]:
        """Return cached items, newest first; undated items come last."""
        stmt = db.listing_query(limit)
        with self._session_factory() as session:
            return [_to_item(row) for row in session.execute(stmt).scalars()]

    def get_item(self, item_id: int) -> Optional[NewsItem]:
        with self._session_factory() as session:
            row = session.get(db.NewsItemModel, item_id)
            return _to_item(row) if row else None

    def count(self) -> int:
        with self._session_factory() as session:
            return session.execute(
                select(func.count()).select_from(db.NewsItemModel)
            ).scalar_one()


def ingest(
    stream: IO,
    cache: FeedCache,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IngestionResult:
    """Replace the cached items with those parsed from ``stream``.

    MalformedFeedError and OSError propagate to the caller; in that case the
    ingestion time is left untouched.
    """
    clock = clock or _utcnow
    parser = FeedParser(stream, chunk_size=chunk_size)
    stored = 0

    with cache.ingestion():
        cache.begin_ingestion()
        try:
            for item in parser:
                cache.store(item)
                stored += 1
        except MalformedFeedError:
            logger.warning("Feed parsing aborted after %d items", stored)
            raise

        timestamp = clock()
        cache.record_ingestion_time(timestamp)

    logger.info(
        "Ingested %d items (%d without a valid date)", stored, parser.invalid_dates
    )
    return IngestionResult(
        items_stored=stored,
        invalid_dates=parser.invalid_dates,
        timestamp=timestamp,
    )
