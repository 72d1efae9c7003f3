"""Database layer for the cached news items and ingestion settings."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.sql import Select

logger = logging.getLogger(__name__)

# Bump when the news table layout changes; the cached rows are then discarded.
SCHEMA_VERSION = 2

LAST_UPDATED_KEY = "last_updated"
SCHEMA_VERSION_KEY = "schema_version"


class Base(DeclarativeBase):
    pass


class NewsItemModel(Base):
    """One cached feed item."""

    __tablename__ = "news"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    link = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    pub_date = Column(BigInteger, nullable=False)
    pub_date_valid = Column(Boolean, nullable=False)
    raw_pub_date = Column(Text, nullable=False, default="")


# Mirrors the ORDER BY of listing_query; the trailing rowid gives the id tiebreak.
Index(
    "ix_news_listing",
    NewsItemModel.__table__.c.pub_date_valid.desc(),
    NewsItemModel.__table__.c.pub_date.desc(),
)


class SettingModel(Base):
    """Durable key/value settings."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


def listing_query(limit: Optional[int] = None) -> Select:
    """Select cached items newest first, undated items last, ties in insertion order."""
    stmt = select(NewsItemModel).order_by(
        NewsItemModel.pub_date_valid.desc(),
        NewsItemModel.pub_date.desc(),
        NewsItemModel.id,
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def get_setting(session: Session, key: str) -> Optional[str]:
    """Return a stored setting value, or None when unset."""
    stmt = select(SettingModel).where(SettingModel.key == key)
    result = session.execute(stmt).scalar_one_or_none()
    return result.value if result else None


def put_setting(session: Session, key: str, value: str) -> None:
    """Insert or update a setting without committing."""
    stmt = select(SettingModel).where(SettingModel.key == key)
    existing = session.execute(stmt).scalar_one_or_none()
    if existing:
        existing.value = value
    else:
        session.add(SettingModel(key=key, value=value))


def _migrate(engine: Engine) -> None:
    with Session(engine) as session:
        stored = get_setting(session, SCHEMA_VERSION_KEY)

    if stored == str(SCHEMA_VERSION):
        return

    if stored is not None:
        # The table only mirrors the online feed, so upgrading means starting over.
        logger.info(
            "Cache schema version %s differs from %d; recreating news table",
            stored,
            SCHEMA_VERSION,
        )
        NewsItemModel.__table__.drop(engine, checkfirst=True)
        NewsItemModel.__table__.create(engine)

    with Session(engine) as session:
        put_setting(session, SCHEMA_VERSION_KEY, str(SCHEMA_VERSION))
        if stored is not None:
            # An emptied cache must be refilled on the next run.
            session.execute(delete(SettingModel).where(SettingModel.key == LAST_UPDATED_KEY))
        try:
            session.commit()
        except Exception:
            session.rollback()
            raise


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine and make sure the schema is current."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    _migrate(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)
