import pytest

from rss_cache import db
from rss_cache.cache import FeedCache


@pytest.fixture
def engine(tmp_path):
    """A file-backed SQLite engine, so separate sessions see committed data only."""
    engine = db.init_engine(f"sqlite:///{tmp_path / 'rss.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def cache(engine):
    return FeedCache(db.get_session_factory(engine))
