"""Tests for the cache replacement policy and the ingestion sequence."""

import io
from datetime import datetime, timezone

import pytest

from rss_cache.cache import ingest
from rss_cache.exceptions import IngestionInProgressError, MalformedFeedError
from rss_cache.models import NewsItem

T0 = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)


def _item_xml(title, pub_date="Tue, 3 Jun 2008 11:05:30 GMT", link=None):
    link = link or f"https://example.com/{title.lower()}"
    return (
        f"<item><title>{title}</title><description>About {title}</description>"
        f"<link>{link}</link><category>News</category>"
        f"<pubDate>{pub_date}</pubDate></item>"
    )


def _feed(*items):
    return (
        "<?xml version='1.0' encoding='utf-8'?><rss version='2.0'><channel>"
        "<title>ETSIT</title>" + "".join(items) + "</channel></rss>"
    ).encode("utf-8")


def _news_item(title, published=T0):
    return NewsItem(
        title=title,
        description="",
        link="https://example.com",
        category="",
        published=published,
        raw_pub_date="",
    )


def test_ingest_stores_every_item_and_records_time(cache):
    document = _feed(
        _item_xml("Old", "Mon, 2 Jun 2008 10:00:00 GMT"),
        _item_xml("New", "Wed, 4 Jun 2008 10:00:00 GMT"),
        _item_xml("Middle", "Tue, 3 Jun 2008 10:00:00 GMT"),
    )

    result = ingest(io.BytesIO(document), cache, clock=lambda: T1)

    assert result.items_stored == 3
    assert result.invalid_dates == 0
    assert result.timestamp == T1
    assert cache.count() == 3
    assert cache.state().last_ingested == T1
    assert [item.title for item in cache.items()] == ["New", "Middle", "Old"]


def test_stored_items_round_trip_through_the_cache(cache):
    ingest(io.BytesIO(_feed(_item_xml("Only"))), cache, clock=lambda: T1)

    (item,) = cache.items()

    assert item.item_id is not None
    assert item.title == "Only"
    assert item.description == "About Only"
    assert item.link == "https://example.com/only"
    assert item.category == "News"
    assert item.published_millis == 1212491130000
    assert cache.get_item(item.item_id) == item


def test_ingesting_twice_replaces_the_previous_generation(cache):
    document = _feed(_item_xml("A"), _item_xml("B"))

    ingest(io.BytesIO(document), cache, clock=lambda: T1)
    assert cache.state().last_ingested == T1

    ingest(io.BytesIO(document), cache, clock=lambda: T2)

    assert cache.count() == 2
    assert sorted(item.title for item in cache.items()) == ["A", "B"]
    assert cache.state().last_ingested == T2


def test_duplicate_items_are_kept_in_document_order(cache):
    document = _feed(_item_xml("Same"), _item_xml("Same"))

    ingest(io.BytesIO(document), cache, clock=lambda: T1)

    items = cache.items()
    assert len(items) == 2
    assert items[0].item_id < items[1].item_id


def test_malformed_feed_keeps_stored_items_and_old_timestamp(cache):
    ingest(io.BytesIO(_feed(_item_xml("Previous"))), cache, clock=lambda: T0)

    document = _feed(_item_xml("A"), _item_xml("B"), _item_xml("C"))
    truncated = document[: document.index(b"</channel>")] + b"<item><title>Broken"

    with pytest.raises(MalformedFeedError):
        ingest(io.BytesIO(truncated), cache, clock=lambda: T1)

    assert cache.count() == 3
    assert sorted(item.title for item in cache.items()) == ["A", "B", "C"]
    assert cache.state().last_ingested == T0


def test_stream_failure_keeps_stored_items_and_old_timestamp(cache):
    ingest(io.BytesIO(_feed(_item_xml("Previous"))), cache, clock=lambda: T0)

    document = _feed(_item_xml("A"), _item_xml("B"), _item_xml("C"))
    first_chunk = document[: document.index(b"<item><title>C")]

    class DroppingStream:
        def __init__(self):
            self.calls = 0

        def read(self, size=-1):
            self.calls += 1
            if self.calls == 1:
                return first_chunk
            raise OSError("connection reset by peer")

    with pytest.raises(OSError):
        ingest(DroppingStream(), cache, clock=lambda: T1, chunk_size=len(document))

    assert sorted(item.title for item in cache.items()) == ["A", "B"]
    assert cache.state().last_ingested == T0


def test_invalid_dates_are_stored_flagged(cache):
    document = _feed(
        _item_xml("Undated", "not-a-date"),
        _item_xml("Dated"),
    )

    result = ingest(io.BytesIO(document), cache, clock=lambda: T1)

    assert result.items_stored == 2
    assert result.invalid_dates == 1
    assert cache.state().last_ingested == T1

    dated, undated = cache.items()
    assert dated.title == "Dated"
    assert undated.title == "Undated"
    assert undated.published is None
    assert undated.raw_pub_date == "not-a-date"


def test_missing_description_is_stored_as_empty(cache):
    document = _feed(
        "<item><title>No body</title>"
        "<link>https://example.com</link>"
        "<pubDate>Tue, 3 Jun 2008 11:05:30 GMT</pubDate></item>"
    )

    ingest(io.BytesIO(document), cache, clock=lambda: T1)

    (item,) = cache.items()
    assert item.description == ""
    assert item.category == ""


def test_unexpected_error_rolls_back_to_previous_generation(cache):
    ingest(io.BytesIO(_feed(_item_xml("Kept"))), cache, clock=lambda: T0)

    with pytest.raises(RuntimeError):
        with cache.ingestion():
            cache.begin_ingestion()
            cache.store(_news_item("Lost"))
            raise RuntimeError("disk full")

    assert [item.title for item in cache.items()] == ["Kept"]
    assert cache.state().last_ingested == T0


def test_concurrent_ingestion_is_rejected(cache):
    with cache.ingestion():
        with pytest.raises(IngestionInProgressError):
            with cache.ingestion():
                pass

    with cache.ingestion():
        cache.begin_ingestion()


def test_writes_require_an_open_ingestion(cache):
    with pytest.raises(RuntimeError):
        cache.store(_news_item("Orphan"))
    with pytest.raises(RuntimeError):
        cache.begin_ingestion()
    with pytest.raises(RuntimeError):
        cache.record_ingestion_time(T1)


def test_manual_ingestion_sequence(cache):
    with cache.ingestion():
        cache.begin_ingestion()
        first = cache.store(_news_item("One"))
        second = cache.store(_news_item("Two", published=None))
        cache.record_ingestion_time(T2)

    assert second > first
    assert cache.get_item(first).title == "One"
    assert cache.get_item(second).published is None
    assert cache.state().last_ingested == T2


def test_read_helpers_on_empty_cache(cache):
    assert cache.items() == []
    assert cache.count() == 0
    assert cache.get_item(1) is None
    assert cache.state().last_ingested is None


def test_items_limit(cache):
    document = _feed(*[_item_xml(f"Item{i}") for i in range(5)])
    ingest(io.BytesIO(document), cache, clock=lambda: T1)

    assert len(cache.items(limit=2)) == 2


@pytest.mark.parametrize(
    "pub_date",
    ["Mon, 1 Jan 0001 00:30:00 +0100", "Fri, 31 Dec 9999 23:30:00 -0100"],
)
def test_out_of_range_dates_do_not_abort_ingestion(cache, pub_date):
    document = _feed(_item_xml("Edge", pub_date), _item_xml("Normal"))

    result = ingest(io.BytesIO(document), cache, clock=lambda: T1)

    assert result.items_stored == 2
    assert result.invalid_dates == 1
    assert cache.state().last_ingested == T1
    normal, edge = cache.items()
    assert normal.title == "Normal"
    assert edge.title == "Edge"
    assert edge.published is None
    assert edge.raw_pub_date == pub_date
