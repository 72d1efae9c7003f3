"""Streaming RSS parser producing NewsItem records."""

from __future__ import annotations

import enum
import logging
from typing import IO, Dict, Iterator, List, Optional
from xml.etree import ElementTree as ET

from .dates import parse_pub_date
from .exceptions import DateParseError, MalformedFeedError
from .models import NewsItem

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
ITEM_TAG = "item"

# Default namespaces used by RSS 0.90 and RSS 1.0 documents.
_RSS_NAMESPACES = {
    "http://purl.org/rss/1.0/",
    "http://my.netscape.com/rdf/simple/0.9/",
}


class CurrentField(enum.Enum):
    """The item field whose text is currently being read."""

    TITLE = "title"
    DESCRIPTION = "description"
    LINK = "link"
    CATEGORY = "category"
    PUB_DATE = "pubDate"


_FIELDS_BY_TAG = {field.value: field for field in CurrentField}


def normalize_text(value: str) -> str:
    """Drop every character that is neither whitespace nor printable."""
    return "".join(ch for ch in value if ch.isspace() or ch.isprintable())


def local_name(tag: str) -> Optional[str]:
    """Return the unqualified tag name, or None for foreign namespaces."""
    if not tag.startswith("{"):
        return tag
    namespace, _, name = tag[1:].partition("}")
    if namespace in _RSS_NAMESPACES:
        return name
    return None


def _malformed(exc: ET.ParseError) -> MalformedFeedError:
    position = getattr(exc, "position", None)
    if position:
        message = f"Malformed feed at line {position[0]}, column {position[1]}: {exc}"
    else:
        message = f"Malformed feed: {exc}"
    return MalformedFeedError(message, position=position)


class FeedParser:
    """Single-pass iterator over the items of an RSS document.

    The stream is read in chunks and fed to an incremental XML parser, so the
    whole document is never held in memory. Each completed ``<item>`` is
    detached from the partial tree as soon as it has been turned into a
    NewsItem.

    The start_tag/text/end_tag methods form the event-level state machine and
    can be driven directly.
    """

    def __init__(self, stream: IO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive.")
        self._stream = stream
        self._chunk_size = chunk_size
        self._current: Optional[CurrentField] = None
        # Elements opened inside the current field that are still open.
        self._nested = 0
        self._pending: Dict[CurrentField, str] = {}
        self._in_item = False
        self.items_parsed = 0
        self.invalid_dates = 0
        self._items = self._iter_items()

    def __iter__(self) -> Iterator[NewsItem]:
        return self

    def __next__(self) -> NewsItem:
        return next(self._items)

    @property
    def current_field(self) -> Optional[CurrentField]:
        return self._current

    def start_tag(self, name: str) -> None:
        if self._current is not None:
            self._nested += 1
            return
        if name == ITEM_TAG:
            self._reset()
            self._in_item = True
            return
        if not self._in_item:
            return
        field = _FIELDS_BY_TAG.get(name)
        if field is not None:
            self._current = field

    def text(self, value: str) -> None:
        if self._current is not None:
            self._pending[self._current] = value.strip()

    def end_tag(self, name: str) -> Optional[NewsItem]:
        if self._nested:
            self._nested -= 1
            return None
        if name == ITEM_TAG:
            if not self._in_item:
                return None
            item = self._finalize()
            self._reset()
            return item

        if _FIELDS_BY_TAG.get(name) is self._current:
            self._current = None
        return None

    def _reset(self) -> None:
        self._current = None
        self._nested = 0
        self._pending = {}
        self._in_item = False

    def _finalize(self) -> NewsItem:
        title = self._pending.get(CurrentField.TITLE)
        if title is None:
            logger.warning("Feed item without <title>; using an empty title")
            title = ""

        raw_date = self._pending.get(CurrentField.PUB_DATE, "")
        try:
            published = parse_pub_date(raw_date)
        except DateParseError as exc:
            logger.warning("Item '%s' has no usable publication date: %s", title, exc)
            published = None
            self.invalid_dates += 1

        self.items_parsed += 1
        return NewsItem(
            title=normalize_text(title),
            description=normalize_text(self._pending.get(CurrentField.DESCRIPTION, "")),
            link=self._pending.get(CurrentField.LINK, ""),
            category=self._pending.get(CurrentField.CATEGORY, ""),
            published=published,
            raw_pub_date=raw_date,
        )

    def _iter_items(self) -> Iterator[NewsItem]:
        pull = ET.XMLPullParser(events=("start", "end"))
        open_elements: List[ET.Element] = []

        while True:
            chunk = self._stream.read(self._chunk_size)
            if not chunk:
                break
            try:
                pull.feed(chunk)
            except ET.ParseError as exc:
                raise _malformed(exc) from exc
            yield from self._drain(pull, open_elements)

        try:
            pull.close()
        except ET.ParseError as exc:
            raise _malformed(exc) from exc
        yield from self._drain(pull, open_elements)

        logger.debug(
            "Feed parsed: %d items, %d without a valid date",
            self.items_parsed,
            self.invalid_dates,
        )

    def _drain(
        self, pull: ET.XMLPullParser, open_elements: List[ET.Element]
    ) -> Iterator[NewsItem]:
        try:
            for event, element in pull.read_events():
                if event == "start":
                    open_elements.append(element)
                    name = local_name(element.tag)
                    if name is not None:
                        self.start_tag(name)
                    continue

                open_elements.pop()
                name = local_name(element.tag)
                if name is None:
                    continue
                if (
                    self._current is not None
                    and not self._nested
                    and _FIELDS_BY_TAG.get(name) is self._current
                ):
                    self.text("".join(element.itertext()))

                item = self.end_tag(name)
                if item is not None:
                    if open_elements:
                        open_elements[-1].remove(element)
                    yield item
        except ET.ParseError as exc:
            raise _malformed(exc) from exc
