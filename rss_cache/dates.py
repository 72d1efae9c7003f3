"""Parsing of RSS pubDate values.

Feeds publish dates in the RFC-822 style layout ``EEE, d MMM yyyy HH:mm:ss z``
(``Tue, 3 Jun 2008 11:05:30 GMT``). Only that layout is accepted; names are
English regardless of the process locale.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from .exceptions import DateParseError

_PUB_DATE_RE = re.compile(
    r"^(?P<weekday>[A-Za-z]+), (?P<day>\d{1,2}) (?P<month>[A-Za-z]+) "
    r"(?P<year>\d{4}) (?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2}) "
    r"(?P<zone>\S+)$"
)
_NUMERIC_ZONE_RE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2})(?P<minutes>\d{2})$")
_GMT_OFFSET_RE = re.compile(
    r"^(?:GMT|UTC)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$"
)

_WEEKDAYS = {
    name
    for pair in (
        ("mon", "monday"),
        ("tue", "tuesday"),
        ("wed", "wednesday"),
        ("thu", "thursday"),
        ("fri", "friday"),
        ("sat", "saturday"),
        ("sun", "sunday"),
    )
    for name in pair
}

_MONTHS = {}
for _number, _name in enumerate(
    (
        "january",
        "february",
        "march",
        "april",
        "may",
        "june",
        "july",
        "august",
        "september",
        "october",
        "november",
        "december",
    ),
    start=1,
):
    _MONTHS[_name] = _number
    _MONTHS[_name[:3]] = _number

# Offsets in hours.
_NAMED_ZONES = {
    "GMT": 0,
    "UTC": 0,
    "UT": 0,
    "Z": 0,
    "WET": 0,
    "WEST": 1,
    "BST": 1,
    "CET": 1,
    "CEST": 2,
    "EET": 2,
    "EEST": 3,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _zone_offset(zone: str) -> Optional[timedelta]:
    hours = _NAMED_ZONES.get(zone.upper())
    if hours is not None:
        return timedelta(hours=hours)

    match = _NUMERIC_ZONE_RE.match(zone) or _GMT_OFFSET_RE.match(zone.upper())
    if not match:
        return None
    offset = timedelta(
        hours=int(match.group("hours")), minutes=int(match.group("minutes") or 0)
    )
    if offset >= timedelta(hours=24):
        return None
    return -offset if match.group("sign") == "-" else offset


def parse_pub_date(value: Optional[str]) -> datetime:
    """Parse a pubDate string into a timezone-aware UTC datetime.

    Raises DateParseError when the value does not follow the expected layout
    or names a date that does not exist.
    """
    if not value:
        raise DateParseError("Missing publication date")

    match = _PUB_DATE_RE.match(value)
    if not match:
        raise DateParseError(f"Unrecognised publication date: {value!r}")

    if match.group("weekday").lower() not in _WEEKDAYS:
        raise DateParseError(f"Unknown weekday in publication date: {value!r}")

    month = _MONTHS.get(match.group("month").lower())
    if month is None:
        raise DateParseError(f"Unknown month in publication date: {value!r}")

    offset = _zone_offset(match.group("zone"))
    if offset is None:
        raise DateParseError(f"Unknown time zone in publication date: {value!r}")

    try:
        local = datetime(
            int(match.group("year")),
            month,
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
            tzinfo=timezone(offset),
        )
        return local.astimezone(timezone.utc)
    except (ValueError, OverflowError) as exc:
        raise DateParseError(f"Invalid publication date {value!r}: {exc}") from exc


def to_epoch_millis(value: datetime) -> int:
    """Convert an aware datetime to milliseconds since the Unix epoch."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_millis(value: int) -> datetime:
    """Convert milliseconds since the Unix epoch to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)
