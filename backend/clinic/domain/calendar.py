"""
Calendar date helpers.

Weekday and day-difference arithmetic is done on ``datetime.date`` values
built from the year/month/day a timestamp carries, never through a UTC
conversion, so a late-evening appointment never shifts to the next day.
"""

import re
from datetime import date, datetime, time
from typing import Union

from clinic.core.exceptions import ValidationError

DateLike = Union[date, datetime, str]

_DATE_PREFIX = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")


def to_calendar_date(value: DateLike) -> date:
    """Return the local calendar date of ``value``.

    Strings only need to start with ``YYYY-MM-DD``; whatever follows (a
    time, a ``T`` separator, an offset) is ignored. Aware datetimes keep
    their own wall-clock date.
    """
    if isinstance(value, datetime):
        return date(value.year, value.month, value.day)
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = _DATE_PREFIX.match(value)
        if match:
            year, month, day = (int(part) for part in match.groups())
            try:
                return date(year, month, day)
            except ValueError:
                pass
    raise ValidationError(
        "Invalid date, expected YYYY-MM-DD", {"value": str(value)}
    )


def parse_timestamp(value: Union[datetime, date, str]) -> datetime:
    """Parse a request timestamp into a naive local datetime.

    Accepts ``YYYY-MM-DD HH:MM[:SS]`` and ISO 8601 forms. An offset, when
    present, is dropped and the wall-clock time kept.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1]
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(
                "Invalid timestamp, expected YYYY-MM-DD HH:MM:SS", {"value": value}
            ) from None
    else:
        raise ValidationError("Timestamp is required", {"value": value})
    return parsed.replace(tzinfo=None)


def days_between(earlier: DateLike, later: DateLike) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative if reversed)."""
    return (to_calendar_date(later) - to_calendar_date(earlier)).days


def weekday_name(value: DateLike) -> str:
    """English weekday name, e.g. ``"Saturday"``."""
    return to_calendar_date(value).strftime("%A")
