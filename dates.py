"""Lenient parsing of client supplied date/time strings.

Three shapes are accepted, tried in this order:

- ``yyyy-MM-dd'T'HH:mm:ss.SSS`` (any 1-6 digit fraction)
- ``yyyy-MM-dd'T'HH:mm:ss``
- ``yyyy-MM-dd`` (midnight of that day)

Everything is naive local time.
"""
import re
from datetime import date, datetime
from typing import Optional, Union

from errors import DateFormatError

ACCEPTED_PATTERNS = (
    "yyyy-MM-dd",
    "yyyy-MM-dd'T'HH:mm:ss",
    "yyyy-MM-dd'T'HH:mm:ss.SSS",
)

_SHAPES = (
    (re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{1,6}"), "%Y-%m-%dT%H:%M:%S.%f"),
    (re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"), "%Y-%m-%dT%H:%M:%S"),
    (re.compile(r"\d{4}-\d{2}-\d{2}"), "%Y-%m-%d"),
)


def parse_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if not isinstance(value, str):
        raise DateFormatError(repr(value), ACCEPTED_PATTERNS)

    text = value.strip()
    if not text:
        return None

    for pattern, fmt in _SHAPES:
        if pattern.fullmatch(text):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                # right shape, impossible calendar value (e.g. month 13)
                break
    raise DateFormatError(text, ACCEPTED_PATTERNS)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()
