from datetime import date, datetime

import pytest

from dates import format_datetime, parse_datetime
from errors import DateFormatError


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-03-05T14:30:15.250", datetime(2024, 3, 5, 14, 30, 15, 250000)),
        ("2024-03-05T14:30:15", datetime(2024, 3, 5, 14, 30, 15)),
        ("2024-03-05", datetime(2024, 3, 5, 0, 0, 0)),
        ("  2024-03-05  ", datetime(2024, 3, 5)),
    ],
)
def test_accepted_shapes(text, expected):
    parsed = parse_datetime(text)
    assert parsed == expected
    assert parse_datetime(format_datetime(parsed)) == parsed


@pytest.mark.parametrize("value", [None, "", "   "])
def test_empty_input_is_none(value):
    assert parse_datetime(value) is None


@pytest.mark.parametrize(
    "text",
    ["05/03/2024", "2024-03-05 14:30:15", "2024-3-5", "2024-13-01", "tomorrow", "2024-03-05T14:30"],
)
def test_rejected_shapes(text):
    with pytest.raises(DateFormatError) as info:
        parse_datetime(text)
    message = str(info.value)
    assert text.strip() in message
    assert "yyyy-MM-dd" in message


def test_date_objects_become_midnight():
    assert parse_datetime(date(2024, 1, 2)) == datetime(2024, 1, 2)
    now = datetime.now()
    assert parse_datetime(now) is now


def test_format_is_iso_local():
    assert format_datetime(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
    assert format_datetime(None) is None
