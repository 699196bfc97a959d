from __future__ import annotations

from datetime import date, time

import pytest

from core.services.calendar_math import (
    date_key,
    daterange,
    format_hhmm,
    from_minutes,
    overlaps,
    parse_date_key,
    to_minutes,
    week_anchor,
)


def test_week_anchor_is_monday():
    assert week_anchor(date(2026, 10, 14)) == date(2026, 10, 12)  # Wednesday
    assert week_anchor(date(2026, 10, 12)) == date(2026, 10, 12)
    assert week_anchor(date(2026, 10, 18)) == date(2026, 10, 12)  # Sunday


def test_date_key_roundtrip():
    assert date_key(date(2026, 1, 5)) == "2026-01-05"
    assert parse_date_key("2026-01-05") == date(2026, 1, 5)


def test_daterange_is_inclusive():
    days = list(daterange(date(2026, 2, 27), date(2026, 3, 2)))
    assert days == [date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 2)]
    assert list(daterange(date(2026, 3, 2), date(2026, 3, 1))) == []


def test_minutes_conversion():
    assert to_minutes(time(9, 30)) == 570
    assert from_minutes(570) == time(9, 30)
    assert format_hhmm(time(7, 5)) == "07:05"
    with pytest.raises(ValueError):
        from_minutes(24 * 60)


def test_overlaps_half_open():
    assert overlaps(540, 30, 555, 30)
    assert not overlaps(540, 30, 570, 30)
    assert not overlaps(600, 30, 570, 30)
    assert overlaps(540, 120, 570, 15)

