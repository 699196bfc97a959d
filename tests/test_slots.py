"""Slot generation against in-memory calendar state."""

from __future__ import annotations

from datetime import date, datetime, time
from types import SimpleNamespace

from core.services.slots import generate_slots

NOW = datetime(2026, 10, 18, 8, 0)  # Sunday
MONDAY = date(2026, 10, 19)


def _calendar(**overrides):
    values = dict(
        id=1,
        slot_duration_minutes=30,
        buffer_minutes=0,
        max_advance_days=60,
        min_notice_hours=0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _window(day, start, end):
    return SimpleNamespace(day_of_week=day, start_time=time.fromisoformat(start), end_time=time.fromisoformat(end))


def _block(day, start=None, end=None):
    return SimpleNamespace(
        blocked_date=day,
        all_day=start is None,
        start_time=time.fromisoformat(start) if start else None,
        end_time=time.fromisoformat(end) if end else None,
    )


def _booking(day, start, duration=30, status="PENDING", calendar_id=1):
    return SimpleNamespace(
        calendar_id=calendar_id,
        booking_date=day,
        start_time=time.fromisoformat(start),
        duration_minutes=duration,
        status=status,
    )


def _times(slots):
    return [s.time.strftime("%H:%M") for s in slots]


def test_monday_morning_window_tiles_four_slots():
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], [], [], MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:00", "09:30", "10:00", "10:30"]
    assert all(s.date == MONDAY and s.duration_minutes == 30 and s.calendar_id == 1 for s in slots)


def test_existing_booking_removes_its_slot():
    bookings = [_booking(MONDAY, "09:30")]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], [], bookings, MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:00", "10:00", "10:30"]


def test_cancelled_booking_frees_the_slot():
    bookings = [_booking(MONDAY, "09:30", status="CANCELLED")]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], [], bookings, MONDAY, MONDAY, now=NOW)
    assert "09:30" in _times(slots)


def test_completed_booking_still_occupies_time():
    bookings = [_booking(MONDAY, "10:00", status="COMPLETED")]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], [], bookings, MONDAY, MONDAY, now=NOW)
    assert "10:00" not in _times(slots)


def test_booking_on_another_calendar_is_ignored():
    bookings = [_booking(MONDAY, "09:30", calendar_id=2)]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], [], bookings, MONDAY, MONDAY, now=NOW)
    assert "09:30" in _times(slots)


def test_all_day_block_empties_the_date():
    blocks = [_block(MONDAY)]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], blocks, [], MONDAY, MONDAY, now=NOW)
    assert slots == []


def test_partial_block_is_cut_out_of_the_window():
    blocks = [_block(MONDAY, "09:45", "10:15")]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], blocks, [], MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:00", "10:30"]


def test_partial_block_keeps_the_window_grid():
    blocks = [_block(MONDAY, "09:10", "09:20")]
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], blocks, [], MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:30", "10:00", "10:30"]
    for s in slots:
        assert (s.time.hour * 60 + s.time.minute - 9 * 60) % 30 == 0


def test_partial_block_with_buffer_keeps_the_window_grid():
    cal = _calendar(slot_duration_minutes=45, buffer_minutes=15)
    blocks = [_block(MONDAY, "10:00", "10:05")]
    slots = generate_slots(cal, [_window(0, "09:00", "12:00")], blocks, [], MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:00", "11:00"]


def test_buffer_spaces_slot_starts():
    cal = _calendar(slot_duration_minutes=45, buffer_minutes=15)
    slots = generate_slots(cal, [_window(0, "09:00", "12:00")], [], [], MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:00", "10:00", "11:00"]


def test_window_shorter_than_duration_yields_nothing():
    cal = _calendar(slot_duration_minutes=60)
    slots = generate_slots(cal, [_window(0, "09:00", "09:45")], [], [], MONDAY, MONDAY, now=NOW)
    assert slots == []


def test_overlapping_windows_do_not_duplicate_starts():
    windows = [_window(0, "09:00", "10:00"), _window(0, "09:30", "10:30")]
    slots = generate_slots(_calendar(), windows, [], [], MONDAY, MONDAY, now=NOW)
    assert _times(slots) == ["09:00", "09:30", "10:00"]


def test_days_without_windows_have_no_slots():
    tuesday = date(2026, 10, 20)
    slots = generate_slots(_calendar(), [_window(0, "09:00", "11:00")], [], [], tuesday, tuesday, now=NOW)
    assert slots == []


def test_min_notice_excludes_near_slots():
    cal = _calendar(min_notice_hours=24)
    now = datetime(2026, 10, 18, 9, 45)
    slots = generate_slots(cal, [_window(0, "09:00", "11:00")], [], [], MONDAY, MONDAY, now=now)
    # Earliest start must be strictly after Monday 09:45.
    assert _times(slots) == ["10:00", "10:30"]


def test_max_advance_clips_the_range():
    cal = _calendar(max_advance_days=7)
    windows = [_window(d, "09:00", "09:30") for d in range(7)]
    slots = generate_slots(cal, windows, [], [], date(2026, 10, 18), date(2026, 11, 30), now=NOW)
    assert slots[0].date == date(2026, 10, 18)
    assert slots[-1].date == date(2026, 10, 25)
    assert len(slots) == 8


def test_past_range_yields_nothing():
    windows = [_window(d, "09:00", "17:00") for d in range(7)]
    slots = generate_slots(_calendar(), windows, [], [], date(2026, 10, 1), date(2026, 10, 10), now=NOW)
    assert slots == []


def test_slots_are_sorted_and_deterministic():
    windows = [_window(0, "14:00", "15:00"), _window(0, "09:00", "10:00"), _window(2, "09:00", "10:00")]
    first = generate_slots(_calendar(), windows, [], [], MONDAY, date(2026, 10, 21), now=NOW)
    second = generate_slots(_calendar(), list(reversed(windows)), [], [], MONDAY, date(2026, 10, 21), now=NOW)
    assert first == second
    assert [(s.date, s.time) for s in first] == sorted((s.date, s.time) for s in first)


def test_every_slot_fits_inside_a_window():
    cal = _calendar(slot_duration_minutes=50, buffer_minutes=10)
    windows = [_window(0, "08:15", "12:00")]
    slots = generate_slots(cal, windows, [], [], MONDAY, MONDAY, now=NOW)
    assert slots
    for s in slots:
        start = s.time.hour * 60 + s.time.minute
        assert 8 * 60 + 15 <= start and start + 50 <= 12 * 60
