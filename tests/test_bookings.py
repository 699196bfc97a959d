from __future__ import annotations

from datetime import date, datetime, time

import pytest
from sqlalchemy.exc import IntegrityError

from core.errors import InvalidStateError, NotFoundError, SlotUnavailableError, ValidationError

NOW = datetime(2026, 10, 18, 8, 0)
MONDAY = date(2026, 10, 19)


def _setup_db(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'bookings.db'}")
    from core.config import get_settings
    from core.db import Base, get_engine, reset_engine

    get_settings.cache_clear()
    reset_engine()
    Base.metadata.create_all(get_engine())


def _seed_calendar(**policy) -> int:
    from core.db import session_scope
    from core.services import availability

    values = {"name": "Intro call", "min_notice_hours": 0}
    values.update(policy)
    with session_scope() as s:
        cal = availability.create_calendar(s, "coach-1", **values)
        availability.set_availability(
            s, cal.id, [availability.WindowSpec(0, time(9, 0), time(11, 0))]
        )
        return cal.id


def _book(calendar_id, start="09:00", duration=30, **kwargs):
    from core.db import session_scope
    from core.services import bookings

    with session_scope() as s:
        return bookings.create_booking(
            s,
            calendar_id,
            MONDAY,
            time.fromisoformat(start),
            duration,
            kwargs.pop("booker_name", "Sam Runner"),
            now=NOW,
            **kwargs,
        )


def test_create_booking_starts_pending(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    cal_id = _seed_calendar()
    booking = _book(cal_id, booker_email="sam@example.com")
    assert booking.id is not None
    assert booking.status == "PENDING"
    assert booking.coach_id == "coach-1"
    assert booking.start_time == time(9, 0)
    assert booking.created_at is not None


def test_booked_slot_disappears_from_generated_slots(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services.slots import slots_for_calendar

    cal_id = _seed_calendar()
    _book(cal_id, "09:30")
    with session_scope() as s:
        slots = slots_for_calendar(s, cal_id, MONDAY, MONDAY, now=NOW)
    assert [sl.time for sl in slots] == [time(9, 0), time(10, 0), time(10, 30)]


def test_double_booking_is_rejected(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    cal_id = _seed_calendar()
    _book(cal_id, "09:00")
    with pytest.raises(SlotUnavailableError) as exc:
        _book(cal_id, "09:00", booker_name="Second Booker")
    assert exc.value.code == "SLOT_UNAVAILABLE"
    assert exc.value.status_code == 409


def test_time_outside_generated_slots_is_rejected(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    cal_id = _seed_calendar()
    with pytest.raises(SlotUnavailableError):
        _book(cal_id, "09:10")
    with pytest.raises(SlotUnavailableError):
        _book(cal_id, "09:00", duration=45)
    with pytest.raises(SlotUnavailableError):
        _book(cal_id, "12:00")


def test_booking_inside_notice_window_is_rejected(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    cal_id = _seed_calendar(min_notice_hours=48)
    with pytest.raises(SlotUnavailableError):
        _book(cal_id, "10:00")


def test_blocked_day_cannot_be_booked(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import availability

    cal_id = _seed_calendar()
    with session_scope() as s:
        availability.add_blocked_time(s, "coach-1", MONDAY, True, reason="Race day")
    with pytest.raises(SlotUnavailableError):
        _book(cal_id, "09:00")


def test_missing_calendar_raises_not_found(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    with pytest.raises(NotFoundError):
        _book(999)


def test_invalid_input_is_rejected_before_persisting(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    cal_id = _seed_calendar()
    with pytest.raises(ValidationError):
        _book(cal_id, duration=0)
    with pytest.raises(ValidationError):
        _book(cal_id, booker_name="   ")


def test_partial_unique_index_blocks_duplicate_active_rows(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.models import Booking

    cal_id = _seed_calendar()

    def _row(status):
        return Booking(
            calendar_id=cal_id,
            coach_id="coach-1",
            booking_date=MONDAY,
            start_time=time(9, 0),
            duration_minutes=30,
            booker_name="Raw insert",
            status=status,
        )

    with session_scope() as s:
        s.add(_row("CANCELLED"))
        s.add(_row("CANCELLED"))
        s.add(_row("PENDING"))

    with pytest.raises(IntegrityError):
        with session_scope() as s:
            s.add(_row("CONFIRMED"))


def test_state_machine_happy_path(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import bookings

    cal_id = _seed_calendar()
    booking_id = _book(cal_id).id
    with session_scope() as s:
        t = bookings.confirm_booking(s, booking_id)
        assert t.previous_status == "PENDING"
        assert t.changed
        assert t.booking.confirmed_at is not None
    with session_scope() as s:
        t = bookings.complete_booking(s, booking_id)
        assert t.booking.status == "COMPLETED"
        assert t.booking.completed_at is not None


def test_terminal_states_reject_transitions(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import bookings

    cal_id = _seed_calendar()
    booking_id = _book(cal_id).id
    with session_scope() as s:
        with pytest.raises(InvalidStateError):
            bookings.complete_booking(s, booking_id)
    with session_scope() as s:
        bookings.confirm_booking(s, booking_id)
        bookings.complete_booking(s, booking_id)
    with session_scope() as s:
        with pytest.raises(InvalidStateError):
            bookings.cancel_booking(s, booking_id)
        with pytest.raises(InvalidStateError):
            bookings.confirm_booking(s, booking_id)


def test_cancel_is_idempotent_and_frees_the_slot(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import bookings

    cal_id = _seed_calendar()
    booking_id = _book(cal_id).id
    with session_scope() as s:
        t = bookings.cancel_booking(s, booking_id, reason="Injured")
        assert t.changed
        assert t.booking.cancel_reason == "Injured"
    with session_scope() as s:
        again = bookings.cancel_booking(s, booking_id)
        assert again.booking.status == "CANCELLED"
        assert not again.changed
        assert again.booking.cancel_reason == "Injured"

    rebooked = _book(cal_id, booker_name="Next Runner")
    assert rebooked.status == "PENDING"
    assert rebooked.id != booking_id


def test_apply_action_dispatches_by_name(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import bookings

    cal_id = _seed_calendar()
    booking_id = _book(cal_id).id
    with session_scope() as s:
        assert bookings.apply_action(s, booking_id, "confirm").booking.status == "CONFIRMED"
        with pytest.raises(ValidationError):
            bookings.apply_action(s, booking_id, "reschedule")


def test_list_bookings_filters_and_counts(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import bookings

    cal_id = _seed_calendar()
    first = _book(cal_id, "09:00").id
    _book(cal_id, "10:00")
    with session_scope() as s:
        bookings.cancel_booking(s, first)
    with session_scope() as s:
        rows, total = bookings.list_bookings(s, "coach-1")
        assert total == 2
        assert [r.start_time for r in rows] == [time(9, 0), time(10, 0)]
        rows, total = bookings.list_bookings(s, "coach-1", status="pending")
        assert total == 1 and rows[0].start_time == time(10, 0)
        rows, total = bookings.list_bookings(s, "coach-1", limit=1, offset=1)
        assert total == 2 and len(rows) == 1
        assert bookings.list_bookings(s, "someone-else")[1] == 0
        with pytest.raises(ValidationError):
            bookings.list_bookings(s, "coach-1", status="LOST")


def test_due_reminders_window(monkeypatch, tmp_path):
    _setup_db(monkeypatch, tmp_path)
    from core.db import session_scope
    from core.services import bookings

    cal_id = _seed_calendar()
    reminded = _book(cal_id, "09:00", booker_email="sam@example.com").id
    _book(cal_id, "10:00", booker_email="late@example.com")
    _book(cal_id, "09:30")

    at = datetime(2026, 10, 19, 8, 45)
    with session_scope() as s:
        due = bookings.due_reminders(s, now=at)
        assert [b.id for b in due] == [reminded]
        bookings.mark_reminder_sent(s, reminded, now=at)
    with session_scope() as s:
        assert bookings.due_reminders(s, now=at) == []


def test_bookings_conflict_helper():
    from core.models import Booking
    from core.services.bookings import bookings_conflict

    a = Booking(calendar_id=1, booking_date=MONDAY, start_time=time(9, 0), duration_minutes=60, status="PENDING")
    b = Booking(calendar_id=1, booking_date=MONDAY, start_time=time(9, 30), duration_minutes=30, status="CONFIRMED")
    c = Booking(calendar_id=1, booking_date=MONDAY, start_time=time(10, 0), duration_minutes=30, status="PENDING")
    assert bookings_conflict(a, b)
    assert not bookings_conflict(a, c)
    b.status = "CANCELLED"
    assert not bookings_conflict(a, b)
