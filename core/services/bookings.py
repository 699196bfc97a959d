"""Booking ledger: creation against generated slots and the status machine.

PENDING --confirm--> CONFIRMED --complete--> COMPLETED
PENDING/CONFIRMED --cancel--> CANCELLED

COMPLETED and CANCELLED are terminal. Creation holds a row lock on the
calendar while it checks for overlaps and inserts, and the partial unique
index ``uq_booking_active_slot`` rejects a concurrent duplicate start.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.errors import InvalidStateError, SlotUnavailableError, ValidationError, not_found
from core.models import BOOKING_STATUSES, Booking
from core.services.availability import get_calendar
from core.services.calendar_math import format_hhmm, overlaps, to_minutes
from core.services.slots import scheduling_now, slots_for_calendar

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("PENDING", "CONFIRMED")
TERMINAL_STATUSES = ("CANCELLED", "COMPLETED")


@dataclass(frozen=True)
class Transition:
    booking: Booking
    previous_status: str

    @property
    def changed(self) -> bool:
        return self.previous_status != self.booking.status


def bookings_conflict(a: Booking, b: Booking) -> bool:
    if a.calendar_id != b.calendar_id or a.booking_date != b.booking_date:
        return False
    if a.status == "CANCELLED" or b.status == "CANCELLED":
        return False
    return overlaps(to_minutes(a.start_time), a.duration_minutes, to_minutes(b.start_time), b.duration_minutes)


def _active_bookings_on(session: Session, calendar_id: int, day: dt.date) -> list[Booking]:
    q = select(Booking).where(
        Booking.calendar_id == calendar_id,
        Booking.booking_date == day,
        Booking.status.in_(ACTIVE_STATUSES + ("COMPLETED",)),
    )
    return list(session.execute(q).scalars().all())


def create_booking(
    session: Session,
    calendar_id: int,
    booking_date: dt.date,
    start_time: dt.time,
    duration_minutes: int,
    booker_name: str,
    booker_email: Optional[str] = None,
    athlete_id: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[dt.datetime] = None,
) -> Booking:
    if duration_minutes is None or int(duration_minutes) <= 0:
        raise ValidationError("duration_minutes must be positive")
    if not str(booker_name or "").strip():
        raise ValidationError("booker_name is required")
    if booking_date is None or start_time is None:
        raise ValidationError("date and time are required")
    start_time = start_time.replace(second=0, microsecond=0, tzinfo=None)

    calendar = get_calendar(session, calendar_id, for_update=True)
    requested_start = to_minutes(start_time)
    for existing in _active_bookings_on(session, calendar.id, booking_date):
        if overlaps(requested_start, int(duration_minutes), to_minutes(existing.start_time), existing.duration_minutes):
            raise SlotUnavailableError(
                "This time has just been booked, please pick another time",
                date=booking_date.isoformat(),
                time=format_hhmm(start_time),
            )

    offered = slots_for_calendar(session, calendar.id, booking_date, booking_date, now=now)
    if not any(s.time == start_time and s.duration_minutes == int(duration_minutes) for s in offered):
        raise SlotUnavailableError(
            "This time is not available for booking, please pick another time",
            date=booking_date.isoformat(),
            time=format_hhmm(start_time),
        )

    booking = Booking(
        calendar_id=calendar.id,
        coach_id=calendar.owner_id,
        booking_date=booking_date,
        start_time=start_time,
        duration_minutes=int(duration_minutes),
        booker_name=booker_name.strip(),
        booker_email=booker_email,
        athlete_id=athlete_id,
        notes=notes,
        status="PENDING",
    )
    session.add(booking)
    try:
        session.flush()
    except IntegrityError as exc:
        raise SlotUnavailableError(
            "This time has just been booked, please pick another time",
            date=booking_date.isoformat(),
            time=format_hhmm(start_time),
        ) from exc
    logger.info(
        "booking_created",
        extra={
            "ctx_booking_id": booking.id,
            "ctx_calendar_id": calendar.id,
            "ctx_date": booking_date.isoformat(),
            "ctx_time": format_hhmm(start_time),
        },
    )
    return booking


def get_booking(session: Session, booking_id: int, *, for_update: bool = False) -> Booking:
    q = select(Booking).where(Booking.id == booking_id)
    if for_update:
        q = q.with_for_update()
    booking = session.execute(q).scalar_one_or_none()
    if booking is None:
        raise not_found("Booking", booking_id)
    return booking


def _utcnow(now: Optional[dt.datetime]) -> dt.datetime:
    return now or dt.datetime.utcnow()


def _invalid(booking: Booking, action: str) -> InvalidStateError:
    return InvalidStateError(
        f"Cannot {action} a booking that is {booking.status}",
        booking_id=booking.id,
        status=booking.status,
        action=action,
    )


def confirm_booking(session: Session, booking_id: int, now: Optional[dt.datetime] = None) -> Transition:
    booking = get_booking(session, booking_id, for_update=True)
    previous = booking.status
    if previous != "PENDING":
        raise _invalid(booking, "confirm")
    booking.status = "CONFIRMED"
    booking.confirmed_at = _utcnow(now)
    session.flush()
    logger.info("booking_confirmed", extra={"ctx_booking_id": booking.id})
    return Transition(booking, previous)


def cancel_booking(
    session: Session,
    booking_id: int,
    reason: Optional[str] = None,
    now: Optional[dt.datetime] = None,
) -> Transition:
    """Cancel a booking. Cancelling an already cancelled booking is a no-op."""
    booking = get_booking(session, booking_id, for_update=True)
    previous = booking.status
    if previous == "CANCELLED":
        return Transition(booking, previous)
    if previous not in ACTIVE_STATUSES:
        raise _invalid(booking, "cancel")
    booking.status = "CANCELLED"
    booking.cancelled_at = _utcnow(now)
    booking.cancel_reason = reason
    session.flush()
    logger.info("booking_cancelled", extra={"ctx_booking_id": booking.id, "ctx_previous_status": previous})
    return Transition(booking, previous)


def complete_booking(session: Session, booking_id: int, now: Optional[dt.datetime] = None) -> Transition:
    booking = get_booking(session, booking_id, for_update=True)
    previous = booking.status
    if previous != "CONFIRMED":
        raise _invalid(booking, "complete")
    booking.status = "COMPLETED"
    booking.completed_at = _utcnow(now)
    session.flush()
    logger.info("booking_completed", extra={"ctx_booking_id": booking.id})
    return Transition(booking, previous)


def apply_action(session: Session, booking_id: int, action: str, reason: Optional[str] = None) -> Transition:
    if action == "confirm":
        return confirm_booking(session, booking_id)
    if action == "cancel":
        return cancel_booking(session, booking_id, reason)
    if action == "complete":
        return complete_booking(session, booking_id)
    raise ValidationError(f"Unknown booking action '{action}'", allowed=["confirm", "cancel", "complete"])


def list_bookings(
    session: Session,
    coach_id: str,
    status: Optional[str] = None,
    calendar_id: Optional[int] = None,
    offset: int = 0,
    limit: Optional[int] = None,
) -> tuple[list[Booking], int]:
    conditions = [Booking.coach_id == str(coach_id)]
    if status:
        status = status.upper()
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Unknown booking status '{status}'", allowed=list(BOOKING_STATUSES))
        conditions.append(Booking.status == status)
    if calendar_id is not None:
        conditions.append(Booking.calendar_id == calendar_id)
    q = select(Booking).where(*conditions).order_by(Booking.booking_date, Booking.start_time, Booking.id).offset(offset)
    if limit is not None:
        q = q.limit(limit)
    rows = list(session.execute(q).scalars().all())
    total = session.execute(select(func.count()).select_from(Booking).where(*conditions)).scalar_one()
    return rows, int(total)


# -- Reminders --


def due_reminders(session: Session, now: Optional[dt.datetime] = None) -> list[Booking]:
    """Active bookings with an email starting inside the reminder window and not yet reminded."""
    settings = get_settings()
    now = now or scheduling_now()
    window_start = now + dt.timedelta(minutes=settings.reminder_window_start_minutes)
    window_end = now + dt.timedelta(minutes=settings.reminder_window_end_minutes)
    q = select(Booking).where(
        Booking.booking_date >= window_start.date(),
        Booking.booking_date <= window_end.date(),
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.reminder_sent_at.is_(None),
        Booking.booker_email.is_not(None),
    )
    candidates = session.execute(q.order_by(Booking.booking_date, Booking.start_time)).scalars().all()
    return [
        b for b in candidates
        if window_start <= dt.datetime.combine(b.booking_date, b.start_time) <= window_end
    ]


def mark_reminder_sent(session: Session, booking_id: int, now: Optional[dt.datetime] = None) -> Booking:
    booking = get_booking(session, booking_id, for_update=True)
    booking.reminder_sent_at = _utcnow(now)
    session.flush()
    return booking
