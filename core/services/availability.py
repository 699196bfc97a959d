"""Coach calendars, recurring weekly availability and blocked time.

Calendars and windows are written only by the owning coach. Blocked times are
scoped to the coach, so one entry blocks every calendar that coach owns.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from core.errors import InvalidStateError, ValidationError, not_found
from core.models import AvailabilityWindow, BlockedTime, Booking, CoachCalendar

logger = logging.getLogger(__name__)

CALENDAR_POLICY_FIELDS = ("slot_duration_minutes", "buffer_minutes", "max_advance_days", "min_notice_hours")
CALENDAR_FIELDS = ("name", "description", "is_public", "booking_slug") + CALENDAR_POLICY_FIELDS


@dataclass(frozen=True)
class WindowSpec:
    day_of_week: int
    start_time: dt.time
    end_time: dt.time


PRESETS: dict[str, list[tuple[int, str, str]]] = {
    "weekdays": [(d, "09:00", "17:00") for d in range(5)],
    "split_shift": [w for d in range(5) for w in ((d, "09:00", "12:00"), (d, "14:00", "18:00"))],
}


def preset_windows(name: str) -> list[WindowSpec]:
    template = PRESETS.get(name)
    if template is None:
        raise ValidationError(f"Unknown availability preset '{name}'", allowed=sorted(PRESETS))
    return [WindowSpec(d, dt.time.fromisoformat(s), dt.time.fromisoformat(e)) for d, s, e in template]


def _validate_policy(values: dict[str, Any]) -> None:
    duration = values.get("slot_duration_minutes")
    if duration is not None and duration <= 0:
        raise ValidationError("slot_duration_minutes must be positive")
    for key in ("buffer_minutes", "max_advance_days", "min_notice_hours"):
        value = values.get(key)
        if value is not None and value < 0:
            raise ValidationError(f"{key} must not be negative")


def _ensure_slug_free(session: Session, slug: Optional[str], calendar_id: Optional[int] = None) -> None:
    if not slug:
        return
    q = select(CoachCalendar.id).where(CoachCalendar.booking_slug == slug)
    if calendar_id is not None:
        q = q.where(CoachCalendar.id != calendar_id)
    if session.execute(q).first() is not None:
        raise ValidationError("booking_slug already in use", booking_slug=slug)


# -- Calendars --


def create_calendar(session: Session, owner_id: str, **values: Any) -> CoachCalendar:
    unknown = set(values) - set(CALENDAR_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown calendar fields: {sorted(unknown)}")
    if not str(values.get("name") or "").strip():
        raise ValidationError("Calendar name is required")
    _validate_policy(values)
    _ensure_slug_free(session, values.get("booking_slug"))
    calendar = CoachCalendar(owner_id=str(owner_id), **values)
    session.add(calendar)
    session.flush()
    logger.info("calendar_created", extra={"ctx_calendar_id": calendar.id, "ctx_owner_id": calendar.owner_id})
    return calendar


def get_calendar(session: Session, calendar_id: int, *, for_update: bool = False) -> CoachCalendar:
    q = select(CoachCalendar).where(CoachCalendar.id == calendar_id)
    if for_update:
        q = q.with_for_update()
    calendar = session.execute(q).scalar_one_or_none()
    if calendar is None:
        raise not_found("Calendar", calendar_id)
    return calendar


def list_calendars(session: Session, owner_id: str) -> list[CoachCalendar]:
    q = select(CoachCalendar).where(CoachCalendar.owner_id == str(owner_id)).order_by(CoachCalendar.created_at, CoachCalendar.id)
    return list(session.execute(q).scalars().all())


def list_public_calendars(session: Session, owner_id: str) -> list[CoachCalendar]:
    return [c for c in list_calendars(session, owner_id) if c.is_public]


def get_calendar_by_slug(session: Session, slug: str) -> CoachCalendar:
    calendar = session.execute(select(CoachCalendar).where(CoachCalendar.booking_slug == slug)).scalar_one_or_none()
    if calendar is None or not calendar.is_public:
        raise not_found("Calendar", slug)
    return calendar


def update_calendar(session: Session, calendar_id: int, **changes: Any) -> CoachCalendar:
    calendar = get_calendar(session, calendar_id)
    unknown = set(changes) - set(CALENDAR_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown calendar fields: {sorted(unknown)}")
    if "name" in changes and not str(changes["name"] or "").strip():
        raise ValidationError("Calendar name is required")
    _validate_policy(changes)
    if "booking_slug" in changes:
        _ensure_slug_free(session, changes["booking_slug"], calendar.id)
    for key, value in changes.items():
        setattr(calendar, key, value)
    session.flush()
    logger.info("calendar_updated", extra={"ctx_calendar_id": calendar.id, "ctx_fields": sorted(changes)})
    return calendar


def delete_calendar(session: Session, calendar_id: int) -> None:
    """Delete a calendar and its windows. Calendars with any booking history are kept."""
    calendar = get_calendar(session, calendar_id)
    booked = session.execute(
        select(func.count()).select_from(Booking).where(Booking.calendar_id == calendar.id)
    ).scalar_one()
    if booked:
        raise InvalidStateError(
            "Calendar has bookings; make it private instead of deleting it",
            calendar_id=calendar.id,
            bookings=int(booked),
        )
    session.delete(calendar)
    session.flush()
    logger.info("calendar_deleted", extra={"ctx_calendar_id": calendar_id})


# -- Weekly availability --


def _coerce_window(raw: Any) -> WindowSpec:
    if isinstance(raw, WindowSpec):
        return raw
    if isinstance(raw, dict):
        day, start, end = raw.get("day_of_week"), raw.get("start_time"), raw.get("end_time")
    else:
        day, start, end = raw.day_of_week, raw.start_time, raw.end_time
    if isinstance(start, str):
        start = dt.time.fromisoformat(start)
    if isinstance(end, str):
        end = dt.time.fromisoformat(end)
    if day is None or start is None or end is None:
        raise ValidationError("Availability window needs day_of_week, start_time and end_time")
    return WindowSpec(int(day), start, end)


def validate_windows(windows: Iterable[Any]) -> list[WindowSpec]:
    specs = [_coerce_window(w) for w in windows]
    for window in specs:
        if not 0 <= window.day_of_week <= 6:
            raise ValidationError("day_of_week must be between 0 (Mon) and 6 (Sun)", day_of_week=window.day_of_week)
        if window.start_time >= window.end_time:
            raise ValidationError(
                "Availability window start must be before end",
                day_of_week=window.day_of_week,
                start_time=window.start_time.isoformat(),
                end_time=window.end_time.isoformat(),
            )
    return specs


def set_availability(session: Session, calendar_id: int, windows: Iterable[Any]) -> list[AvailabilityWindow]:
    """Replace the calendar's full weekly availability in one transaction."""
    specs = validate_windows(windows)
    calendar = get_calendar(session, calendar_id, for_update=True)
    session.execute(delete(AvailabilityWindow).where(AvailabilityWindow.calendar_id == calendar.id))
    session.expire(calendar, ["windows"])
    rows = [
        AvailabilityWindow(calendar_id=calendar.id, day_of_week=s.day_of_week, start_time=s.start_time, end_time=s.end_time)
        for s in specs
    ]
    session.add_all(rows)
    session.flush()
    logger.info("availability_replaced", extra={"ctx_calendar_id": calendar.id, "ctx_windows": len(rows)})
    return get_availability(session, calendar.id)


def get_availability(session: Session, calendar_id: int) -> list[AvailabilityWindow]:
    get_calendar(session, calendar_id)
    q = (
        select(AvailabilityWindow)
        .where(AvailabilityWindow.calendar_id == calendar_id)
        .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
    )
    return list(session.execute(q).scalars().all())


# -- Blocked time --


def add_blocked_time(
    session: Session,
    coach_id: str,
    blocked_date: dt.date,
    all_day: bool,
    start_time: Optional[dt.time] = None,
    end_time: Optional[dt.time] = None,
    reason: Optional[str] = None,
) -> BlockedTime:
    if blocked_date is None:
        raise ValidationError("Blocked time needs a date")
    if not all_day:
        if start_time is None or end_time is None:
            raise ValidationError("start_time and end_time are required for a partial-day block")
        if start_time >= end_time:
            raise ValidationError("Blocked time start must be before end")
    else:
        start_time = end_time = None
    blocked = BlockedTime(
        coach_id=str(coach_id),
        blocked_date=blocked_date,
        all_day=bool(all_day),
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )
    session.add(blocked)
    session.flush()
    logger.info(
        "blocked_time_added",
        extra={"ctx_coach_id": blocked.coach_id, "ctx_date": blocked_date.isoformat(), "ctx_all_day": blocked.all_day},
    )
    return blocked


def get_blocked_time(session: Session, blocked_id: int) -> BlockedTime:
    blocked = session.get(BlockedTime, blocked_id)
    if blocked is None:
        raise not_found("BlockedTime", blocked_id)
    return blocked


def remove_blocked_time(session: Session, blocked_id: int) -> None:
    blocked = get_blocked_time(session, blocked_id)
    session.delete(blocked)
    session.flush()
    logger.info("blocked_time_removed", extra={"ctx_blocked_id": blocked_id})


def get_blocked_times(
    session: Session,
    coach_id: str,
    from_date: Optional[dt.date] = None,
    to_date: Optional[dt.date] = None,
) -> list[BlockedTime]:
    q = select(BlockedTime).where(BlockedTime.coach_id == str(coach_id))
    if from_date is not None:
        q = q.where(BlockedTime.blocked_date >= from_date)
    if to_date is not None:
        q = q.where(BlockedTime.blocked_date <= to_date)
    q = q.order_by(BlockedTime.blocked_date, BlockedTime.start_time)
    return list(session.execute(q).scalars().all())
