"""Bookable slot generation.

Slots are derived on demand and never stored. For each date inside the
calendar's notice/advance window, each of the weekday's availability windows
is tiled with ``slot_duration`` minute slots stepping by
``slot_duration + buffer``. Slot starts are therefore always
``window_start + k * (duration + buffer)``; partial-day blocks and bookings
only remove candidates from that grid, never shift it.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.config import get_settings
from core.models import Booking
from core.services.availability import get_availability, get_blocked_times, get_calendar
from core.services.calendar_math import (
    daterange,
    from_minutes,
    local_now,
    overlaps,
    to_minutes,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Slot:
    date: dt.date
    time: dt.time
    duration_minutes: int
    calendar_id: Optional[int] = None

    @property
    def starts_at(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.time)


def scheduling_now() -> dt.datetime:
    return local_now(get_settings().scheduling_timezone)


def booking_window(calendar: Any, now: dt.datetime) -> tuple[dt.datetime, dt.date]:
    """Earliest bookable start (exclusive) and last bookable date for a calendar."""
    earliest = now + dt.timedelta(hours=int(calendar.min_notice_hours or 0))
    last_date = now.date() + dt.timedelta(days=int(calendar.max_advance_days or 0))
    return earliest, last_date


def _active(booking: Any) -> bool:
    return str(booking.status).upper() != "CANCELLED"


def generate_slots(
    calendar: Any,
    availability: Iterable[Any],
    blocked_times: Iterable[Any],
    existing_bookings: Iterable[Any],
    from_date: dt.date,
    to_date: dt.date,
    now: Optional[dt.datetime] = None,
) -> list[Slot]:
    now = now or scheduling_now()
    duration = int(calendar.slot_duration_minutes)
    step = duration + int(calendar.buffer_minutes or 0)
    if duration <= 0:
        return []

    earliest, last_date = booking_window(calendar, now)
    start = max(from_date, earliest.date())
    end = min(to_date, last_date)
    if start > end:
        return []

    windows_by_day: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for w in availability:
        windows_by_day[int(w.day_of_week)].append((to_minutes(w.start_time), to_minutes(w.end_time)))

    all_day_blocked: set[dt.date] = set()
    partial_blocks: dict[dt.date, list[tuple[int, int]]] = defaultdict(list)
    for b in blocked_times:
        if b.all_day:
            all_day_blocked.add(b.blocked_date)
        elif b.start_time is not None and b.end_time is not None:
            partial_blocks[b.blocked_date].append((to_minutes(b.start_time), to_minutes(b.end_time)))

    booked: dict[dt.date, list[tuple[int, int]]] = defaultdict(list)
    for bk in existing_bookings:
        if not _active(bk):
            continue
        if getattr(bk, "calendar_id", None) not in (None, calendar.id):
            continue
        booked[bk.booking_date].append((to_minutes(bk.start_time), int(bk.duration_minutes)))

    slots: list[Slot] = []
    for day in daterange(start, end):
        if day in all_day_blocked:
            continue
        windows = windows_by_day.get(day.weekday())
        if not windows:
            continue
        seen: set[int] = set()
        for w_start, w_end in windows:
            t = w_start
            while t + duration <= w_end:
                seen.add(t)
                t += step
        cuts = partial_blocks.get(day, [])
        for t in sorted(seen):
            if any(overlaps(t, duration, c_start, c_end - c_start) for c_start, c_end in cuts):
                continue
            if any(overlaps(t, duration, b_start, b_dur) for b_start, b_dur in booked.get(day, [])):
                continue
            slot = Slot(date=day, time=from_minutes(t), duration_minutes=duration, calendar_id=calendar.id)
            if slot.starts_at <= earliest:
                continue
            slots.append(slot)
    slots.sort(key=lambda s: (s.date, s.time))
    return slots


def slots_for_calendar(
    session: Session,
    calendar_id: int,
    from_date: dt.date,
    to_date: dt.date,
    now: Optional[dt.datetime] = None,
) -> list[Slot]:
    """Load calendar state and generate its slots for ``[from_date, to_date]``."""
    calendar = get_calendar(session, calendar_id)
    availability = get_availability(session, calendar.id)
    blocked = get_blocked_times(session, calendar.owner_id, from_date, to_date)
    bookings = (
        session.execute(
            select(Booking).where(
                Booking.calendar_id == calendar.id,
                Booking.booking_date >= from_date,
                Booking.booking_date <= to_date,
                Booking.status != "CANCELLED",
            )
        )
        .scalars()
        .all()
    )
    slots = generate_slots(calendar, availability, blocked, bookings, from_date, to_date, now=now)
    logger.debug(
        "slots_generated",
        extra={"ctx_calendar_id": calendar.id, "ctx_from": from_date.isoformat(), "ctx_to": to_date.isoformat(), "ctx_count": len(slots)},
    )
    return slots


def dates_with_availability(
    session: Session,
    calendar_id: int,
    from_date: dt.date,
    to_date: dt.date,
    now: Optional[dt.datetime] = None,
) -> list[dt.date]:
    slots = slots_for_calendar(session, calendar_id, from_date, to_date, now=now)
    return sorted({s.date for s in slots})
