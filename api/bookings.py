from __future__ import annotations

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, Request

from api.auth import AuthPrincipal, ensure_owner, require_roles
from api.ratelimit import booking_rate_limit, limiter
from api.schemas import BookingResponse, PaginatedResponse, ReminderDispatchResponse
from api.webhooks import dispatch_event
from core.config import get_settings
from core.db import session_scope
from core.models import Booking
from core.services import bookings
from core.validators import BookingActionInput, BookingCreateInput

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])

_ACTION_EVENTS = {
    "confirm": "booking.confirmed",
    "cancel": "booking.cancelled",
    "complete": "booking.completed",
}


def booking_event_payload(booking: Booking) -> dict[str, Any]:
    return {
        "booking_id": booking.id,
        "calendar_id": booking.calendar_id,
        "coach_id": booking.coach_id,
        "date": booking.booking_date.isoformat(),
        "time": booking.start_time.strftime("%H:%M"),
        "duration_minutes": booking.duration_minutes,
        "booker_name": booking.booker_name,
        "booker_email": booking.booker_email,
        "status": booking.status,
        "cancel_reason": booking.cancel_reason,
    }


@router.post("", response_model=BookingResponse, status_code=201)
@limiter.limit(booking_rate_limit)
async def create_booking(request: Request, body: BookingCreateInput):
    with session_scope() as s:
        booking = bookings.create_booking(
            s,
            body.calendar_id,
            body.date,
            body.time,
            body.duration_minutes,
            body.booker_name,
            booker_email=body.booker_email,
            athlete_id=body.athlete_id,
            notes=body.notes,
        )
        result = BookingResponse.model_validate(booking)
        payload = booking_event_payload(booking)
    await dispatch_event("booking.created", payload)
    return result


@router.get("", response_model=PaginatedResponse[BookingResponse])
def list_bookings(
    coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))],
    status_filter: Optional[str] = Query(None, alias="status"),
    calendar_id: Optional[int] = Query(None, gt=0),
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    with session_scope() as s:
        rows, total = bookings.list_bookings(s, coach.user_id, status=status_filter, calendar_id=calendar_id, offset=offset, limit=limit)
        items = [BookingResponse.model_validate(r) for r in rows]
    return PaginatedResponse[BookingResponse](items=items, total=total, offset=offset, limit=limit)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: int, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        booking = bookings.get_booking(s, booking_id)
        ensure_owner(coach, booking.coach_id)
        return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(booking_id: int, body: BookingActionInput, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        ensure_owner(coach, bookings.get_booking(s, booking_id).coach_id)
        transition = bookings.apply_action(s, booking_id, body.action, body.reason)
        result = BookingResponse.model_validate(transition.booking)
        payload = booking_event_payload(transition.booking)
    if transition.changed:
        await dispatch_event(_ACTION_EVENTS[body.action], payload)
    return result


@router.post("/reminders/dispatch", response_model=ReminderDispatchResponse)
async def dispatch_reminders(admin: Annotated[AuthPrincipal, Depends(require_roles("admin"))]):
    """Cron hook: emit ``booking.reminder_due`` for bookings starting shortly."""
    payloads: list[dict[str, Any]] = []
    with session_scope() as s:
        for booking in bookings.due_reminders(s):
            bookings.mark_reminder_sent(s, booking.id)
            payloads.append(booking_event_payload(booking))
    for payload in payloads:
        await dispatch_event("booking.reminder_due", payload)
    logger.info("booking_reminders_dispatched", extra={"ctx_count": len(payloads)})
    return ReminderDispatchResponse(count=len(payloads), booking_ids=[p["booking_id"] for p in payloads])
