from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from api.auth import AuthPrincipal, ensure_owner, require_roles
from api.observability import health_snapshot
from api.schemas import (
    AvailabilityResponse,
    AvailabilityWindowResponse,
    AvailableDatesResponse,
    BlockedTimeResponse,
    CalendarResponse,
    HealthResponse,
    SlotListResponse,
    SlotResponse,
    WebhookRegister,
    WebhookResponse,
)
from api.webhooks import dispatcher
from core.db import session_scope
from core.services import availability
from core.services.slots import dates_with_availability, slots_for_calendar
from core.validators import AvailabilityInput, BlockedTimeInput, CalendarCreateInput, CalendarUpdateInput

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")

MAX_SLOT_RANGE_DAYS = 92


def _availability_response(calendar_id: int, windows) -> AvailabilityResponse:
    return AvailabilityResponse(
        calendar_id=calendar_id,
        windows=[AvailabilityWindowResponse.model_validate(w) for w in windows],
    )


def _check_range(from_date: date, to_date: date) -> None:
    if to_date < from_date:
        raise HTTPException(status_code=422, detail={"code": "VALIDATION_ERROR", "message": "'to' must not be before 'from'"})
    if (to_date - from_date).days > MAX_SLOT_RANGE_DAYS:
        raise HTTPException(
            status_code=422,
            detail={"code": "VALIDATION_ERROR", "message": f"Date range is limited to {MAX_SLOT_RANGE_DAYS} days"},
        )


@router.get("/health", response_model=HealthResponse, tags=["ops"])
def health():
    return health_snapshot()


# -- Calendars --


@router.post("/calendars", response_model=CalendarResponse, status_code=201, tags=["calendars"])
def create_calendar(body: CalendarCreateInput, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        calendar = availability.create_calendar(s, coach.user_id, **body.model_dump())
        return CalendarResponse.model_validate(calendar)


@router.get("/calendars", response_model=list[CalendarResponse], tags=["calendars"])
def list_calendars(coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        return [CalendarResponse.model_validate(c) for c in availability.list_calendars(s, coach.user_id)]


@router.get("/calendars/{calendar_id}", response_model=CalendarResponse, tags=["calendars"])
def get_calendar(calendar_id: int, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        calendar = availability.get_calendar(s, calendar_id)
        ensure_owner(coach, calendar.owner_id)
        return CalendarResponse.model_validate(calendar)


@router.patch("/calendars/{calendar_id}", response_model=CalendarResponse, tags=["calendars"])
def update_calendar(calendar_id: int, body: CalendarUpdateInput, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        ensure_owner(coach, availability.get_calendar(s, calendar_id).owner_id)
        calendar = availability.update_calendar(s, calendar_id, **body.model_dump(exclude_unset=True))
        return CalendarResponse.model_validate(calendar)


@router.delete("/calendars/{calendar_id}", status_code=204, tags=["calendars"])
def delete_calendar(calendar_id: int, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        ensure_owner(coach, availability.get_calendar(s, calendar_id).owner_id)
        availability.delete_calendar(s, calendar_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/public/calendars/{slug}", response_model=CalendarResponse, tags=["public"])
def get_public_calendar(slug: str):
    with session_scope() as s:
        return CalendarResponse.model_validate(availability.get_calendar_by_slug(s, slug))


@router.get("/public/coaches/{coach_id}/calendars", response_model=list[CalendarResponse], tags=["public"])
def list_public_calendars(coach_id: str):
    with session_scope() as s:
        return [CalendarResponse.model_validate(c) for c in availability.list_public_calendars(s, coach_id)]


# -- Availability --


@router.get("/calendars/{calendar_id}/availability", response_model=AvailabilityResponse, tags=["availability"])
def get_availability(calendar_id: int):
    with session_scope() as s:
        return _availability_response(calendar_id, availability.get_availability(s, calendar_id))


@router.put("/calendars/{calendar_id}/availability", response_model=AvailabilityResponse, tags=["availability"])
def put_availability(calendar_id: int, body: AvailabilityInput, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        ensure_owner(coach, availability.get_calendar(s, calendar_id).owner_id)
        windows = availability.set_availability(s, calendar_id, body.windows)
        return _availability_response(calendar_id, windows)


@router.post("/calendars/{calendar_id}/availability/preset/{preset}", response_model=AvailabilityResponse, tags=["availability"])
def apply_availability_preset(calendar_id: int, preset: str, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        ensure_owner(coach, availability.get_calendar(s, calendar_id).owner_id)
        windows = availability.set_availability(s, calendar_id, availability.preset_windows(preset))
        return _availability_response(calendar_id, windows)


# -- Blocked time --


@router.post("/blocked-times", response_model=BlockedTimeResponse, status_code=201, tags=["availability"])
def add_blocked_time(body: BlockedTimeInput, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        blocked = availability.add_blocked_time(
            s,
            coach.user_id,
            body.date,
            body.all_day,
            start_time=body.start_time,
            end_time=body.end_time,
            reason=body.reason,
        )
        return BlockedTimeResponse.model_validate(blocked)


@router.get("/blocked-times", response_model=list[BlockedTimeResponse], tags=["availability"])
def list_blocked_times(
    coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))],
    from_date: Optional[date] = Query(None, alias="from"),
):
    with session_scope() as s:
        rows = availability.get_blocked_times(s, coach.user_id, from_date or date.today())
        return [BlockedTimeResponse.model_validate(r) for r in rows]


@router.delete("/blocked-times/{blocked_id}", status_code=204, tags=["availability"])
def remove_blocked_time(blocked_id: int, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        ensure_owner(coach, availability.get_blocked_time(s, blocked_id).coach_id)
        availability.remove_blocked_time(s, blocked_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -- Slots --


@router.get("/slots", response_model=SlotListResponse, tags=["slots"])
def list_slots(
    calendar_id: int = Query(..., gt=0),
    from_date: date = Query(..., alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
):
    to_date = to_date or from_date
    _check_range(from_date, to_date)
    with session_scope() as s:
        slots = slots_for_calendar(s, calendar_id, from_date, to_date)
    return SlotListResponse(calendar_id=calendar_id, items=[SlotResponse.model_validate(sl) for sl in slots])


@router.get("/calendars/{calendar_id}/available-dates", response_model=AvailableDatesResponse, tags=["slots"])
def available_dates(
    calendar_id: int,
    from_date: date = Query(..., alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
):
    to_date = to_date or (from_date + timedelta(days=30))
    _check_range(from_date, to_date)
    with session_scope() as s:
        dates = dates_with_availability(s, calendar_id, from_date, to_date)
    return AvailableDatesResponse(calendar_id=calendar_id, dates=dates)


# -- Webhooks --


@router.post("/webhooks", response_model=WebhookResponse, status_code=201, tags=["webhooks"])
def register_webhook(body: WebhookRegister, admin: Annotated[AuthPrincipal, Depends(require_roles("admin"))]):
    try:
        hook = dispatcher.register(str(body.url), body.events, body.secret)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail={"code": "VALIDATION_ERROR", "message": str(exc)}) from exc
    return WebhookResponse(**{k: hook[k] for k in ("id", "url", "events", "active")})


@router.get("/webhooks", response_model=list[WebhookResponse], tags=["webhooks"])
def list_webhooks(admin: Annotated[AuthPrincipal, Depends(require_roles("admin"))]):
    return [WebhookResponse(**{k: h[k] for k in ("id", "url", "events", "active")}) for h in dispatcher.registered()]


@router.delete("/webhooks/{hook_id}", status_code=204, tags=["webhooks"])
def unregister_webhook(hook_id: str, admin: Annotated[AuthPrincipal, Depends(require_roles("admin"))]):
    if not dispatcher.unregister(hook_id):
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Webhook not found"})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
