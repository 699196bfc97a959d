from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime as dt_datetime
from datetime import time as dt_time
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_serializer

T = TypeVar("T")


def _hhmm(value: Optional[dt_time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int


class HealthResponse(BaseModel):
    status: str
    message: str
    queries: dict[str, Any]


class CalendarResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    name: str
    description: str = ""
    slot_duration_minutes: int
    buffer_minutes: int
    max_advance_days: int
    min_notice_hours: int
    is_public: bool
    booking_slug: Optional[str] = None
    created_at: Optional[dt_datetime] = None


class AvailabilityWindowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int
    start_time: dt_time
    end_time: dt_time

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value: dt_time) -> Optional[str]:
        return _hhmm(value)


class AvailabilityResponse(BaseModel):
    calendar_id: int
    windows: list[AvailabilityWindowResponse]


class BlockedTimeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    coach_id: str
    blocked_date: dt_date
    all_day: bool
    start_time: Optional[dt_time] = None
    end_time: Optional[dt_time] = None
    reason: Optional[str] = None

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value: Optional[dt_time]) -> Optional[str]:
        return _hhmm(value)


class SlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt_date
    time: dt_time
    duration_minutes: int

    @field_serializer("time")
    def _serialize_time(self, value: dt_time) -> Optional[str]:
        return _hhmm(value)


class SlotListResponse(BaseModel):
    calendar_id: int
    items: list[SlotResponse]


class AvailableDatesResponse(BaseModel):
    calendar_id: int
    dates: list[dt_date]


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    calendar_id: int
    coach_id: str
    booking_date: dt_date
    start_time: dt_time
    duration_minutes: int
    booker_name: str
    booker_email: Optional[str] = None
    athlete_id: Optional[str] = None
    status: str
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[dt_datetime] = None
    confirmed_at: Optional[dt_datetime] = None
    cancelled_at: Optional[dt_datetime] = None
    completed_at: Optional[dt_datetime] = None

    @field_serializer("start_time")
    def _serialize_time(self, value: dt_time) -> Optional[str]:
        return _hhmm(value)


class ReminderDispatchResponse(BaseModel):
    count: int
    booking_ids: list[int] = Field(default_factory=list)


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    athlete_id: str
    coach_id: Optional[str] = None
    plan_name: str = ""
    start_date: Optional[dt_date] = None
    structure: dict[str, Any]
    schedule: dict[str, str] = Field(default_factory=dict)
    schedule_status: str
    preferred_days: list[int] = Field(default_factory=list)
    paused_at: Optional[dt_datetime] = None
    pause_until: Optional[dt_datetime] = None
    last_pause_date: Optional[dt_datetime] = None


class ScheduleResponse(BaseModel):
    plan_id: str
    schedule_status: str
    schedule: dict[str, str]
    preserved: Optional[int] = None
    regenerated: Optional[int] = None
    covered_weeks: Optional[int] = None


class WebhookRegister(BaseModel):
    url: HttpUrl
    events: list[str] = Field(min_length=1)
    secret: Optional[str] = Field(default=None, max_length=200)


class WebhookResponse(BaseModel):
    id: str
    url: str
    events: list[str]
    active: bool
