"""Pydantic validation models for all user-facing data entry points."""

from __future__ import annotations

from datetime import date as dt_date
from datetime import time as dt_time
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

SLUG_PATTERN = r"^[a-z0-9](?:[a-z0-9-]{1,78}[a-z0-9])$"


class CalendarCreateInput(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    slot_duration_minutes: int = Field(default=30, gt=0, le=480)
    buffer_minutes: int = Field(default=0, ge=0, le=240)
    max_advance_days: int = Field(default=60, ge=0, le=365)
    min_notice_hours: int = Field(default=24, ge=0, le=24 * 30)
    is_public: bool = True
    booking_slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN)


class CalendarUpdateInput(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=2000)
    slot_duration_minutes: Optional[int] = Field(default=None, gt=0, le=480)
    buffer_minutes: Optional[int] = Field(default=None, ge=0, le=240)
    max_advance_days: Optional[int] = Field(default=None, ge=0, le=365)
    min_notice_hours: Optional[int] = Field(default=None, ge=0, le=24 * 30)
    is_public: Optional[bool] = None
    booking_slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN)


class AvailabilityWindowInput(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: dt_time
    end_time: dt_time

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityInput(BaseModel):
    windows: list[AvailabilityWindowInput] = Field(default_factory=list, max_length=100)


class BlockedTimeInput(BaseModel):
    date: dt_date
    all_day: bool = True
    start_time: Optional[dt_time] = None
    end_time: Optional[dt_time] = None
    reason: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def partial_day_needs_range(self):
        if self.all_day:
            return self
        if self.start_time is None or self.end_time is None:
            raise ValueError("start_time and end_time are required when all_day is false")
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BookingCreateInput(BaseModel):
    calendar_id: int = Field(gt=0)
    date: dt_date
    time: dt_time
    duration_minutes: int = Field(gt=0, le=480)
    booker_name: str = Field(min_length=1, max_length=160)
    booker_email: Optional[EmailStr] = None
    athlete_id: Optional[str] = Field(default=None, max_length=64)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("booker_name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("booker_name must not be blank")
        return v


class BookingActionInput(BaseModel):
    action: Literal["confirm", "cancel", "complete"]
    reason: Optional[str] = Field(default=None, max_length=255)


class PlanSessionInput(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    order: int = Field(ge=0)
    title: str = Field(default="", max_length=200)


class PlanWeekInput(BaseModel):
    sessions: list[PlanSessionInput] = Field(min_length=1, max_length=7)


class PlanRegisterInput(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    athlete_id: str = Field(min_length=1, max_length=64)
    coach_id: Optional[str] = Field(default=None, max_length=64)
    plan_name: str = Field(default="", max_length=200)
    start_date: Optional[dt_date] = None
    weeks: list[PlanWeekInput] = Field(min_length=1, max_length=104)

    @model_validator(mode="after")
    def unique_session_ids(self):
        seen: set[str] = set()
        for week in self.weeks:
            for session in week.sessions:
                if session.id in seen:
                    raise ValueError(f"duplicate session id: {session.id}")
                seen.add(session.id)
        return self


class WeekdaySelection(BaseModel):
    weekdays: list[int] = Field(min_length=1, max_length=7)

    @field_validator("weekdays")
    @classmethod
    def distinct_weekdays(cls, v):
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("weekdays must be between 0 (Mon) and 6 (Sun)")
        if len(set(v)) != len(v):
            raise ValueError("weekdays must not repeat")
        return sorted(v)


class PlanScheduleInput(WeekdaySelection):
    start_date: dt_date


class PlanReplanInput(WeekdaySelection):
    from_date: dt_date


class PlanPauseInput(BaseModel):
    weeks: int = Field(ge=1, le=52)
