from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


BOOKING_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED")
SCHEDULE_STATUSES = ("PENDING", "ACTIVE", "PAUSED")


class CoachCalendar(Base):
    __tablename__ = "coach_calendars"
    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(Text, default="")
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
    buffer_minutes: Mapped[int] = mapped_column(Integer, default=0)
    max_advance_days: Mapped[int] = mapped_column(Integer, default=60)
    min_notice_hours: Mapped[int] = mapped_column(Integer, default=24)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    booking_slug: Mapped[str | None] = mapped_column(String(80), unique=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    windows: Mapped[list["AvailabilityWindow"]] = relationship(
        back_populates="calendar",
        cascade="all, delete-orphan",
    )
    __table_args__ = (
        CheckConstraint("slot_duration_minutes > 0", name="ck_calendar_slot_duration"),
        CheckConstraint("buffer_minutes >= 0", name="ck_calendar_buffer"),
        CheckConstraint("max_advance_days >= 0", name="ck_calendar_max_advance"),
        CheckConstraint("min_notice_hours >= 0", name="ck_calendar_min_notice"),
    )


class AvailabilityWindow(Base):
    __tablename__ = "coach_availability"
    id: Mapped[int] = mapped_column(primary_key=True)
    calendar_id: Mapped[int] = mapped_column(ForeignKey("coach_calendars.id", ondelete="CASCADE"), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[dt.time] = mapped_column(Time)
    end_time: Mapped[dt.time] = mapped_column(Time)

    calendar: Mapped[CoachCalendar] = relationship(back_populates="windows")
    __table_args__ = (
        CheckConstraint("day_of_week between 0 and 6", name="ck_availability_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_order"),
    )


class BlockedTime(Base):
    __tablename__ = "coach_blocked_times"
    id: Mapped[int] = mapped_column(primary_key=True)
    coach_id: Mapped[str] = mapped_column(String(64), index=True)
    blocked_date: Mapped[dt.date] = mapped_column(Date, index=True)
    all_day: Mapped[bool] = mapped_column(Boolean, default=True)
    start_time: Mapped[dt.time | None] = mapped_column(Time)
    end_time: Mapped[dt.time | None] = mapped_column(Time)
    reason: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class Booking(Base):
    __tablename__ = "bookings"
    id: Mapped[int] = mapped_column(primary_key=True)
    calendar_id: Mapped[int] = mapped_column(ForeignKey("coach_calendars.id", ondelete="RESTRICT"), index=True)
    coach_id: Mapped[str] = mapped_column(String(64), index=True)
    booking_date: Mapped[dt.date] = mapped_column(Date, index=True)
    start_time: Mapped[dt.time] = mapped_column(Time)
    duration_minutes: Mapped[int] = mapped_column(Integer)
    booker_name: Mapped[str] = mapped_column(String(160))
    booker_email: Mapped[str | None] = mapped_column(String(255))
    athlete_id: Mapped[str | None] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(16), default="PENDING")
    notes: Mapped[str | None] = mapped_column(Text)
    cancel_reason: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    confirmed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    cancelled_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    reminder_sent_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_booking_duration"),
        CheckConstraint(
            "status in ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="ck_booking_status",
        ),
        Index(
            "uq_booking_active_slot",
            "calendar_id",
            "booking_date",
            "start_time",
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
    )


class AssignedPlan(Base):
    __tablename__ = "assigned_plans"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    athlete_id: Mapped[str] = mapped_column(String(64), index=True)
    coach_id: Mapped[str | None] = mapped_column(String(64), index=True)
    plan_name: Mapped[str] = mapped_column(String(200), default="")
    start_date: Mapped[dt.date | None] = mapped_column(Date)
    structure: Mapped[dict[str, Any]] = mapped_column(JSON)
    schedule: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    schedule_status: Mapped[str] = mapped_column(String(16), default="PENDING")
    preferred_days: Mapped[list[int]] = mapped_column(JSON, default=list)
    paused_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    pause_until: Mapped[dt.datetime | None] = mapped_column(DateTime)
    last_pause_date: Mapped[dt.datetime | None] = mapped_column(DateTime)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)
    __table_args__ = (
        CheckConstraint("schedule_status in ('PENDING', 'ACTIVE', 'PAUSED')", name="ck_plan_schedule_status"),
    )
