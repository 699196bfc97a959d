"""scheduling schema"""

from alembic import op
import sqlalchemy as sa


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "coach_calendars",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_advance_days", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("min_notice_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("booking_slug", sa.String(length=80), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("slot_duration_minutes > 0", name="ck_calendar_slot_duration"),
        sa.CheckConstraint("buffer_minutes >= 0", name="ck_calendar_buffer"),
        sa.CheckConstraint("max_advance_days >= 0", name="ck_calendar_max_advance"),
        sa.CheckConstraint("min_notice_hours >= 0", name="ck_calendar_min_notice"),
    )
    op.create_index("ix_coach_calendars_owner_id", "coach_calendars", ["owner_id"])

    op.create_table(
        "coach_availability",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("calendar_id", sa.Integer(), sa.ForeignKey("coach_calendars.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.CheckConstraint("day_of_week between 0 and 6", name="ck_availability_day"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_order"),
    )
    op.create_index("ix_coach_availability_calendar_id", "coach_availability", ["calendar_id"])

    op.create_table(
        "coach_blocked_times",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coach_id", sa.String(length=64), nullable=False),
        sa.Column("blocked_date", sa.Date(), nullable=False),
        sa.Column("all_day", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_coach_blocked_times_coach_id", "coach_blocked_times", ["coach_id"])
    op.create_index("ix_coach_blocked_times_blocked_date", "coach_blocked_times", ["blocked_date"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("calendar_id", sa.Integer(), sa.ForeignKey("coach_calendars.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("coach_id", sa.String(length=64), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("booker_name", sa.String(length=160), nullable=False),
        sa.Column("booker_email", sa.String(length=255), nullable=True),
        sa.Column("athlete_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancel_reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("duration_minutes > 0", name="ck_booking_duration"),
        sa.CheckConstraint(
            "status in ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="ck_booking_status",
        ),
    )
    op.create_index("ix_bookings_calendar_id", "bookings", ["calendar_id"])
    op.create_index("ix_bookings_coach_id", "bookings", ["coach_id"])
    op.create_index("ix_bookings_booking_date", "bookings", ["booking_date"])
    op.create_index("ix_bookings_athlete_id", "bookings", ["athlete_id"])
    op.create_index(
        "uq_booking_active_slot",
        "bookings",
        ["calendar_id", "booking_date", "start_time"],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELLED'"),
        sqlite_where=sa.text("status <> 'CANCELLED'"),
    )

    op.create_table(
        "assigned_plans",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("athlete_id", sa.String(length=64), nullable=False),
        sa.Column("coach_id", sa.String(length=64), nullable=True),
        sa.Column("plan_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("structure", sa.JSON(), nullable=False),
        sa.Column("schedule", sa.JSON(), nullable=False),
        sa.Column("schedule_status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("preferred_days", sa.JSON(), nullable=False),
        sa.Column("paused_at", sa.DateTime(), nullable=True),
        sa.Column("pause_until", sa.DateTime(), nullable=True),
        sa.Column("last_pause_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("schedule_status in ('PENDING', 'ACTIVE', 'PAUSED')", name="ck_plan_schedule_status"),
    )
    op.create_index("ix_assigned_plans_athlete_id", "assigned_plans", ["athlete_id"])
    op.create_index("ix_assigned_plans_coach_id", "assigned_plans", ["coach_id"])


def downgrade() -> None:
    op.drop_index("ix_assigned_plans_coach_id", table_name="assigned_plans")
    op.drop_index("ix_assigned_plans_athlete_id", table_name="assigned_plans")
    op.drop_table("assigned_plans")
    op.drop_index("uq_booking_active_slot", table_name="bookings")
    op.drop_index("ix_bookings_athlete_id", table_name="bookings")
    op.drop_index("ix_bookings_booking_date", table_name="bookings")
    op.drop_index("ix_bookings_coach_id", table_name="bookings")
    op.drop_index("ix_bookings_calendar_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_coach_blocked_times_blocked_date", table_name="coach_blocked_times")
    op.drop_index("ix_coach_blocked_times_coach_id", table_name="coach_blocked_times")
    op.drop_table("coach_blocked_times")
    op.drop_index("ix_coach_availability_calendar_id", table_name="coach_availability")
    op.drop_table("coach_availability")
    op.drop_index("ix_coach_calendars_owner_id", table_name="coach_calendars")
    op.drop_table("coach_calendars")
