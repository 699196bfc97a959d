"""Flexible plan scheduling: bind a plan's ordered sessions to calendar dates.

Coaches write plans as ordered session lists per week; the athlete picks the
concrete weekdays later. ``order`` on each session is the only source of the
in-week position. The schedule is a ``{"YYYY-MM-DD": session_id}`` map stored
on the assigned plan.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.config import get_settings
from core.errors import CooldownError, InvalidStateError, ValidationError, not_found
from core.models import AssignedPlan
from core.services.calendar_math import WEEKDAY_LABELS, date_key, parse_date_key, week_anchor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplanResult:
    schedule: dict[str, str]
    preserved: int
    regenerated: int
    covered_weeks: int


# -- Structure helpers --


def normalize_structure(weeks: Iterable[Any]) -> dict[str, Any]:
    """Validate a plan snapshot's weeks and return the stored ``structure`` document."""
    out_weeks: list[dict[str, Any]] = []
    seen: set[str] = set()
    for w_idx, week in enumerate(weeks):
        raw_sessions = week.get("sessions") if isinstance(week, dict) else getattr(week, "sessions", None)
        if not raw_sessions:
            raise ValidationError("Every plan week needs at least one session", week=w_idx)
        sessions = []
        for raw in raw_sessions:
            item = raw if isinstance(raw, dict) else raw.model_dump()
            sid = str(item.get("id") or "").strip()
            if not sid:
                raise ValidationError("Plan session is missing an id", week=w_idx)
            if item.get("order") is None:
                raise ValidationError("Plan session is missing its order", week=w_idx, session_id=sid)
            if sid in seen:
                raise ValidationError("Plan session ids must be unique", session_id=sid)
            seen.add(sid)
            sessions.append({"id": sid, "order": int(item["order"]), "title": str(item.get("title") or "")})
        out_weeks.append({"sessions": sessions})
    if not out_weeks:
        raise ValidationError("Plan needs at least one week")
    return {"weeks": out_weeks}


def plan_weeks(structure: Optional[dict[str, Any]]) -> list[list[str]]:
    """Session ids per week, each week sorted by session ``order``."""
    weeks = (structure or {}).get("weeks") or []
    result: list[list[str]] = []
    for week in weeks:
        sessions = sorted(week.get("sessions") or [], key=lambda s: int(s["order"]))
        result.append([str(s["id"]) for s in sessions])
    return result


def sessions_per_week(structure: Optional[dict[str, Any]]) -> int:
    weeks = plan_weeks(structure)
    return len(weeks[0]) if weeks else 0


def validate_weekdays(weekdays: Iterable[int]) -> list[int]:
    days = [int(d) for d in weekdays]
    if not days:
        raise ValidationError("Pick at least one training day")
    if any(d < 0 or d > 6 for d in days):
        raise ValidationError("Weekdays must be between 0 (Mon) and 6 (Sun)", weekdays=days)
    if len(set(days)) != len(days):
        raise ValidationError("Weekdays must not repeat", weekdays=days)
    return sorted(days)


# -- Pure schedule builders --


def build_initial_schedule(weeks: list[list[str]], weekdays: Iterable[int], start_date: dt.date) -> dict[str, str]:
    days = validate_weekdays(weekdays)
    if not weeks or not weeks[0]:
        raise ValidationError("Plan has no sessions to schedule")
    expected = len(weeks[0])
    if len(days) != expected:
        raise ValidationError(
            f"Pick exactly {expected} training days",
            sessions_per_week=expected,
            weekdays=days,
        )
    anchor = week_anchor(start_date)
    schedule: dict[str, str] = {}
    for w_idx, sessions in enumerate(weeks):
        if len(sessions) > len(days):
            # TODO: per-week weekday subsets once plans with uneven weeks are supported
            raise ValidationError(
                "Plan week has more sessions than selected training days",
                week=w_idx,
                sessions=len(sessions),
                weekdays=len(days),
            )
        for s_idx, session_id in enumerate(sessions):
            day = anchor + dt.timedelta(days=7 * w_idx + days[s_idx])
            schedule[date_key(day)] = session_id
    return schedule


def build_replanned_schedule(
    weeks: list[list[str]],
    current: dict[str, str],
    weekdays: Iterable[int],
    from_date: dt.date,
) -> ReplanResult:
    """Keep entries before ``from_date``; flow every not-yet-dated session onto the new weekdays.

    Regeneration walks weeks from the Monday of ``from_date`` and never places a
    session before ``from_date``, so past entries are never rewritten.
    """
    days = validate_weekdays(weekdays)
    preserved = {key: sid for key, sid in (current or {}).items() if parse_date_key(key) < from_date}
    done = set(preserved.values())
    remaining = [sid for week in weeks for sid in week if sid not in done]

    anchor = week_anchor(from_date)
    regenerated: dict[str, str] = {}
    idx = 0
    week_offset = 0
    while idx < len(remaining):
        for d in days:
            if idx >= len(remaining):
                break
            day = anchor + dt.timedelta(days=7 * week_offset + d)
            if day < from_date:
                continue
            regenerated[date_key(day)] = remaining[idx]
            idx += 1
        week_offset += 1

    covered = len({week_anchor(parse_date_key(k)) for k in preserved})
    schedule = dict(sorted({**preserved, **regenerated}.items()))
    return ReplanResult(schedule=schedule, preserved=len(preserved), regenerated=len(regenerated), covered_weeks=covered)


# -- Plan operations --


def _status(plan: AssignedPlan) -> str:
    return plan.schedule_status or "PENDING"


def generate_initial_schedule(plan: AssignedPlan, weekdays: Iterable[int], start_date: dt.date) -> dict[str, str]:
    if _status(plan) != "PENDING":
        raise InvalidStateError(
            "Plan is already scheduled; use replan to change training days",
            plan_id=plan.id,
            status=_status(plan),
        )
    days = validate_weekdays(weekdays)
    schedule = build_initial_schedule(plan_weeks(plan.structure), days, start_date)
    plan.schedule = schedule
    plan.schedule_status = "ACTIVE"
    plan.start_date = start_date
    plan.preferred_days = days
    logger.info(
        "plan_scheduled",
        extra={"ctx_plan_id": plan.id, "ctx_days": [WEEKDAY_LABELS[d] for d in days], "ctx_sessions": len(schedule)},
    )
    return schedule


def replan(plan: AssignedPlan, weekdays: Iterable[int], from_date: dt.date) -> ReplanResult:
    if _status(plan) == "PENDING":
        raise InvalidStateError("Plan has no schedule yet; generate the initial schedule first", plan_id=plan.id)
    days = validate_weekdays(weekdays)
    result = build_replanned_schedule(plan_weeks(plan.structure), dict(plan.schedule or {}), days, from_date)
    plan.schedule = result.schedule
    plan.preferred_days = days
    logger.info(
        "plan_replanned",
        extra={
            "ctx_plan_id": plan.id,
            "ctx_from": from_date.isoformat(),
            "ctx_preserved": result.preserved,
            "ctx_regenerated": result.regenerated,
        },
    )
    return result


def pause(
    plan: AssignedPlan,
    weeks: int,
    now: Optional[dt.datetime] = None,
    cooldown_days: Optional[int] = None,
    max_weeks: Optional[int] = None,
) -> AssignedPlan:
    settings = get_settings()
    now = now or dt.datetime.utcnow()
    cooldown = dt.timedelta(days=settings.pause_cooldown_days if cooldown_days is None else cooldown_days)
    max_weeks = settings.max_pause_weeks if max_weeks is None else max_weeks

    if plan.last_pause_date is not None and now - plan.last_pause_date < cooldown:
        available_at = plan.last_pause_date + cooldown
        wait_seconds = math.ceil((available_at - now).total_seconds())
        raise CooldownError(
            f"Plans can be paused once every {cooldown.days} days; try again in {math.ceil(wait_seconds / 86400)} day(s)",
            available_at=available_at,
            retry_after_seconds=wait_seconds,
        )
    if weeks is None or not 1 <= int(weeks) <= max_weeks:
        raise ValidationError(f"Pause length must be between 1 and {max_weeks} weeks", weeks=weeks)
    if _status(plan) == "PENDING":
        raise InvalidStateError("Only a scheduled plan can be paused", plan_id=plan.id)

    plan.schedule_status = "PAUSED"
    plan.paused_at = now
    plan.pause_until = now + dt.timedelta(days=7 * int(weeks))
    plan.last_pause_date = now
    logger.info("plan_paused", extra={"ctx_plan_id": plan.id, "ctx_weeks": int(weeks)})
    return plan


def resume(plan: AssignedPlan) -> AssignedPlan:
    status = _status(plan)
    if status == "PENDING":
        raise InvalidStateError("Plan has no schedule yet", plan_id=plan.id)
    if status == "ACTIVE":
        return plan
    plan.schedule_status = "ACTIVE"
    plan.paused_at = None
    plan.pause_until = None
    logger.info("plan_resumed", extra={"ctx_plan_id": plan.id})
    return plan


# -- Persistence --


def register_plan(
    session: Session,
    plan_id: str,
    athlete_id: str,
    weeks: Iterable[Any],
    coach_id: Optional[str] = None,
    plan_name: str = "",
    start_date: Optional[dt.date] = None,
) -> AssignedPlan:
    if session.get(AssignedPlan, plan_id) is not None:
        raise ValidationError("Plan is already registered", plan_id=plan_id)
    plan = AssignedPlan(
        id=plan_id,
        athlete_id=str(athlete_id),
        coach_id=coach_id,
        plan_name=plan_name,
        start_date=start_date,
        structure=normalize_structure(weeks),
        schedule={},
        schedule_status="PENDING",
        preferred_days=[],
    )
    session.add(plan)
    session.flush()
    logger.info("plan_registered", extra={"ctx_plan_id": plan.id, "ctx_athlete_id": plan.athlete_id})
    return plan


def get_plan(session: Session, plan_id: str, *, for_update: bool = False) -> AssignedPlan:
    q = select(AssignedPlan).where(AssignedPlan.id == plan_id)
    if for_update:
        q = q.with_for_update()
    plan = session.execute(q).scalar_one_or_none()
    if plan is None:
        raise not_found("Plan", plan_id)
    return plan
