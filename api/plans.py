from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from api.auth import AuthPrincipal, ensure_plan_access, get_current_principal, require_roles
from api.schemas import PlanResponse, ScheduleResponse
from api.webhooks import dispatch_event
from core.db import session_scope
from core.models import AssignedPlan
from core.services import plan_scheduler
from core.validators import PlanPauseInput, PlanRegisterInput, PlanReplanInput, PlanScheduleInput

router = APIRouter(prefix="/api/v1/plans", tags=["plans"])


def _plan_event(plan: AssignedPlan) -> dict:
    return {
        "plan_id": plan.id,
        "athlete_id": plan.athlete_id,
        "coach_id": plan.coach_id,
        "schedule_status": plan.schedule_status,
        "pause_until": plan.pause_until.isoformat() if plan.pause_until else None,
    }


@router.post("", response_model=PlanResponse, status_code=201)
def register_plan(body: PlanRegisterInput, coach: Annotated[AuthPrincipal, Depends(require_roles("coach"))]):
    with session_scope() as s:
        plan = plan_scheduler.register_plan(
            s,
            body.id,
            body.athlete_id,
            body.weeks,
            coach_id=body.coach_id or (None if coach.is_admin else coach.user_id),
            plan_name=body.plan_name,
            start_date=body.start_date,
        )
        return PlanResponse.model_validate(plan)


@router.get("/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: str, principal: Annotated[AuthPrincipal, Depends(get_current_principal)]):
    with session_scope() as s:
        plan = plan_scheduler.get_plan(s, plan_id)
        ensure_plan_access(principal, plan.athlete_id, plan.coach_id)
        return PlanResponse.model_validate(plan)


@router.post("/{plan_id}/schedule", response_model=ScheduleResponse)
async def schedule_plan(plan_id: str, body: PlanScheduleInput, principal: Annotated[AuthPrincipal, Depends(get_current_principal)]):
    with session_scope() as s:
        plan = plan_scheduler.get_plan(s, plan_id, for_update=True)
        ensure_plan_access(principal, plan.athlete_id, plan.coach_id)
        schedule = plan_scheduler.generate_initial_schedule(plan, body.weekdays, body.start_date)
        result = ScheduleResponse(plan_id=plan.id, schedule_status=plan.schedule_status, schedule=schedule)
        event = _plan_event(plan)
    await dispatch_event("plan.scheduled", event)
    return result


@router.post("/{plan_id}/replan", response_model=ScheduleResponse)
async def replan_plan(plan_id: str, body: PlanReplanInput, principal: Annotated[AuthPrincipal, Depends(get_current_principal)]):
    with session_scope() as s:
        plan = plan_scheduler.get_plan(s, plan_id, for_update=True)
        ensure_plan_access(principal, plan.athlete_id, plan.coach_id)
        outcome = plan_scheduler.replan(plan, body.weekdays, body.from_date)
        result = ScheduleResponse(
            plan_id=plan.id,
            schedule_status=plan.schedule_status,
            schedule=outcome.schedule,
            preserved=outcome.preserved,
            regenerated=outcome.regenerated,
            covered_weeks=outcome.covered_weeks,
        )
        event = _plan_event(plan)
    await dispatch_event("plan.replanned", event)
    return result


@router.post("/{plan_id}/pause", response_model=PlanResponse)
async def pause_plan(plan_id: str, body: PlanPauseInput, principal: Annotated[AuthPrincipal, Depends(get_current_principal)]):
    with session_scope() as s:
        plan = plan_scheduler.get_plan(s, plan_id, for_update=True)
        ensure_plan_access(principal, plan.athlete_id, plan.coach_id)
        plan_scheduler.pause(plan, body.weeks)
        result = PlanResponse.model_validate(plan)
        event = _plan_event(plan)
    await dispatch_event("plan.paused", event)
    return result


@router.post("/{plan_id}/resume", response_model=PlanResponse)
async def resume_plan(plan_id: str, principal: Annotated[AuthPrincipal, Depends(get_current_principal)]):
    with session_scope() as s:
        plan = plan_scheduler.get_plan(s, plan_id, for_update=True)
        ensure_plan_access(principal, plan.athlete_id, plan.coach_id)
        was_paused = plan.schedule_status == "PAUSED"
        plan_scheduler.resume(plan)
        result = PlanResponse.model_validate(plan)
        event = _plan_event(plan)
    if was_paused:
        await dispatch_event("plan.resumed", event)
    return result
