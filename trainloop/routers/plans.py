from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, SQLModel, select

from trainloop.database import get_session
from trainloop.models import Exercise, Plan, PlanExercise, SetMetricType, WorkoutExerciseEntry
from trainloop.services import plans as plan_service
from trainloop.services.profiles import get_or_create_profile, set_active_plan

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PlanSummary(SQLModel):
    id: int
    name: str
    note: str | None
    is_archived: bool
    day_count: int


class PlannedSetRead(SQLModel):
    order_index: int
    target_weight: float | None
    target_reps: int | None
    target_duration_seconds: int | None
    target_distance_meters: float | None
    rest_time_seconds: int | None


class PlanExerciseRead(SQLModel):
    id: int
    exercise_id: int
    exercise_name: str
    order_index: int
    group_id: int | None
    group_order_index: int | None
    metric_type: SetMetricType
    planned_set_count: int
    planned_sets: list[PlannedSetRead]


class PlanDayRead(SQLModel):
    id: int
    day_index: int
    name: str | None
    is_rest_day: bool
    exercises: list[PlanExerciseRead]


class PlanRead(SQLModel):
    id: int
    name: str
    note: str | None
    is_archived: bool
    days: list[PlanDayRead]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PlanCreate(SQLModel):
    name: str
    note: str | None = None
    days: list[plan_service.DayTemplate] = []


class PlanExerciseSync(SQLModel):
    entry_id: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _summary(plan: Plan, session: Session) -> PlanSummary:
    return PlanSummary(
        id=plan.id,
        name=plan.name,
        note=plan.note,
        is_archived=plan.is_archived,
        day_count=plan_service.day_count(session, plan.id),
    )


def _build_plan_exercise_read(pe: PlanExercise, session: Session) -> PlanExerciseRead:
    exercise = session.get(Exercise, pe.exercise_id)
    return PlanExerciseRead(
        id=pe.id,
        exercise_id=pe.exercise_id,
        exercise_name=exercise.name if exercise else "",
        order_index=pe.order_index,
        group_id=pe.group_id,
        group_order_index=pe.group_order_index,
        metric_type=pe.metric_type,
        planned_set_count=pe.planned_set_count,
        planned_sets=[
            PlannedSetRead.model_validate(s) for s in plan_service.planned_sets(session, pe.id)
        ],
    )


def _build_plan_read(plan: Plan, session: Session) -> PlanRead:
    days: list[PlanDayRead] = []
    for plan_day in plan_service.sorted_days(session, plan.id):
        exercises = session.exec(
            select(PlanExercise)
            .where(PlanExercise.plan_day_id == plan_day.id)
            .order_by(PlanExercise.order_index, PlanExercise.group_order_index, PlanExercise.id)
        ).all()
        exercise_reads = [_build_plan_exercise_read(pe, session) for pe in exercises]
        days.append(
            PlanDayRead(
                id=plan_day.id,
                day_index=plan_day.day_index,
                name=plan_day.name,
                is_rest_day=plan_day.is_rest_day,
                exercises=exercise_reads,
            )
        )
    return PlanRead(
        id=plan.id, name=plan.name, note=plan.note, is_archived=plan.is_archived, days=days
    )


def _get_plan_or_404(id: int, session: Session) -> Plan:
    plan = plan_service.get_plan(session, id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[PlanSummary])
def list_plans(session: SessionDep, include_archived: bool = False):
    profile = get_or_create_profile(session)
    return [_summary(plan, session) for plan in plan_service.get_plans(session, profile.id, include_archived)]


@router.post("/", response_model=PlanRead, status_code=201)
def create_plan(body: PlanCreate, session: SessionDep):
    for day in body.days:
        for block in day.blocks:
            for exercise in block.exercises:
                if session.get(Exercise, exercise.exercise_id) is None:
                    raise HTTPException(
                        status_code=400,
                        detail=f"Exercise with id {exercise.exercise_id} does not exist",
                    )
    profile = get_or_create_profile(session)
    plan = plan_service.create_plan(session, profile.id, body.name, body.days, note=body.note)
    return _build_plan_read(plan, session)


@router.get("/{id}", response_model=PlanRead)
def get_plan(id: int, session: SessionDep):
    return _build_plan_read(_get_plan_or_404(id, session), session)


@router.delete("/{id}", status_code=204)
def delete_plan(id: int, session: SessionDep):
    plan_service.delete_plan(session, _get_plan_or_404(id, session))


@router.post("/{id}/activate", response_model=PlanSummary)
def activate_plan(id: int, session: SessionDep):
    """Follow this plan in single mode."""
    plan = _get_plan_or_404(id, session)
    set_active_plan(session, get_or_create_profile(session), plan.id)
    return _summary(plan, session)


@router.put("/exercises/{plan_exercise_id}/sets", response_model=PlanExerciseRead)
def sync_plan_exercise(plan_exercise_id: int, body: PlanExerciseSync, session: SessionDep):
    """Make the logged sets of a workout entry the new planned sets of this plan exercise."""
    plan_exercise = session.get(PlanExercise, plan_exercise_id)
    if plan_exercise is None:
        raise HTTPException(status_code=404, detail="Plan exercise not found")
    entry = session.get(WorkoutExerciseEntry, body.entry_id)
    if entry is None:
        raise HTTPException(status_code=400, detail=f"Entry with id {body.entry_id} does not exist")
    plan_service.update_plan_exercise(session, plan_exercise, entry)
    return _build_plan_exercise_read(plan_exercise, session)
