from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Field, Session, SQLModel

from trainloop.database import get_session
from trainloop.models import (
    DayChangeUndo,
    EntrySource,
    Exercise,
    SetMetricType,
    WorkoutDay,
    WorkoutExerciseEntry,
    WorkoutMode,
)
from trainloop.services import plans as plan_service
from trainloop.services import workouts as workout_service
from trainloop.services.day_change import can_change_day, change_day, undo_day_change
from trainloop.services.profiles import get_or_create_profile
from trainloop.services.resolver import resolve_day_info
from trainloop.services.today import apply_plan_today, setup_today_workout

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SetRead(SQLModel):
    id: int
    set_index: int
    metric_type: SetMetricType
    weight: float | None
    reps: int | None
    duration_seconds: int | None
    distance_meters: float | None
    rest_time_seconds: int | None
    is_completed: bool


class SetUpdateRead(SQLModel):
    workout_set: SetRead
    next_focus_set_id: int | None
    routine_completed: bool


class EntryRead(SQLModel):
    id: int
    exercise_id: int
    exercise_name: str
    order_index: int
    metric_type: SetMetricType
    source: EntrySource
    planned_set_count: int
    group_id: int | None
    group_order_index: int | None
    sets: list[SetRead]


class StatisticsRead(SQLModel):
    completed_sets: int
    volume: float
    exercises_with_sets: int


class WorkoutRead(SQLModel):
    id: int
    date: str  # ISO format
    mode: WorkoutMode
    routine_preset_id: int | None
    routine_day_id: int | None
    entries: list[EntryRead]
    statistics: StatisticsRead


class DayInfoRead(SQLModel):
    day_index: int
    total_days: int
    day_name: str | None
    plan_id: int


class CanChangeDayRead(SQLModel):
    can_change: bool


class ChangeDayRead(SQLModel):
    workout_day_id: int
    plan_day_id: int
    undo_token: int


class CompleteRead(SQLModel):
    completed: bool


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ChangeDayBody(SQLModel):
    day_index: int = Field(ge=1)
    skip_and_advance: bool = False


class AddEntryBody(SQLModel):
    exercise_id: int


class ApplyPlanBody(SQLModel):
    plan_id: int
    day_index: int = Field(default=1, ge=1)


class ReorderBody(SQLModel):
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)


class SetCreate(SQLModel):
    weight: float | None = None
    reps: int | None = None
    duration_seconds: int | None = None
    distance_meters: float | None = None
    is_completed: bool = True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_set_update_read(result: workout_service.SetUpdateResult) -> SetUpdateRead:
    return SetUpdateRead(
        workout_set=SetRead.model_validate(result.workout_set),
        next_focus_set_id=result.next_focus_set_id,
        routine_completed=result.routine_completed,
    )


def _build_workout_read(workout_day: WorkoutDay, session: Session) -> WorkoutRead:
    entries: list[EntryRead] = []
    for entry in workout_service.sorted_entries(session, workout_day.id):
        exercise = session.get(Exercise, entry.exercise_id)
        entries.append(
            EntryRead(
                id=entry.id,
                exercise_id=entry.exercise_id,
                exercise_name=exercise.name if exercise else "",
                order_index=entry.order_index,
                metric_type=entry.metric_type,
                source=entry.source,
                planned_set_count=entry.planned_set_count,
                group_id=entry.group_id,
                group_order_index=entry.group_order_index,
                sets=[SetRead.model_validate(s) for s in workout_service.entry_sets(session, entry.id)],
            )
        )
    stats = workout_service.get_statistics(session, workout_day)
    return WorkoutRead(
        id=workout_day.id,
        date=workout_day.date.isoformat(),
        mode=workout_day.mode,
        routine_preset_id=workout_day.routine_preset_id,
        routine_day_id=workout_day.routine_day_id,
        entries=entries,
        statistics=StatisticsRead(
            completed_sets=stats.completed_sets,
            volume=stats.volume,
            exercises_with_sets=stats.exercises_with_sets,
        ),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/today", response_model=WorkoutRead)
def open_today(session: SessionDep):
    """Return today's workout, expanding the current plan day the first time."""
    workout_day = setup_today_workout(session, get_or_create_profile(session))
    return _build_workout_read(workout_day, session)


@router.post("/today/apply", response_model=WorkoutRead)
def apply_today(body: ApplyPlanBody, session: SessionDep):
    """Start a plan today at the given day, replacing today's entries."""
    plan = plan_service.get_plan(session, body.plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    workout_day = apply_plan_today(session, get_or_create_profile(session), plan, body.day_index)
    if workout_day is None:
        raise HTTPException(status_code=400, detail=f"Plan has no day {body.day_index}")
    return _build_workout_read(workout_day, session)


@router.post("/undo/{token}", response_model=WorkoutRead)
def undo_change(token: int, session: SessionDep):
    undo = session.get(DayChangeUndo, token)
    if undo is None:
        raise HTTPException(status_code=404, detail="Undo token not found")
    workout_day_id = undo.workout_day_id
    if not undo_day_change(session, token):
        raise HTTPException(status_code=409, detail="Undo token already used")
    return _build_workout_read(session.get(WorkoutDay, workout_day_id), session)


@router.post("/entries/{entry_id}/sets", response_model=SetUpdateRead, status_code=201)
def add_set(entry_id: int, body: SetCreate, session: SessionDep):
    entry = session.get(WorkoutExerciseEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    result = workout_service.log_set(
        session,
        entry,
        weight=body.weight,
        reps=body.reps,
        duration_seconds=body.duration_seconds,
        distance_meters=body.distance_meters,
        is_completed=body.is_completed,
    )
    return build_set_update_read(result)


@router.delete("/entries/{entry_id}", status_code=204)
def delete_entry(entry_id: int, session: SessionDep):
    entry = session.get(WorkoutExerciseEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    workout_service.remove_entry(session, entry)


@router.get("/{workout_date}", response_model=WorkoutRead)
def get_workout(workout_date: date, session: SessionDep):
    profile = get_or_create_profile(session)
    workout_day = workout_service.get_workout_day(session, profile.id, workout_date)
    if workout_day is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return _build_workout_read(workout_day, session)


@router.post("/{workout_date}/entries", response_model=WorkoutRead, status_code=201)
def add_entry(workout_date: date, body: AddEntryBody, session: SessionDep):
    """Log a free-form exercise on a date, creating the workout day if needed."""
    exercise = session.get(Exercise, body.exercise_id)
    if exercise is None:
        raise HTTPException(status_code=400, detail=f"Exercise with id {body.exercise_id} does not exist")
    profile = get_or_create_profile(session)
    workout_day = workout_service.get_or_create_workout_day(session, profile.id, workout_date)
    workout_service.add_entry(session, workout_day, exercise.id, metric_type=exercise.metric_type)
    return _build_workout_read(workout_day, session)


@router.get("/{workout_date}/day-info", response_model=DayInfoRead | None)
def get_day_info(workout_date: date, session: SessionDep):
    info = resolve_day_info(session, get_or_create_profile(session), workout_date)
    if info is None:
        return None
    return DayInfoRead(
        day_index=info.day_index,
        total_days=info.total_days,
        day_name=info.day_name,
        plan_id=info.plan_id,
    )


@router.get("/{workout_date}/can-change-day", response_model=CanChangeDayRead)
def get_can_change_day(workout_date: date, session: SessionDep):
    profile = get_or_create_profile(session)
    workout_day = workout_service.get_workout_day(session, profile.id, workout_date)
    return CanChangeDayRead(can_change=can_change_day(session, profile, workout_day))


@router.post("/{workout_date}/change-day", response_model=ChangeDayRead)
def post_change_day(workout_date: date, body: ChangeDayBody, session: SessionDep):
    result = change_day(
        session,
        get_or_create_profile(session),
        workout_date,
        body.day_index,
        skip_and_advance=body.skip_and_advance,
    )
    if result is None:
        raise HTTPException(status_code=409, detail="Day cannot be changed")
    return ChangeDayRead(
        workout_day_id=result.workout_day_id,
        plan_day_id=result.plan_day_id,
        undo_token=result.undo_token,
    )


@router.post("/{id}/complete", response_model=CompleteRead)
def complete_workout(id: int, session: SessionDep):
    workout_day = session.get(WorkoutDay, id)
    if workout_day is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return CompleteRead(completed=workout_service.complete_workout_day(session, workout_day))


@router.post("/{id}/reorder", response_model=WorkoutRead)
def reorder_workout(id: int, body: ReorderBody, session: SessionDep):
    """Move one block of entries (a single exercise or a whole group) to a new position."""
    workout_day = session.get(WorkoutDay, id)
    if workout_day is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    workout_service.reorder_entries(session, workout_day, body.from_index, body.to_index)
    return _build_workout_read(workout_day, session)


@router.delete("/{id}", status_code=204)
def delete_workout(id: int, session: SessionDep):
    workout_day = session.get(WorkoutDay, id)
    if workout_day is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    workout_service.delete_workout_day(session, workout_day)
