from datetime import datetime

import structlog
from sqlmodel import Session

from trainloop.models import ExecutionMode, Plan, PlanDay, Profile, WorkoutDay, WorkoutMode
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.dates import today_workout_date
from trainloop.services.expander import expand_plan_to_workout, has_entries
from trainloop.services.progress import (
    auto_advance_if_stale,
    clamp_day_index,
    get_or_create_progress,
    record_advance,
)
from trainloop.services.workouts import (
    clear_workout_day,
    drop_undo_tokens,
    get_or_create_workout_day,
    get_workout_day,
    touch,
)

logger = structlog.get_logger(__name__)


def _single_plan_day(
    session: Session, profile: Profile, now: datetime | None
) -> tuple[Plan, PlanDay] | None:
    plan = plan_service.get_plan(session, profile.active_plan_id)
    if plan is None:
        return None
    total_days = plan_service.day_count(session, plan.id)
    if total_days == 0:
        return None

    progress = get_or_create_progress(session, profile.id, plan.id)
    if clamp_day_index(progress, total_days):
        session.add(progress)
        session.commit()
    previous_day = plan_service.day_at(session, plan.id, progress.current_day_index)
    auto_advance_if_stale(
        session,
        progress,
        total_days,
        profile.day_transition_hour,
        now,
        on_rest_day=previous_day.is_rest_day,
    )
    return plan, plan_service.day_at(session, plan.id, progress.current_day_index)


def _cycle_plan_day(
    session: Session, profile: Profile, now: datetime | None
) -> tuple[Plan, PlanDay] | None:
    cycle = cycle_service.get_active_cycle(session, profile.id)
    if cycle is None:
        return None
    progress = cycle_service.ensure_progress(session, cycle)
    plan = cycle_service.current_plan(session, cycle)
    if plan is not None:
        total_days = plan_service.day_count(session, plan.id)
        if total_days and clamp_day_index(progress, total_days):
            session.add(progress)
            session.commit()
    cycle_service.auto_advance_if_stale(session, cycle, profile.day_transition_hour, now)
    return cycle_service.current_plan_day(session, cycle)


def current_plan_day(
    session: Session, profile: Profile, now: datetime | None = None
) -> tuple[Plan, PlanDay] | None:
    """Bring the profile's pointer up to date and return the plan day it selects."""
    if profile.execution_mode == ExecutionMode.CYCLE:
        return _cycle_plan_day(session, profile, now)
    return _single_plan_day(session, profile, now)


def setup_today_workout(session: Session, profile: Profile, now: datetime | None = None) -> WorkoutDay:
    """Return today's workout day, materializing the current plan day on first access.

    A day that is already assigned, or that already holds free-form entries,
    is returned untouched.
    """
    today = today_workout_date(profile.day_transition_hour, now)
    resolved = current_plan_day(session, profile, now)
    existing = get_workout_day(session, profile.id, today)

    if resolved is None:
        return existing or get_or_create_workout_day(session, profile.id, today)
    plan, plan_day = resolved

    if existing is not None:
        if existing.routine_day_id is not None or has_entries(session, existing):
            return existing
        existing.mode = WorkoutMode.ROUTINE
        existing.routine_preset_id = plan.id
        existing.routine_day_id = plan_day.id
        session.add(existing)
        expand_plan_to_workout(session, plan_day, existing)
        session.commit()
        session.refresh(existing)
        return existing

    workout_day = WorkoutDay(
        profile_id=profile.id,
        date=today,
        mode=WorkoutMode.ROUTINE,
        routine_preset_id=plan.id,
        routine_day_id=plan_day.id,
    )
    session.add(workout_day)
    session.flush()
    expand_plan_to_workout(session, plan_day, workout_day)
    session.commit()
    session.refresh(workout_day)
    logger.info(
        "today_workout_created",
        workout_day_id=workout_day.id,
        plan_id=plan.id,
        plan_day_id=plan_day.id,
        date=today.isoformat(),
    )
    return workout_day


def apply_plan_today(
    session: Session, profile: Profile, plan: Plan, day_index: int, now: datetime | None = None
) -> WorkoutDay | None:
    """Start ``plan`` today at ``day_index``, replacing whatever today's workout holds.

    The plan becomes the single-mode plan and its pointer is set to
    ``day_index``. Returns None, changing nothing, for an out-of-range index.
    """
    plan_day = plan_service.day_at(session, plan.id, day_index)
    if plan_day is None:
        return None
    today = today_workout_date(profile.day_transition_hour, now)

    profile.active_plan_id = plan.id
    profile.execution_mode = ExecutionMode.SINGLE
    session.add(profile)

    progress = get_or_create_progress(session, profile.id, plan.id)
    progress.current_day_index = day_index
    record_advance(progress, profile.day_transition_hour, now)
    session.add(progress)

    workout_day = get_workout_day(session, profile.id, today)
    if workout_day is None:
        workout_day = WorkoutDay(profile_id=profile.id, date=today)
        session.add(workout_day)
        session.flush()
    else:
        drop_undo_tokens(session, workout_day.id)
        clear_workout_day(session, workout_day)

    workout_day.mode = WorkoutMode.ROUTINE
    workout_day.routine_preset_id = plan.id
    workout_day.routine_day_id = plan_day.id
    touch(workout_day)
    session.add(workout_day)
    expand_plan_to_workout(session, plan_day, workout_day)
    session.commit()
    session.refresh(workout_day)
    logger.info(
        "plan_applied_today",
        workout_day_id=workout_day.id,
        plan_id=plan.id,
        day_index=day_index,
        date=today.isoformat(),
    )
    return workout_day
