"""Resolve which plan day applies to a workout date.

Two paths exist. A workout day that was already assigned a plan day is
authoritative: its recorded ``routine_day_id`` is looked up again, so the
answer never drifts when progress pointers move later. A date without an
assignment is previewed by projecting the current progress pointer forward
or backward by the number of days between the date and today, starting
from where the first open of today leaves the pointer. Previews never
write anything.

Every resolver returns ``None`` when no plan context applies; callers treat
that as a free-form workout.
"""

from dataclasses import dataclass
from datetime import date, datetime

from sqlmodel import Session

from trainloop.models import ExecutionMode, Plan, Profile, WorkoutDay
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.dates import days_between, today_workout_date, wrap_day_index
from trainloop.services.expander import has_entries
from trainloop.services.progress import advance_day_index, get_progress, should_advance
from trainloop.services.workouts import get_workout_day


@dataclass
class DayInfo:
    day_index: int
    total_days: int
    day_name: str | None
    plan_id: int


@dataclass
class PlanContext:
    """The plan the profile currently follows and the pointer into it."""

    plan: Plan
    total_days: int
    current_day_index: int
    reference_date: date


def _candidate_plan_ids(session: Session, profile: Profile, workout_day: WorkoutDay) -> list[int]:
    candidates: list[int] = []
    if workout_day.routine_preset_id is not None:
        candidates.append(workout_day.routine_preset_id)
    if profile.execution_mode == ExecutionMode.CYCLE:
        cycle = cycle_service.get_active_cycle(session, profile.id)
        if cycle is not None:
            items = cycle_service.sorted_items(session, cycle.id)
            progress = cycle_service.get_cycle_progress(session, cycle.id)
            start = progress.current_item_index if progress and items else 0
            # Current plan first, then the rest of the rotation
            for offset in range(len(items)):
                plan_id = items[(start + offset) % len(items)].plan_id
                if plan_id not in candidates:
                    candidates.append(plan_id)
    return candidates


def resolve_existing(session: Session, profile: Profile, workout_day: WorkoutDay) -> DayInfo | None:
    """Day info for a workout day from its recorded plan-day assignment."""
    if workout_day.routine_day_id is None:
        return None
    for plan_id in _candidate_plan_ids(session, profile, workout_day):
        if plan_service.get_plan(session, plan_id) is None:
            continue
        position = plan_service.position_of_day(session, plan_id, workout_day.routine_day_id)
        if position is None:
            continue
        plan_day = plan_service.day_at(session, plan_id, position)
        return DayInfo(
            day_index=position,
            total_days=plan_service.day_count(session, plan_id),
            day_name=plan_day.name,
            plan_id=plan_id,
        )
    return None


def _clamped(day_index: int, total_days: int) -> int:
    return max(1, min(day_index, total_days))


def _single_position(
    session: Session, profile: Profile, now: datetime | None
) -> tuple[Plan, int] | None:
    plan = plan_service.get_plan(session, profile.active_plan_id)
    if plan is None:
        return None
    total_days = plan_service.day_count(session, plan.id)
    progress = get_progress(session, profile.id, plan.id)
    if progress is None or total_days == 0:
        return plan, 1
    day_index = _clamped(progress.current_day_index, total_days)
    on_rest_day = plan_service.day_at(session, plan.id, day_index).is_rest_day
    if should_advance(progress, on_rest_day, profile.day_transition_hour, now):
        day_index = advance_day_index(day_index, total_days)
    return plan, day_index


def _cycle_position(
    session: Session, profile: Profile, now: datetime | None
) -> tuple[Plan, int] | None:
    cycle = cycle_service.get_active_cycle(session, profile.id)
    if cycle is None:
        return None
    items = cycle_service.sorted_items(session, cycle.id)
    progress = cycle_service.get_cycle_progress(session, cycle.id)
    item_index = progress.current_item_index if progress else 0
    day_index = progress.current_day_index if progress else 1
    if not 0 <= item_index < len(items):
        return None

    plan = plan_service.get_plan(session, items[item_index].plan_id)
    total_days = plan_service.day_count(session, plan.id) if plan else 0
    on_rest_day = False
    if total_days:
        day_index = _clamped(day_index, total_days)
        on_rest_day = plan_service.day_at(session, plan.id, day_index).is_rest_day
    if progress is not None and should_advance(
        progress, on_rest_day, profile.day_transition_hour, now
    ):
        ahead = cycle_service.next_position(session, cycle, item_index, day_index)
        if ahead is not None:
            item_index, day_index = ahead
            plan = plan_service.get_plan(session, items[item_index].plan_id)
    if plan is None:
        return None
    return plan, day_index


def current_context(session: Session, profile: Profile, now: datetime | None = None) -> PlanContext | None:
    """Read-only view of the plan and pointer that apply today.

    If the first open of today would advance the pointer, the advanced position
    is reported, so a preview of today matches what ``setup_today_workout``
    creates.
    """
    if profile.execution_mode == ExecutionMode.CYCLE:
        position = _cycle_position(session, profile, now)
    else:
        position = _single_position(session, profile, now)
    if position is None:
        return None

    plan, day_index = position
    total_days = plan_service.day_count(session, plan.id)
    if total_days == 0:
        return None
    return PlanContext(
        plan=plan,
        total_days=total_days,
        current_day_index=wrap_day_index(day_index, total_days),
        reference_date=today_workout_date(profile.day_transition_hour, now),
    )



def resolve_preview(
    session: Session, profile: Profile, target_date: date, now: datetime | None = None
) -> DayInfo | None:
    """Projected day info for a date that has no assigned workout day."""
    context = current_context(session, profile, now)
    if context is None:
        return None
    offset = days_between(context.reference_date, target_date)
    day_index = wrap_day_index(context.current_day_index + offset, context.total_days)
    plan_day = plan_service.day_at(session, context.plan.id, day_index)
    return DayInfo(
        day_index=day_index,
        total_days=context.total_days,
        day_name=plan_day.name if plan_day else None,
        plan_id=context.plan.id,
    )


def resolve_day_info(
    session: Session, profile: Profile, target_date: date, now: datetime | None = None
) -> DayInfo | None:
    """Day info for ``target_date``: recorded assignment if any, otherwise a preview.

    A workout day that is free-form and already holds entries has no plan
    context and resolves to None.
    """
    workout_day = get_workout_day(session, profile.id, target_date)
    if workout_day is not None:
        if workout_day.routine_day_id is not None:
            return resolve_existing(session, profile, workout_day)
        if has_entries(session, workout_day):
            return None
    return resolve_preview(session, profile, target_date, now)
