from datetime import datetime

import structlog
from sqlmodel import Session, SQLModel, select

from trainloop.models import (
    Exercise,
    Plan,
    PlanDay,
    PlanExercise,
    PlanExerciseGroup,
    PlannedSet,
    PlanProgress,
    Profile,
    SetMetricType,
    WorkoutExerciseEntry,
    WorkoutSet,
)
from trainloop.services.cycle_items import detach_plan, progresses_on_plan
from trainloop.services.progress import shift_for_removed_day

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Template input schemas
# ---------------------------------------------------------------------------


class PlannedSetTemplate(SQLModel):
    target_weight: float | None = None
    target_reps: int | None = None
    target_duration_seconds: int | None = None
    target_distance_meters: float | None = None
    rest_time_seconds: int | None = None


class ExerciseTemplate(SQLModel):
    exercise_id: int
    metric_type: SetMetricType | None = None
    planned_set_count: int = 0
    planned_sets: list[PlannedSetTemplate] = []


class BlockTemplate(SQLModel):
    """One ordered block of a day: a single exercise, or a group when ``grouped``."""

    exercises: list[ExerciseTemplate]
    grouped: bool = False
    set_count: int = 3
    round_rest_seconds: int | None = None


class DayTemplate(SQLModel):
    name: str | None = None
    is_rest_day: bool = False
    blocks: list[BlockTemplate] = []


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_plan(session: Session, plan_id: int | None) -> Plan | None:
    if plan_id is None:
        return None
    return session.get(Plan, plan_id)


def get_plans(session: Session, profile_id: int, include_archived: bool = False) -> list[Plan]:
    statement = select(Plan).where(Plan.profile_id == profile_id)
    if not include_archived:
        statement = statement.where(Plan.is_archived == False)  # noqa: E712
    return list(session.exec(statement.order_by(Plan.created_at.desc(), Plan.id.desc())).all())


def sorted_days(session: Session, plan_id: int) -> list[PlanDay]:
    return list(
        session.exec(
            select(PlanDay)
            .where(PlanDay.plan_id == plan_id)
            .order_by(PlanDay.day_index, PlanDay.id)
        ).all()
    )


def day_count(session: Session, plan_id: int) -> int:
    return len(sorted_days(session, plan_id))


def day_at(session: Session, plan_id: int, day_index: int) -> PlanDay | None:
    """Return the plan's day at the 1-based position ``day_index``, or None."""
    days = sorted_days(session, plan_id)
    if 1 <= day_index <= len(days):
        return days[day_index - 1]
    return None


def position_of_day(session: Session, plan_id: int, plan_day_id: int) -> int | None:
    """Return the 1-based position of a day within its plan, or None if it is gone."""
    for position, day in enumerate(sorted_days(session, plan_id), start=1):
        if day.id == plan_day_id:
            return position
    return None


def planned_sets(session: Session, plan_exercise_id: int) -> list[PlannedSet]:
    return list(
        session.exec(
            select(PlannedSet)
            .where(PlannedSet.plan_exercise_id == plan_exercise_id)
            .order_by(PlannedSet.order_index, PlannedSet.id)
        ).all()
    )


# ---------------------------------------------------------------------------
# Template construction
# ---------------------------------------------------------------------------


def _add_exercise(
    session: Session,
    plan_day: PlanDay,
    template: ExerciseTemplate,
    order_index: int,
    group: PlanExerciseGroup | None = None,
    group_order_index: int | None = None,
) -> PlanExercise:
    metric_type = template.metric_type
    if metric_type is None:
        exercise = session.get(Exercise, template.exercise_id)
        metric_type = exercise.metric_type if exercise else SetMetricType.WEIGHT_REPS

    planned_set_count = len(template.planned_sets) or template.planned_set_count
    if group is not None and not planned_set_count:
        planned_set_count = group.set_count

    plan_exercise = PlanExercise(
        plan_day_id=plan_day.id,
        exercise_id=template.exercise_id,
        order_index=order_index,
        group_id=group.id if group else None,
        group_order_index=group_order_index,
        metric_type=metric_type,
        planned_set_count=planned_set_count,
    )
    session.add(plan_exercise)
    session.flush()

    for index, planned in enumerate(template.planned_sets):
        session.add(
            PlannedSet(
                plan_exercise_id=plan_exercise.id,
                order_index=index,
                target_weight=planned.target_weight,
                target_reps=planned.target_reps,
                target_duration_seconds=planned.target_duration_seconds,
                target_distance_meters=planned.target_distance_meters,
                rest_time_seconds=planned.rest_time_seconds,
            )
        )
    return plan_exercise


def _add_day(session: Session, plan: Plan, template: DayTemplate, day_index: int) -> PlanDay:
    plan_day = PlanDay(
        plan_id=plan.id,
        day_index=day_index,
        name=template.name,
        is_rest_day=template.is_rest_day,
    )
    session.add(plan_day)
    session.flush()

    order_index = 0
    for block in template.blocks:
        if block.grouped:
            group = PlanExerciseGroup(
                plan_day_id=plan_day.id,
                order_index=order_index,
                set_count=block.set_count,
                round_rest_seconds=block.round_rest_seconds,
            )
            session.add(group)
            session.flush()
            for member_index, exercise in enumerate(block.exercises):
                _add_exercise(session, plan_day, exercise, order_index, group, member_index)
            order_index += 1
        else:
            for exercise in block.exercises:
                _add_exercise(session, plan_day, exercise, order_index)
                order_index += 1
    return plan_day


def create_plan(
    session: Session,
    profile_id: int,
    name: str,
    days: list[DayTemplate],
    note: str | None = None,
) -> Plan:
    """Create a plan with its days numbered 1..N in template order."""
    plan = Plan(profile_id=profile_id, name=name, note=note)
    session.add(plan)
    session.flush()
    for day_index, template in enumerate(days, start=1):
        _add_day(session, plan, template, day_index)
    session.commit()
    session.refresh(plan)
    logger.info("plan_created", plan_id=plan.id, day_count=len(days))
    return plan


def add_day(session: Session, plan: Plan, template: DayTemplate) -> PlanDay:
    plan_day = _add_day(session, plan, template, day_count(session, plan.id) + 1)
    _touch(plan)
    session.add(plan)
    session.commit()
    session.refresh(plan_day)
    return plan_day


def reindex_days(session: Session, plan_id: int) -> None:
    """Renumber a plan's days to 1..N, keeping their relative order."""
    for position, day in enumerate(sorted_days(session, plan_id), start=1):
        if day.day_index != position:
            day.day_index = position
            session.add(day)


def remove_day(session: Session, plan_day: PlanDay) -> None:
    """Delete a day with its exercises, then close the gap in day indexes.

    Plan and cycle pointers on this plan keep pointing at the same day. A
    pointer on the removed day moves to the day after it, or to the new last day.
    """
    plan_id = plan_day.plan_id
    removed_index = position_of_day(session, plan_id, plan_day.id) or plan_day.day_index
    pointers = list(
        session.exec(select(PlanProgress).where(PlanProgress.plan_id == plan_id)).all()
    ) + progresses_on_plan(session, plan_id)

    _delete_day_cascade(plan_day, session)
    session.flush()
    reindex_days(session, plan_id)

    count = day_count(session, plan_id)
    for progress in pointers:
        shift_for_removed_day(progress, removed_index, count)
        session.add(progress)
    session.commit()
    logger.info("plan_day_removed", plan_id=plan_id, day_index=removed_index, pointers=len(pointers))


def update_plan_exercise(
    session: Session, plan_exercise: PlanExercise, entry: WorkoutExerciseEntry
) -> PlanExercise:
    """Replace a plan exercise's planned sets with the sets logged on ``entry``.

    Soft-deleted sets are left out. The metric type follows the logged sets
    when they all share one.
    """
    logged = session.exec(
        select(WorkoutSet)
        .where(WorkoutSet.entry_id == entry.id, WorkoutSet.is_soft_deleted == False)  # noqa: E712
        .order_by(WorkoutSet.set_index, WorkoutSet.id)
    ).all()

    for planned_set in planned_sets(session, plan_exercise.id):
        session.delete(planned_set)

    plan_exercise.planned_set_count = len(logged)
    metric_types = {s.metric_type for s in logged}
    if len(metric_types) == 1:
        plan_exercise.metric_type = metric_types.pop()
    session.add(plan_exercise)

    for index, workout_set in enumerate(logged):
        session.add(
            PlannedSet(
                plan_exercise_id=plan_exercise.id,
                order_index=index,
                target_weight=workout_set.weight,
                target_reps=workout_set.reps,
                target_duration_seconds=workout_set.duration_seconds,
                target_distance_meters=workout_set.distance_meters,
                rest_time_seconds=workout_set.rest_time_seconds,
            )
        )

    plan_day = session.get(PlanDay, plan_exercise.plan_day_id)
    plan = session.get(Plan, plan_day.plan_id) if plan_day else None
    if plan is not None:
        _touch(plan)
        session.add(plan)
    session.commit()
    session.refresh(plan_exercise)
    logger.info(
        "plan_exercise_updated_from_entry",
        plan_exercise_id=plan_exercise.id,
        entry_id=entry.id,
        planned_sets=len(logged),
    )
    return plan_exercise


def archive_plan(session: Session, plan: Plan, archived: bool = True) -> Plan:
    plan.is_archived = archived
    _touch(plan)
    session.add(plan)
    session.commit()
    session.refresh(plan)
    return plan


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


def _delete_day_cascade(plan_day: PlanDay, session: Session) -> None:
    """Delete PlannedSets -> PlanExercises -> groups -> PlanDay (SQLite has no auto-cascade)."""
    exercises = session.exec(select(PlanExercise).where(PlanExercise.plan_day_id == plan_day.id)).all()
    exercise_ids = [e.id for e in exercises]
    if exercise_ids:
        planned = session.exec(
            select(PlannedSet).where(PlannedSet.plan_exercise_id.in_(exercise_ids))
        ).all()
        for planned_set in planned:
            session.delete(planned_set)
        for exercise in exercises:
            session.delete(exercise)
    groups = session.exec(
        select(PlanExerciseGroup).where(PlanExerciseGroup.plan_day_id == plan_day.id)
    ).all()
    for group in groups:
        session.delete(group)
    session.delete(plan_day)


def delete_plan(session: Session, plan: Plan) -> None:
    """Delete a plan and everything that points at it.

    Cycle items referencing the plan are removed and re-indexed, progress rows
    are dropped and profiles using it fall back to free mode. Logged workouts
    keep their dangling ids; resolution treats them as free-form.
    """
    detach_plan(session, plan.id)

    for progress in session.exec(select(PlanProgress).where(PlanProgress.plan_id == plan.id)).all():
        session.delete(progress)
    for profile in session.exec(select(Profile).where(Profile.active_plan_id == plan.id)).all():
        profile.active_plan_id = None
        session.add(profile)
    for plan_day in sorted_days(session, plan.id):
        _delete_day_cascade(plan_day, session)

    plan_id = plan.id
    session.delete(plan)
    session.commit()
    logger.info("plan_deleted", plan_id=plan_id)


def _touch(plan: Plan) -> None:
    plan.updated_at = datetime.now()
