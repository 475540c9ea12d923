"""Materialize a plan day template into a workout day's entries and sets.

Expansion runs once per workout day. Callers check ``has_entries`` first so a
relaunch or a second resolution pass can never clobber logged data; the
function itself does not re-check. Changes are flushed, not committed: the
calling operation owns the unit of work.
"""

from sqlmodel import Session, select

from trainloop.models import (
    EntrySource,
    PlanDay,
    PlanExercise,
    PlanExerciseGroup,
    PlannedSet,
    WorkoutDay,
    WorkoutExerciseEntry,
    WorkoutExerciseGroup,
    WorkoutSet,
)


def has_entries(session: Session, workout_day: WorkoutDay) -> bool:
    return (
        session.exec(
            select(WorkoutExerciseEntry.id).where(
                WorkoutExerciseEntry.workout_day_id == workout_day.id
            )
        ).first()
        is not None
    )


def _ordered_blocks(session: Session, plan_day: PlanDay) -> list[tuple[PlanExerciseGroup | None, list[PlanExercise]]]:
    """Return (group, exercises) blocks in template order; ungrouped exercises are their own block."""
    groups = session.exec(
        select(PlanExerciseGroup).where(PlanExerciseGroup.plan_day_id == plan_day.id)
    ).all()
    exercises = session.exec(select(PlanExercise).where(PlanExercise.plan_day_id == plan_day.id)).all()

    blocks: list[tuple[tuple[int, int, int], PlanExerciseGroup | None, list[PlanExercise]]] = []
    for group in groups:
        members = sorted(
            (e for e in exercises if e.group_id == group.id),
            key=lambda e: (e.group_order_index or 0, e.id),
        )
        blocks.append(((group.order_index, 0, group.id), group, members))
    for exercise in exercises:
        if exercise.group_id is None:
            blocks.append(((exercise.order_index, 1, exercise.id), None, [exercise]))

    blocks.sort(key=lambda block: block[0])
    return [(group, members) for _, group, members in blocks]


def _expand_exercise(
    session: Session,
    plan_exercise: PlanExercise,
    workout_day: WorkoutDay,
    group: WorkoutExerciseGroup | None = None,
) -> WorkoutExerciseEntry:
    planned_sets = session.exec(
        select(PlannedSet)
        .where(PlannedSet.plan_exercise_id == plan_exercise.id)
        .order_by(PlannedSet.order_index, PlannedSet.id)
    ).all()
    set_count = len(planned_sets) or plan_exercise.planned_set_count

    entry = WorkoutExerciseEntry(
        workout_day_id=workout_day.id,
        exercise_id=plan_exercise.exercise_id,
        order_index=plan_exercise.order_index,
        metric_type=plan_exercise.metric_type,
        source=EntrySource.ROUTINE,
        planned_set_count=set_count,
        group_id=group.id if group else None,
        group_order_index=plan_exercise.group_order_index if group else None,
    )
    session.add(entry)
    session.flush()

    if planned_sets:
        for set_index, planned in enumerate(planned_sets, start=1):
            session.add(
                WorkoutSet(
                    entry_id=entry.id,
                    set_index=set_index,
                    metric_type=plan_exercise.metric_type,
                    weight=planned.target_weight,
                    reps=planned.target_reps,
                    duration_seconds=planned.target_duration_seconds,
                    distance_meters=planned.target_distance_meters,
                    rest_time_seconds=planned.rest_time_seconds,
                    is_completed=False,
                )
            )
    else:
        # Placeholder sets when only a count was planned
        for set_index in range(1, set_count + 1):
            session.add(
                WorkoutSet(
                    entry_id=entry.id,
                    set_index=set_index,
                    metric_type=plan_exercise.metric_type,
                    is_completed=False,
                )
            )
    return entry


def expand_plan_to_workout(
    session: Session, plan_day: PlanDay, workout_day: WorkoutDay
) -> list[WorkoutExerciseEntry]:
    """Create routine entries and open sets for every exercise of ``plan_day``.

    Precondition: ``workout_day`` has no entries. Groups become contiguous
    blocks of entries sharing a WorkoutExerciseGroup. Rest days create nothing.
    """
    if plan_day.is_rest_day:
        return []

    entries: list[WorkoutExerciseEntry] = []
    for plan_group, members in _ordered_blocks(session, plan_day):
        if plan_group is None:
            entries.append(_expand_exercise(session, members[0], workout_day))
            continue
        if not members:
            continue
        workout_group = WorkoutExerciseGroup(
            workout_day_id=workout_day.id,
            order_index=plan_group.order_index,
            set_count=plan_group.set_count,
            round_rest_seconds=plan_group.round_rest_seconds,
        )
        session.add(workout_group)
        session.flush()
        for member in members:
            entries.append(_expand_exercise(session, member, workout_day, workout_group))

    session.flush()
    return entries
