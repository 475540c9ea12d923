from dataclasses import dataclass
from datetime import date, datetime, time

import structlog
from sqlmodel import Session, select

from trainloop.models import (
    DayChangeUndo,
    EntrySource,
    ExecutionMode,
    Profile,
    SetMetricType,
    WorkoutDay,
    WorkoutExerciseEntry,
    WorkoutExerciseGroup,
    WorkoutMode,
    WorkoutSet,
)
from trainloop.services import cycles as cycle_service
from trainloop.services.dates import today_workout_date
from trainloop.services.progress import get_or_create_progress, mark_completed

logger = structlog.get_logger(__name__)


@dataclass
class WorkoutStatistics:
    completed_sets: int
    volume: float
    exercises_with_sets: int


@dataclass
class SetUpdateResult:
    workout_set: WorkoutSet
    next_focus_set_id: int | None
    routine_completed: bool = False


# ---------------------------------------------------------------------------
# Workout days
# ---------------------------------------------------------------------------


def get_workout_day(session: Session, profile_id: int, workout_date: date) -> WorkoutDay | None:
    return session.exec(
        select(WorkoutDay).where(WorkoutDay.profile_id == profile_id, WorkoutDay.date == workout_date)
    ).first()


def get_or_create_workout_day(
    session: Session,
    profile_id: int,
    workout_date: date,
    mode: WorkoutMode = WorkoutMode.FREE,
    routine_preset_id: int | None = None,
    routine_day_id: int | None = None,
) -> WorkoutDay:
    """Return the single workout day for (profile, date), creating it if needed."""
    existing = get_workout_day(session, profile_id, workout_date)
    if existing is not None:
        return existing
    workout_day = WorkoutDay(
        profile_id=profile_id,
        date=workout_date,
        mode=mode,
        routine_preset_id=routine_preset_id,
        routine_day_id=routine_day_id,
    )
    session.add(workout_day)
    session.commit()
    session.refresh(workout_day)
    return workout_day


def clear_workout_day(session: Session, workout_day: WorkoutDay) -> None:
    """Delete WorkoutSets -> entries -> groups of a workout day. The caller commits."""
    entries = sorted_entries(session, workout_day.id)
    entry_ids = [e.id for e in entries]
    if entry_ids:
        sets = session.exec(select(WorkoutSet).where(WorkoutSet.entry_id.in_(entry_ids))).all()
        for s in sets:
            session.delete(s)
        for entry in entries:
            session.delete(entry)
    groups = session.exec(
        select(WorkoutExerciseGroup).where(WorkoutExerciseGroup.workout_day_id == workout_day.id)
    ).all()
    for group in groups:
        session.delete(group)
    session.flush()


def drop_undo_tokens(session: Session, workout_day_id: int) -> None:
    """Delete every day-change undo row of a workout day. The caller commits."""
    for undo in session.exec(
        select(DayChangeUndo).where(DayChangeUndo.workout_day_id == workout_day_id)
    ).all():
        session.delete(undo)


def delete_workout_day(session: Session, workout_day: WorkoutDay) -> None:
    clear_workout_day(session, workout_day)
    drop_undo_tokens(session, workout_day.id)
    session.delete(workout_day)
    session.commit()


def touch(workout_day: WorkoutDay) -> None:
    workout_day.updated_at = datetime.now()


# ---------------------------------------------------------------------------
# Entries and sets
# ---------------------------------------------------------------------------


def sorted_entries(session: Session, workout_day_id: int) -> list[WorkoutExerciseEntry]:
    return list(
        session.exec(
            select(WorkoutExerciseEntry)
            .where(WorkoutExerciseEntry.workout_day_id == workout_day_id)
            .order_by(
                WorkoutExerciseEntry.order_index,
                WorkoutExerciseEntry.group_order_index,
                WorkoutExerciseEntry.id,
            )
        ).all()
    )


def entry_sets(session: Session, entry_id: int, include_deleted: bool = False) -> list[WorkoutSet]:
    statement = select(WorkoutSet).where(WorkoutSet.entry_id == entry_id)
    if not include_deleted:
        statement = statement.where(WorkoutSet.is_soft_deleted == False)  # noqa: E712
    return list(session.exec(statement.order_by(WorkoutSet.set_index, WorkoutSet.id)).all())


def add_entry(
    session: Session,
    workout_day: WorkoutDay,
    exercise_id: int,
    metric_type: SetMetricType = SetMetricType.WEIGHT_REPS,
    planned_set_count: int = 0,
    source: EntrySource = EntrySource.FREE,
) -> WorkoutExerciseEntry:
    entries = sorted_entries(session, workout_day.id)
    next_order = (max(e.order_index for e in entries) + 1) if entries else 0
    entry = WorkoutExerciseEntry(
        workout_day_id=workout_day.id,
        exercise_id=exercise_id,
        order_index=next_order,
        metric_type=metric_type,
        source=source,
        planned_set_count=planned_set_count,
    )
    session.add(entry)
    touch(workout_day)
    session.add(workout_day)
    session.commit()
    session.refresh(entry)
    return entry


def remove_entry(session: Session, entry: WorkoutExerciseEntry) -> None:
    """Delete an entry with its sets; a group left without members goes too."""
    entry_id, workout_day_id, group_id = entry.id, entry.workout_day_id, entry.group_id
    workout_day = session.get(WorkoutDay, workout_day_id)
    for s in entry_sets(session, entry.id, include_deleted=True):
        session.delete(s)
    session.delete(entry)
    session.flush()

    if group_id is not None:
        remaining = session.exec(
            select(WorkoutExerciseEntry.id).where(WorkoutExerciseEntry.group_id == group_id)
        ).first()
        if remaining is None:
            group = session.get(WorkoutExerciseGroup, group_id)
            if group is not None:
                session.delete(group)
    if workout_day is not None:
        touch(workout_day)
        session.add(workout_day)
    session.commit()
    logger.info("workout_entry_removed", entry_id=entry_id, workout_day_id=workout_day_id)


def entry_blocks(session: Session, workout_day_id: int) -> list[list[WorkoutExerciseEntry]]:
    """Entries in display order, with the members of a group kept together as one block."""
    blocks: list[list[WorkoutExerciseEntry]] = []
    for entry in sorted_entries(session, workout_day_id):
        if entry.group_id is not None and blocks and blocks[-1][0].group_id == entry.group_id:
            blocks[-1].append(entry)
        else:
            blocks.append([entry])
    return blocks


def reorder_entries(
    session: Session, workout_day: WorkoutDay, from_index: int, to_index: int
) -> list[WorkoutExerciseEntry]:
    """Move the block at ``from_index`` to ``to_index`` and renumber every block.

    Indexes count blocks, so a group moves as a whole. Out-of-range indexes
    change nothing.
    """
    blocks = entry_blocks(session, workout_day.id)
    if not (0 <= from_index < len(blocks) and 0 <= to_index < len(blocks)):
        return sorted_entries(session, workout_day.id)

    blocks.insert(to_index, blocks.pop(from_index))
    for order, block in enumerate(blocks):
        for entry in block:
            entry.order_index = order
            session.add(entry)
        group = session.get(WorkoutExerciseGroup, block[0].group_id) if block[0].group_id else None
        if group is not None:
            group.order_index = order
            session.add(group)
    touch(workout_day)
    session.add(workout_day)
    session.commit()
    return sorted_entries(session, workout_day.id)


def log_set(
    session: Session,
    entry: WorkoutExerciseEntry,
    weight: float | None = None,
    reps: int | None = None,
    duration_seconds: int | None = None,
    distance_meters: float | None = None,
    is_completed: bool = True,
    now: datetime | None = None,
) -> SetUpdateResult:
    active = entry_sets(session, entry.id)
    workout_set = WorkoutSet(
        entry_id=entry.id,
        set_index=(max(s.set_index for s in active) + 1) if active else 1,
        metric_type=entry.metric_type,
        weight=weight,
        reps=reps,
        duration_seconds=duration_seconds,
        distance_meters=distance_meters,
        is_completed=is_completed,
        completed_at=(now or datetime.now()) if is_completed else None,
    )
    session.add(workout_set)
    session.commit()
    session.refresh(workout_set)
    return _after_set_change(session, workout_set, now)


def complete_set(
    session: Session,
    workout_set: WorkoutSet,
    weight: float | None = None,
    reps: int | None = None,
    now: datetime | None = None,
) -> SetUpdateResult:
    """Complete a set, optionally updating its numbers, and report where focus goes next."""
    if weight is not None:
        workout_set.weight = weight
    if reps is not None:
        workout_set.reps = reps
    workout_set.is_completed = True
    workout_set.completed_at = now or datetime.now()
    session.add(workout_set)
    session.commit()
    session.refresh(workout_set)
    return _after_set_change(session, workout_set, now)


def uncomplete_set(session: Session, workout_set: WorkoutSet) -> SetUpdateResult:
    workout_set.is_completed = False
    workout_set.completed_at = None
    session.add(workout_set)
    session.commit()
    session.refresh(workout_set)
    return SetUpdateResult(workout_set=workout_set, next_focus_set_id=workout_set.id)


def update_set(
    session: Session,
    workout_set: WorkoutSet,
    weight: float | None = None,
    reps: int | None = None,
    duration_seconds: int | None = None,
    distance_meters: float | None = None,
) -> WorkoutSet:
    if weight is not None:
        workout_set.weight = weight
    if reps is not None:
        workout_set.reps = reps
    if duration_seconds is not None:
        workout_set.duration_seconds = duration_seconds
    if distance_meters is not None:
        workout_set.distance_meters = distance_meters
    session.add(workout_set)
    session.commit()
    session.refresh(workout_set)
    return workout_set


def soft_delete_set(session: Session, workout_set: WorkoutSet) -> WorkoutSet:
    workout_set.is_soft_deleted = True
    session.add(workout_set)
    session.commit()
    session.refresh(workout_set)
    return workout_set


def restore_set(session: Session, workout_set: WorkoutSet) -> WorkoutSet:
    workout_set.is_soft_deleted = False
    session.add(workout_set)
    session.commit()
    session.refresh(workout_set)
    return workout_set


def next_focus_set_id(session: Session, workout_set: WorkoutSet) -> int | None:
    """First open set after ``workout_set``: later in its entry, then in later entries."""
    entry = session.get(WorkoutExerciseEntry, workout_set.entry_id)
    if entry is None:
        return None
    entries = sorted_entries(session, entry.workout_day_id)
    position = next(i for i, e in enumerate(entries) if e.id == entry.id)

    for s in entry_sets(session, entry.id):
        if not s.is_completed and s.set_index > workout_set.set_index:
            return s.id
    for later in entries[position + 1 :]:
        for s in entry_sets(session, later.id):
            if not s.is_completed:
                return s.id
    return None


def _after_set_change(
    session: Session, workout_set: WorkoutSet, now: datetime | None
) -> SetUpdateResult:
    entry = session.get(WorkoutExerciseEntry, workout_set.entry_id)
    workout_day = session.get(WorkoutDay, entry.workout_day_id)
    routine_completed = False
    if workout_set.is_completed and is_routine_completed(session, workout_day):
        routine_completed = complete_workout_day(session, workout_day, now)
    return SetUpdateResult(
        workout_set=workout_set,
        next_focus_set_id=next_focus_set_id(session, workout_set),
        routine_completed=routine_completed,
    )


# ---------------------------------------------------------------------------
# Statistics and completion
# ---------------------------------------------------------------------------


def get_statistics(session: Session, workout_day: WorkoutDay) -> WorkoutStatistics:
    """Completed-set aggregates; soft-deleted sets never count."""
    completed_sets = 0
    volume = 0.0
    exercises_with_sets = 0
    for entry in sorted_entries(session, workout_day.id):
        done = [s for s in entry_sets(session, entry.id) if s.is_completed]
        if done:
            exercises_with_sets += 1
        completed_sets += len(done)
        volume += sum(
            s.weight * s.reps
            for s in done
            if s.metric_type == SetMetricType.WEIGHT_REPS and s.weight is not None and s.reps is not None
        )
    return WorkoutStatistics(
        completed_sets=completed_sets, volume=volume, exercises_with_sets=exercises_with_sets
    )


def completed_set_count(session: Session, workout_day: WorkoutDay) -> int:
    return get_statistics(session, workout_day).completed_sets


def is_routine_completed(session: Session, workout_day: WorkoutDay) -> bool:
    """A routine day is complete when every entry with planned sets has all its active sets done."""
    if workout_day.mode != WorkoutMode.ROUTINE:
        return False
    for entry in sorted_entries(session, workout_day.id):
        if entry.planned_set_count == 0:
            continue
        active = entry_sets(session, entry.id)
        if not active or not all(s.is_completed for s in active):
            return False
    return True


def _completion_instant(workout_day: WorkoutDay, transition_hour: int, now: datetime) -> datetime:
    if workout_day.date == today_workout_date(transition_hour, now):
        return now
    # Backfilled day: stamp an instant inside that workout date
    return datetime.combine(workout_day.date, time(hour=transition_hour))


def complete_workout_day(
    session: Session, workout_day: WorkoutDay, now: datetime | None = None
) -> bool:
    """Record completion on the progress that produced this routine day.

    The pointer itself moves on the next workout date (see auto-advance).
    Returns False for free-form days or when no plan context exists.
    """
    if workout_day.mode != WorkoutMode.ROUTINE or workout_day.routine_preset_id is None:
        return False
    profile = session.get(Profile, workout_day.profile_id)
    if profile is None:
        return False
    now = now or datetime.now()
    completed_at = _completion_instant(workout_day, profile.day_transition_hour, now)

    if profile.execution_mode == ExecutionMode.CYCLE:
        cycle = cycle_service.get_active_cycle(session, profile.id)
        if cycle is None:
            return False
        progress = cycle_service.ensure_progress(session, cycle)
    else:
        progress = get_or_create_progress(session, profile.id, workout_day.routine_preset_id)

    mark_completed(session, progress, completed_at)
    logger.info("workout_day_completed", workout_day_id=workout_day.id, date=workout_day.date.isoformat())
    return True
