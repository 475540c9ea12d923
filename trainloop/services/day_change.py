"""User-initiated day changes within the current plan, with undo.

A day change re-points a workout day at another plan day and re-expands it.
Before anything is touched the previous assignment and every group, entry
and set (soft-deleted ones included) are captured in a ``DayChangeUndo``
row; its id is the opaque undo token handed back to the caller. The change
and its undo each commit exactly once.
"""

from dataclasses import dataclass
from datetime import date, datetime

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from trainloop.models import (
    CycleProgress,
    DayChangeUndo,
    ExecutionMode,
    Exercise,
    Plan,
    PlanProgress,
    Profile,
    WorkoutDay,
    WorkoutExerciseEntry,
    WorkoutExerciseGroup,
    WorkoutMode,
    WorkoutSet,
)
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.expander import expand_plan_to_workout
from trainloop.services.progress import get_or_create_progress, record_advance
from trainloop.services.resolver import current_context
from trainloop.services.workouts import (
    clear_workout_day,
    completed_set_count,
    drop_undo_tokens,
    entry_sets,
    get_workout_day,
    sorted_entries,
    touch,
)

logger = structlog.get_logger(__name__)


@dataclass
class DayChangeResult:
    workout_day_id: int
    plan_day_id: int
    undo_token: int


def _plan_for(
    session: Session, profile: Profile, workout_day: WorkoutDay | None, now: datetime | None
) -> Plan | None:
    """The plan a day change operates in: the day's recorded plan, else the active one."""
    if workout_day is not None and workout_day.routine_preset_id is not None:
        plan = plan_service.get_plan(session, workout_day.routine_preset_id)
        if plan is not None:
            return plan
    context = current_context(session, profile, now)
    return context.plan if context else None


def _progress_for(session: Session, profile: Profile, plan: Plan) -> PlanProgress | CycleProgress | None:
    if profile.execution_mode == ExecutionMode.CYCLE:
        cycle = cycle_service.get_active_cycle(session, profile.id)
        if cycle is None:
            return None
        current = cycle_service.current_plan(session, cycle)
        if current is None or current.id != plan.id:
            return None
        return cycle_service.ensure_progress(session, cycle)
    return get_or_create_progress(session, profile.id, plan.id)


def can_change_day(
    session: Session,
    profile: Profile,
    workout_day: WorkoutDay | None,
    now: datetime | None = None,
) -> bool:
    """Allowed when the plan has several days and nothing has been completed yet."""
    plan = _plan_for(session, profile, workout_day, now)
    if plan is None or plan_service.day_count(session, plan.id) <= 1:
        return False
    if workout_day is None:
        return True
    return completed_set_count(session, workout_day) == 0


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def _snapshot(session: Session, workout_day: WorkoutDay) -> tuple[list[dict], list[dict]]:
    groups: list[dict] = []
    entries: list[dict] = []
    group_ids: set[int] = set()
    for entry in sorted_entries(session, workout_day.id):
        if entry.group_id is not None and entry.group_id not in group_ids:
            group = session.get(WorkoutExerciseGroup, entry.group_id)
            if group is not None:
                group_ids.add(group.id)
                groups.append(group.model_dump(mode="json", exclude={"workout_day_id"}))
        data = entry.model_dump(mode="json", exclude={"id", "workout_day_id"})
        data["sets"] = [
            s.model_dump(mode="json", exclude={"id", "entry_id"})
            for s in entry_sets(session, entry.id, include_deleted=True)
        ]
        entries.append(data)
    return groups, entries


# ---------------------------------------------------------------------------
# Change
# ---------------------------------------------------------------------------


def change_day(
    session: Session,
    profile: Profile,
    workout_date: date,
    new_day_index: int,
    skip_and_advance: bool = False,
    now: datetime | None = None,
) -> DayChangeResult | None:
    """Assign plan day ``new_day_index`` to the workout on ``workout_date``.

    With ``skip_and_advance`` the progress pointer jumps straight to the new
    day. Returns None, changing nothing, when no plan applies, the index is
    out of range, or the day already has completed sets.
    """
    workout_day = get_workout_day(session, profile.id, workout_date)
    if not can_change_day(session, profile, workout_day, now):
        logger.warning("day_change_refused", profile_id=profile.id, date=workout_date.isoformat())
        return None

    plan = _plan_for(session, profile, workout_day, now)
    new_plan_day = plan_service.day_at(session, plan.id, new_day_index)
    if new_plan_day is None:
        logger.warning("day_change_invalid_index", plan_id=plan.id, day_index=new_day_index)
        return None

    progress = _progress_for(session, profile, plan) if skip_and_advance else None

    if workout_day is None:
        workout_day = WorkoutDay(profile_id=profile.id, date=workout_date)
        session.add(workout_day)
        session.flush()

    groups, entries = _snapshot(session, workout_day)
    undo = DayChangeUndo(
        workout_day_id=workout_day.id,
        previous_mode=workout_day.mode,
        previous_routine_preset_id=workout_day.routine_preset_id,
        previous_routine_day_id=workout_day.routine_day_id,
        groups=groups,
        entries=entries,
    )

    # Only the latest change of a day can be undone
    drop_undo_tokens(session, workout_day.id)
    clear_workout_day(session, workout_day)
    workout_day.mode = WorkoutMode.ROUTINE
    workout_day.routine_preset_id = plan.id
    workout_day.routine_day_id = new_plan_day.id
    touch(workout_day)
    session.add(workout_day)
    expand_plan_to_workout(session, new_plan_day, workout_day)

    if progress is not None:
        undo.progress_kind = "cycle" if isinstance(progress, CycleProgress) else "plan"
        undo.progress_id = progress.id
        undo.previous_day_index = progress.current_day_index
        progress.current_day_index = new_day_index
        record_advance(progress, profile.day_transition_hour, now)
        if isinstance(progress, CycleProgress):
            progress.last_advanced_at = now or datetime.now()
        session.add(progress)

    session.add(undo)
    session.commit()
    logger.info(
        "day_changed",
        workout_day_id=workout_day.id,
        plan_day_id=new_plan_day.id,
        skip_and_advance=skip_and_advance,
        undo_token=undo.id,
    )
    return DayChangeResult(
        workout_day_id=workout_day.id, plan_day_id=new_plan_day.id, undo_token=undo.id
    )


# ---------------------------------------------------------------------------
# Undo
# ---------------------------------------------------------------------------


def _restore_entries(session: Session, workout_day: WorkoutDay, undo: DayChangeUndo) -> int:
    """Recreate snapshot groups, entries and sets. Returns the number of skipped entries."""
    restorable = []
    skipped = 0
    for data in undo.entries:
        if session.get(Exercise, data["exercise_id"]) is None:
            skipped += 1
            logger.warning(
                "day_change_undo_skipped_entry",
                workout_day_id=workout_day.id,
                exercise_id=data["exercise_id"],
            )
            continue
        restorable.append(data)

    used_group_ids = {data["group_id"] for data in restorable if data.get("group_id") is not None}
    group_map: dict[int, int] = {}
    for data in undo.groups:
        if data["id"] not in used_group_ids:
            continue
        group = WorkoutExerciseGroup.model_validate(
            {**data, "id": None, "workout_day_id": workout_day.id}
        )
        session.add(group)
        session.flush()
        group_map[data["id"]] = group.id

    for data in restorable:
        fields = {k: v for k, v in data.items() if k != "sets"}
        fields["workout_day_id"] = workout_day.id
        fields["group_id"] = group_map.get(data.get("group_id"))
        if fields["group_id"] is None:
            fields["group_order_index"] = None
        entry = WorkoutExerciseEntry.model_validate(fields)
        session.add(entry)
        session.flush()
        for set_data in data["sets"]:
            session.add(WorkoutSet.model_validate({**set_data, "entry_id": entry.id}))
    return skipped


def _revert_progress(session: Session, undo: DayChangeUndo) -> None:
    if undo.progress_kind is None or undo.previous_day_index is None:
        return
    model = CycleProgress if undo.progress_kind == "cycle" else PlanProgress
    progress = session.get(model, undo.progress_id)
    if progress is None:
        logger.warning("day_change_undo_progress_missing", progress_id=undo.progress_id)
        return
    progress.current_day_index = undo.previous_day_index
    session.add(progress)


def undo_day_change(session: Session, undo_token: int) -> bool:
    """Reverse one day change. Either everything is restored or nothing changes.

    Entries whose exercise has been deleted since are left out rather than
    recreated with a dangling reference. A token can be used once.
    """
    undo = session.get(DayChangeUndo, undo_token)
    if undo is None or undo.consumed:
        return False
    workout_day = session.get(WorkoutDay, undo.workout_day_id)
    if workout_day is None:
        return False

    try:
        clear_workout_day(session, workout_day)
        workout_day.mode = undo.previous_mode
        workout_day.routine_preset_id = undo.previous_routine_preset_id
        workout_day.routine_day_id = undo.previous_routine_day_id
        touch(workout_day)
        session.add(workout_day)

        skipped = _restore_entries(session, workout_day, undo)
        _revert_progress(session, undo)

        undo.consumed = True
        session.add(undo)
        session.commit()
    except (SQLAlchemyError, ValidationError, KeyError):
        session.rollback()
        logger.exception("day_change_undo_failed", undo_token=undo_token)
        return False

    logger.info(
        "day_change_undone",
        workout_day_id=workout_day.id,
        undo_token=undo_token,
        skipped_entries=skipped,
    )
    return True
