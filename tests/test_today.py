"""Unit tests for opening today's workout."""

from datetime import datetime

from sqlmodel import Session, func, select

from trainloop.models import (
    EntrySource,
    ExecutionMode,
    Exercise,
    Profile,
    WorkoutDay,
    WorkoutExerciseEntry,
    WorkoutMode,
)
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.profiles import set_active_plan
from trainloop.services.progress import get_progress
from trainloop.services.today import apply_plan_today, setup_today_workout
from trainloop.services.workouts import (
    add_entry,
    complete_set,
    entry_sets,
    get_or_create_workout_day,
    get_workout_day,
    sorted_entries,
)

MONDAY = datetime(2024, 5, 13, 18, 0)
TUESDAY = datetime(2024, 5, 14, 9, 0)


def _add_exercise(session: Session, name: str) -> Exercise:
    exercise = Exercise(name=name)
    session.add(exercise)
    session.commit()
    session.refresh(exercise)
    return exercise


def _make_plan(session: Session, profile: Profile, name: str = "Plan", day_count: int = 3):
    exercise = _add_exercise(session, f"{name} lift")
    days = [
        plan_service.DayTemplate(
            name=f"{name} {i}",
            blocks=[
                plan_service.BlockTemplate(
                    exercises=[plan_service.ExerciseTemplate(exercise_id=exercise.id, planned_set_count=2)]
                )
            ],
        )
        for i in range(1, day_count + 1)
    ]
    return plan_service.create_plan(session, profile.id, name, days)


def _rest_first_plan(session: Session, profile: Profile):
    row = _add_exercise(session, "Row")
    pull = plan_service.DayTemplate(
        name="Pull",
        blocks=[
            plan_service.BlockTemplate(
                exercises=[plan_service.ExerciseTemplate(exercise_id=row.id, planned_set_count=2)]
            )
        ],
    )
    rest = plan_service.DayTemplate(name="Rest", is_rest_day=True)
    return plan_service.create_plan(session, profile.id, "Rest first", [rest, pull])


def _finish(session: Session, workout_day: WorkoutDay, now: datetime) -> None:
    for entry in sorted_entries(session, workout_day.id):
        for workout_set in entry_sets(session, entry.id):
            complete_set(session, workout_set, weight=50.0, reps=5, now=now)


def _entry_count(session: Session) -> int:
    return session.exec(select(func.count()).select_from(WorkoutExerciseEntry)).one()


def test_first_open_expands_current_day(session: Session, profile: Profile):
    plan = _make_plan(session, profile)
    set_active_plan(session, profile, plan.id)

    workout_day = setup_today_workout(session, profile, MONDAY)

    assert workout_day.mode == WorkoutMode.ROUTINE
    assert workout_day.routine_preset_id == plan.id
    assert workout_day.routine_day_id == plan_service.day_at(session, plan.id, 1).id
    assert _entry_count(session) == 1


def test_second_open_does_not_duplicate(session: Session, profile: Profile):
    plan = _make_plan(session, profile)
    set_active_plan(session, profile, plan.id)

    first = setup_today_workout(session, profile, MONDAY)
    second = setup_today_workout(session, profile, MONDAY.replace(hour=20))

    assert first.id == second.id
    assert _entry_count(session) == 1


def test_without_plan_opens_free_day(session: Session, profile: Profile):
    workout_day = setup_today_workout(session, profile, MONDAY)
    assert workout_day.mode == WorkoutMode.FREE
    assert _entry_count(session) == 0


def test_existing_free_entries_are_kept(session: Session, profile: Profile):
    plan = _make_plan(session, profile)
    set_active_plan(session, profile, plan.id)
    curl = _add_exercise(session, "Curl")
    free_day = get_or_create_workout_day(session, profile.id, MONDAY.date())
    add_entry(session, free_day, curl.id)

    workout_day = setup_today_workout(session, profile, MONDAY)

    assert workout_day.id == free_day.id
    assert workout_day.mode == WorkoutMode.FREE
    assert [e.exercise_id for e in sorted_entries(session, workout_day.id)] == [curl.id]


def test_empty_existing_day_is_linked(session: Session, profile: Profile):
    plan = _make_plan(session, profile)
    set_active_plan(session, profile, plan.id)
    empty_day = get_or_create_workout_day(session, profile.id, MONDAY.date())

    workout_day = setup_today_workout(session, profile, MONDAY)

    assert workout_day.id == empty_day.id
    assert workout_day.mode == WorkoutMode.ROUTINE
    assert _entry_count(session) == 1


def test_next_day_after_completion_moves_on(session: Session, profile: Profile):
    plan = _make_plan(session, profile)
    set_active_plan(session, profile, plan.id)

    monday = setup_today_workout(session, profile, MONDAY)
    _finish(session, monday, MONDAY)
    tuesday = setup_today_workout(session, profile, TUESDAY)

    assert tuesday.routine_day_id == plan_service.day_at(session, plan.id, 2).id
    assert get_progress(session, profile.id, plan.id).current_day_index == 2


def test_skipped_day_does_not_advance(session: Session, profile: Profile):
    plan = _make_plan(session, profile)
    set_active_plan(session, profile, plan.id)

    setup_today_workout(session, profile, MONDAY)
    tuesday = setup_today_workout(session, profile, TUESDAY)

    assert tuesday.routine_day_id == plan_service.day_at(session, plan.id, 1).id


def test_cycle_rolls_into_next_plan(session: Session, profile: Profile):
    first = _make_plan(session, profile, "A", 1)
    second = _make_plan(session, profile, "B", 2)
    cycle = cycle_service.create_cycle(session, profile.id, "Block", [first.id, second.id])
    cycle_service.set_active_cycle(session, cycle)
    session.refresh(profile)

    monday = setup_today_workout(session, profile, MONDAY)
    assert monday.routine_preset_id == first.id
    _finish(session, monday, MONDAY)

    tuesday = setup_today_workout(session, profile, TUESDAY)
    assert tuesday.routine_preset_id == second.id
    assert tuesday.routine_day_id == plan_service.day_at(session, second.id, 1).id


# ---------------------------------------------------------------------------
# Rest days
# ---------------------------------------------------------------------------


def test_rest_day_moves_on_after_rollover(session: Session, profile: Profile):
    plan = _rest_first_plan(session, profile)
    set_active_plan(session, profile, plan.id)
    rest_id = plan_service.day_at(session, plan.id, 1).id
    pull_id = plan_service.day_at(session, plan.id, 2).id

    opened = [setup_today_workout(session, profile, datetime(2024, 5, 13 + i, 9, 0)) for i in range(4)]

    # Pull is never finished, so it stays put after the rest day
    assert [d.routine_day_id for d in opened] == [rest_id, pull_id, pull_id, pull_id]
    assert get_progress(session, profile.id, plan.id).current_day_index == 2


def test_rest_day_reopened_same_day_stays(session: Session, profile: Profile):
    plan = _rest_first_plan(session, profile)
    set_active_plan(session, profile, plan.id)

    setup_today_workout(session, profile, MONDAY)
    setup_today_workout(session, profile, MONDAY.replace(hour=23))

    assert get_progress(session, profile.id, plan.id).current_day_index == 1


def test_cycle_rest_day_moves_on_after_rollover(session: Session, profile: Profile):
    plan = _rest_first_plan(session, profile)
    other = _make_plan(session, profile, "B", 1)
    cycle = cycle_service.create_cycle(session, profile.id, "Block", [plan.id, other.id])
    cycle_service.set_active_cycle(session, cycle)
    session.refresh(profile)

    monday = setup_today_workout(session, profile, MONDAY)
    assert monday.routine_day_id == plan_service.day_at(session, plan.id, 1).id
    assert _entry_count(session) == 0

    tuesday = setup_today_workout(session, profile, TUESDAY)
    assert tuesday.routine_day_id == plan_service.day_at(session, plan.id, 2).id
    progress = cycle_service.get_cycle_progress(session, cycle.id)
    assert (progress.current_item_index, progress.current_day_index) == (0, 2)


# ---------------------------------------------------------------------------
# apply_plan_today
# ---------------------------------------------------------------------------


def test_apply_plan_today_replaces_entries_and_sets_pointer(session: Session, profile: Profile):
    plan = _make_plan(session, profile, "A", 3)
    curl = _add_exercise(session, "Curl")
    free_day = get_or_create_workout_day(session, profile.id, MONDAY.date())
    add_entry(session, free_day, curl.id)

    workout_day = apply_plan_today(session, profile, plan, 2, MONDAY)

    assert workout_day.id == free_day.id
    assert workout_day.mode == WorkoutMode.ROUTINE
    assert workout_day.routine_day_id == plan_service.day_at(session, plan.id, 2).id
    entries = sorted_entries(session, workout_day.id)
    assert [e.source for e in entries] == [EntrySource.ROUTINE]
    assert curl.id not in {e.exercise_id for e in entries}
    assert profile.active_plan_id == plan.id
    assert profile.execution_mode == ExecutionMode.SINGLE
    assert get_progress(session, profile.id, plan.id).current_day_index == 2

    # Reopening today keeps the applied day
    again = setup_today_workout(session, profile, MONDAY.replace(hour=21))
    assert again.routine_day_id == plan_service.day_at(session, plan.id, 2).id


def test_apply_plan_today_unknown_day_changes_nothing(session: Session, profile: Profile):
    plan = _make_plan(session, profile, "A", 3)

    assert apply_plan_today(session, profile, plan, 4, MONDAY) is None
    assert get_workout_day(session, profile.id, MONDAY.date()) is None
    assert profile.active_plan_id is None
