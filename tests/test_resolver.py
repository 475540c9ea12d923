"""Unit tests for day resolution: recorded assignments and previews."""

from datetime import date, datetime

from sqlmodel import Session, func, select

from trainloop.models import Exercise, PlanProgress, Profile, WorkoutDay
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.profiles import set_active_plan
from trainloop.services.progress import get_or_create_progress, get_progress
from trainloop.services.resolver import current_context, resolve_day_info
from trainloop.services.today import setup_today_workout
from trainloop.services.workouts import add_entry, get_or_create_workout_day

NOW = datetime(2024, 5, 15, 10, 0)
TODAY = date(2024, 5, 15)

# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _make_plan(session: Session, profile: Profile, name: str, day_count: int):
    days = [plan_service.DayTemplate(name=f"{name} {i}") for i in range(1, day_count + 1)]
    return plan_service.create_plan(session, profile.id, name, days)


def _activate_plan(session: Session, profile: Profile, day_count: int = 4, pointer: int = 1):
    plan = _make_plan(session, profile, "Plan", day_count)
    set_active_plan(session, profile, plan.id)
    progress = get_or_create_progress(session, profile.id, plan.id)
    progress.current_day_index = pointer
    session.add(progress)
    session.commit()
    return plan


def _count(session: Session, model) -> int:
    return session.exec(select(func.count()).select_from(model)).one()


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


def test_preview_projects_pointer_by_date_offset(session: Session, profile: Profile):
    _activate_plan(session, profile, day_count=4, pointer=2)

    def index_on(day: int) -> int:
        return resolve_day_info(session, profile, date(2024, 5, day), NOW).day_index

    assert index_on(15) == 2
    assert index_on(16) == 3
    assert index_on(17) == 4
    assert index_on(18) == 1
    assert index_on(14) == 1
    assert index_on(13) == 4


def test_preview_reports_day_name_and_total(session: Session, profile: Profile):
    plan = _activate_plan(session, profile, day_count=3, pointer=1)
    info = resolve_day_info(session, profile, TODAY, NOW)
    assert info.total_days == 3
    assert info.day_name == "Plan 1"
    assert info.plan_id == plan.id


def test_preview_has_no_side_effects(session: Session, profile: Profile):
    plan = _make_plan(session, profile, "Plan", 3)
    set_active_plan(session, profile, plan.id)

    for day in range(10, 20):
        assert resolve_day_info(session, profile, date(2024, 5, day), NOW) is not None

    assert _count(session, PlanProgress) == 0
    assert _count(session, WorkoutDay) == 0


def test_preview_counts_from_pending_completion(session: Session, profile: Profile):
    plan = _activate_plan(session, profile, day_count=4, pointer=2)
    progress = get_progress(session, profile.id, plan.id)
    progress.last_completed_at = datetime(2024, 5, 14, 18, 0)
    session.add(progress)
    session.commit()

    # Yesterday's day 2 is done, so today previews as day 3
    assert resolve_day_info(session, profile, TODAY, NOW).day_index == 3

    # Opening today agrees with the preview
    setup_today_workout(session, profile, NOW)
    assert resolve_day_info(session, profile, TODAY, NOW).day_index == 3
    assert get_progress(session, profile.id, plan.id).current_day_index == 3


def test_preview_after_a_gap_matches_what_opening_creates(session: Session, profile: Profile):
    plan = _activate_plan(session, profile, day_count=4, pointer=1)
    progress = get_progress(session, profile.id, plan.id)
    progress.last_completed_at = datetime(2024, 5, 13, 18, 0)
    session.add(progress)
    session.commit()
    thursday = datetime(2024, 5, 16, 10, 0)

    # Monday's day 1 is done; the pointer moves once, however long the gap
    assert resolve_day_info(session, profile, date(2024, 5, 16), thursday).day_index == 2
    assert resolve_day_info(session, profile, date(2024, 5, 17), thursday).day_index == 3

    created = setup_today_workout(session, profile, thursday)
    assert created.routine_day_id == plan_service.day_at(session, plan.id, 2).id
    assert resolve_day_info(session, profile, date(2024, 5, 17), thursday).day_index == 3


def test_preview_steps_past_an_opened_rest_day(session: Session, profile: Profile):
    rest = plan_service.DayTemplate(name="Rest", is_rest_day=True)
    train = plan_service.DayTemplate(name="Train")
    plan = plan_service.create_plan(session, profile.id, "Plan", [rest, train, train])
    set_active_plan(session, profile, plan.id)
    setup_today_workout(session, profile, datetime(2024, 5, 14, 10, 0))

    assert resolve_day_info(session, profile, TODAY, NOW).day_index == 2
    created = setup_today_workout(session, profile, NOW)
    assert created.routine_day_id == plan_service.day_at(session, plan.id, 2).id


def test_no_plan_resolves_to_none(session: Session, profile: Profile):
    assert resolve_day_info(session, profile, TODAY, NOW) is None
    assert current_context(session, profile, NOW) is None


def test_plan_without_days_resolves_to_none(session: Session, profile: Profile):
    plan = _make_plan(session, profile, "Empty", 0)
    set_active_plan(session, profile, plan.id)
    assert resolve_day_info(session, profile, TODAY, NOW) is None


# ---------------------------------------------------------------------------
# Recorded assignments
# ---------------------------------------------------------------------------


def test_recorded_assignment_wins_over_pointer(session: Session, profile: Profile):
    plan = _activate_plan(session, profile, day_count=4, pointer=2)
    setup_today_workout(session, profile, NOW)

    progress = get_progress(session, profile.id, plan.id)
    progress.current_day_index = 4
    session.add(progress)
    session.commit()

    info = resolve_day_info(session, profile, TODAY, NOW)
    assert info.day_index == 2
    assert info.day_name == "Plan 2"


def test_recorded_assignment_of_deleted_plan_is_free(session: Session, profile: Profile):
    plan = _activate_plan(session, profile, day_count=2)
    setup_today_workout(session, profile, NOW)

    plan_service.delete_plan(session, plan)
    assert resolve_day_info(session, profile, TODAY, NOW) is None


def test_free_day_with_entries_has_no_plan_context(session: Session, profile: Profile):
    _activate_plan(session, profile, day_count=3)
    exercise = Exercise(name="Squat")
    session.add(exercise)
    session.commit()
    workout_day = get_or_create_workout_day(session, profile.id, date(2024, 5, 16))
    add_entry(session, workout_day, exercise.id)

    assert resolve_day_info(session, profile, date(2024, 5, 16), NOW) is None


def test_empty_free_day_still_previews(session: Session, profile: Profile):
    _activate_plan(session, profile, day_count=3)
    get_or_create_workout_day(session, profile.id, date(2024, 5, 16))
    assert resolve_day_info(session, profile, date(2024, 5, 16), NOW).day_index == 2


# ---------------------------------------------------------------------------
# Cycle mode
# ---------------------------------------------------------------------------


def test_cycle_preview_uses_current_plan(session: Session, profile: Profile):
    first = _make_plan(session, profile, "A", 2)
    second = _make_plan(session, profile, "B", 3)
    cycle = cycle_service.create_cycle(session, profile.id, "Block", [first.id, second.id])
    cycle_service.set_active_cycle(session, cycle)
    progress = cycle_service.get_cycle_progress(session, cycle.id)
    progress.current_item_index = 1
    progress.current_day_index = 2
    session.add(progress)
    session.commit()
    session.refresh(profile)

    today = resolve_day_info(session, profile, TODAY, NOW)
    assert (today.plan_id, today.day_index, today.day_name) == (second.id, 2, "B 2")
    assert resolve_day_info(session, profile, date(2024, 5, 16), NOW).day_index == 3
    assert resolve_day_info(session, profile, date(2024, 5, 17), NOW).day_index == 1


def test_cycle_recorded_assignment_resolves_against_its_plan(session: Session, profile: Profile):
    first = _make_plan(session, profile, "A", 2)
    second = _make_plan(session, profile, "B", 3)
    cycle = cycle_service.create_cycle(session, profile.id, "Block", [first.id, second.id])
    cycle_service.set_active_cycle(session, cycle)
    session.refresh(profile)
    setup_today_workout(session, profile, NOW)

    # Rotation moves on to the next plan; today's record still says A 1
    cycle_service.advance(session, cycle)
    cycle_service.advance(session, cycle)

    info = resolve_day_info(session, profile, TODAY, NOW)
    assert (info.plan_id, info.day_index) == (first.id, 1)


def test_cycle_preview_after_completion_rolls_into_next_plan(session: Session, profile: Profile):
    first = _make_plan(session, profile, "A", 1)
    second = _make_plan(session, profile, "B", 2)
    cycle = cycle_service.create_cycle(session, profile.id, "Block", [first.id, second.id])
    cycle_service.set_active_cycle(session, cycle)
    progress = cycle_service.get_cycle_progress(session, cycle.id)
    progress.last_completed_at = datetime(2024, 5, 12, 18, 0)
    session.add(progress)
    session.commit()
    session.refresh(profile)

    info = resolve_day_info(session, profile, TODAY, NOW)
    assert (info.plan_id, info.day_index) == (second.id, 1)
    assert resolve_day_info(session, profile, date(2024, 5, 16), NOW).day_index == 2

    created = setup_today_workout(session, profile, NOW)
    assert created.routine_preset_id == second.id
    assert created.routine_day_id == plan_service.day_at(session, second.id, 1).id
