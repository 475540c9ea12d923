"""
Seed the database with a demo catalogue, two plans, an active cycle and a
couple of weeks of logged history.
Run with: python -m trainloop.seed

WARNING: Drops all existing data before inserting.
"""

import random
from datetime import date, datetime, time, timedelta

from sqlmodel import Session, select

from trainloop.database import create_db_and_tables, engine
from trainloop.logging_config import configure_logging
from trainloop.models import (
    Cycle,
    CycleItem,
    CycleProgress,
    DayChangeUndo,
    Exercise,
    Plan,
    PlanDay,
    PlanExercise,
    PlanExerciseGroup,
    PlannedSet,
    PlanProgress,
    Profile,
    SetMetricType,
    WorkoutDay,
    WorkoutExerciseEntry,
    WorkoutExerciseGroup,
    WorkoutMode,
    WorkoutSet,
)
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.expander import expand_plan_to_workout
from trainloop.services.profiles import get_or_create_profile
from trainloop.services.workouts import entry_sets, sorted_entries

# Reproducible data
RANDOM_SEED = 42

HISTORY_DAYS = 14

# ---------------------------------------------------------------------------
# Exercise catalogue
# ---------------------------------------------------------------------------

# name -> (metric type, base weight in kg or None for bodyweight)
EXERCISES: dict[str, tuple[SetMetricType, float | None]] = {
    "Bench Press": (SetMetricType.WEIGHT_REPS, 80.0),
    "Overhead Press": (SetMetricType.WEIGHT_REPS, 50.0),
    "Tricep Pushdown": (SetMetricType.WEIGHT_REPS, 35.0),
    "Lateral Raise": (SetMetricType.WEIGHT_REPS, 10.0),
    "Deadlift": (SetMetricType.WEIGHT_REPS, 120.0),
    "Barbell Row": (SetMetricType.WEIGHT_REPS, 70.0),
    "Pull-up": (SetMetricType.BODYWEIGHT_REPS, None),
    "Barbell Curl": (SetMetricType.WEIGHT_REPS, 30.0),
    "Squat": (SetMetricType.WEIGHT_REPS, 100.0),
    "Romanian Deadlift": (SetMetricType.WEIGHT_REPS, 80.0),
    "Standing Calf Raise": (SetMetricType.WEIGHT_REPS, 60.0),
    "Hanging Leg Raise": (SetMetricType.BODYWEIGHT_REPS, None),
    "Rowing Machine": (SetMetricType.TIME_DISTANCE, None),
    "Mobility Flow": (SetMetricType.COMPLETION, None),
}

# Plan layouts: day name -> blocks; a block with several names is a superset
PUSH_PULL_LEGS: list[tuple[str, list[list[str]]]] = [
    ("Push", [["Bench Press"], ["Overhead Press"], ["Tricep Pushdown", "Lateral Raise"]]),
    ("Pull", [["Deadlift"], ["Barbell Row"], ["Pull-up", "Barbell Curl"]]),
    ("Legs", [["Squat"], ["Romanian Deadlift"], ["Standing Calf Raise", "Hanging Leg Raise"]]),
]

UPPER_LOWER: list[tuple[str, list[list[str]]]] = [
    ("Upper", [["Bench Press"], ["Barbell Row"], ["Overhead Press"]]),
    ("Lower", [["Squat"], ["Romanian Deadlift"], ["Rowing Machine"]]),
    ("Rest", []),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _day_templates(
    layout: list[tuple[str, list[list[str]]]], exercise_map: dict[str, Exercise]
) -> list[plan_service.DayTemplate]:
    days = []
    for day_name, blocks in layout:
        block_templates = []
        for names in blocks:
            exercises = []
            for name in names:
                exercise = exercise_map[name]
                base = EXERCISES[name][1]
                planned_sets = [
                    plan_service.PlannedSetTemplate(
                        target_weight=base,
                        target_reps=5 if exercise.metric_type != SetMetricType.TIME_DISTANCE else None,
                        target_duration_seconds=600 if exercise.metric_type == SetMetricType.TIME_DISTANCE else None,
                        rest_time_seconds=120,
                    )
                    for _ in range(3)
                ]
                exercises.append(
                    plan_service.ExerciseTemplate(exercise_id=exercise.id, planned_sets=planned_sets)
                )
            block_templates.append(
                plan_service.BlockTemplate(
                    exercises=exercises, grouped=len(exercises) > 1, round_rest_seconds=90
                )
            )
        days.append(
            plan_service.DayTemplate(name=day_name, is_rest_day=not blocks, blocks=block_templates)
        )
    return days


def _progression_weight(base: float, workout_idx: int, rng: random.Random) -> float:
    """Progressive overload with realistic noise. Rounds to nearest 2.5 kg."""
    factor = 1.0 + 0.025 * workout_idx + rng.uniform(-0.05, 0.05)
    return round(base * factor / 2.5) * 2.5


def _log_history(session: Session, profile: Profile, cycle: Cycle, rng: random.Random) -> int:
    """Train through the cycle on every other day of the last HISTORY_DAYS days."""
    logged = 0
    start_date = date.today() - timedelta(days=HISTORY_DAYS)
    for offset in range(0, HISTORY_DAYS, 2):
        workout_date = start_date + timedelta(days=offset)
        resolved = cycle_service.current_plan_day(session, cycle)
        if resolved is None:
            break
        plan, plan_day = resolved

        workout_day = WorkoutDay(
            profile_id=profile.id,
            date=workout_date,
            mode=WorkoutMode.ROUTINE,
            routine_preset_id=plan.id,
            routine_day_id=plan_day.id,
        )
        session.add(workout_day)
        session.flush()
        expand_plan_to_workout(session, plan_day, workout_day)

        finished_at = datetime.combine(workout_date, time(hour=18))
        for entry in sorted_entries(session, workout_day.id):
            for workout_set in entry_sets(session, entry.id):
                if workout_set.weight is not None:
                    workout_set.weight = _progression_weight(workout_set.weight, logged, rng)
                if workout_set.metric_type in (SetMetricType.WEIGHT_REPS, SetMetricType.BODYWEIGHT_REPS):
                    workout_set.reps = rng.randint(5, 10)
                workout_set.is_completed = True
                workout_set.completed_at = finished_at
                session.add(workout_set)
        session.commit()

        cycle_service.advance(session, cycle, now=finished_at)
        logged += 1
    return logged


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def seed() -> None:
    rng = random.Random(RANDOM_SEED)

    configure_logging()
    create_db_and_tables()

    with Session(engine) as session:
        # ------------------------------------------------------------------
        # Wipe existing data (children first)
        # ------------------------------------------------------------------
        for model in [
            DayChangeUndo,
            WorkoutSet,
            WorkoutExerciseEntry,
            WorkoutExerciseGroup,
            WorkoutDay,
            CycleProgress,
            CycleItem,
            Cycle,
            PlanProgress,
            PlannedSet,
            PlanExercise,
            PlanExerciseGroup,
            PlanDay,
            Plan,
            Exercise,
            Profile,
        ]:
            for row in session.exec(select(model)).all():
                session.delete(row)
        session.commit()
        print("Cleared existing data.")

        profile = get_or_create_profile(session)

        # ------------------------------------------------------------------
        # Exercises
        # ------------------------------------------------------------------
        exercise_map: dict[str, Exercise] = {}
        for name, (metric_type, _) in EXERCISES.items():
            exercise = Exercise(name=name, metric_type=metric_type)
            session.add(exercise)
            exercise_map[name] = exercise
        session.commit()
        for exercise in exercise_map.values():
            session.refresh(exercise)
        print(f"Created {len(exercise_map)} exercises.")

        # ------------------------------------------------------------------
        # Plans and cycle
        # ------------------------------------------------------------------
        ppl = plan_service.create_plan(
            session, profile.id, "Push Pull Legs", _day_templates(PUSH_PULL_LEGS, exercise_map)
        )
        upper_lower = plan_service.create_plan(
            session, profile.id, "Upper Lower", _day_templates(UPPER_LOWER, exercise_map)
        )
        print("Created 2 plans.")

        cycle = cycle_service.create_cycle(
            session, profile.id, "Hypertrophy block", [ppl.id, upper_lower.id]
        )
        cycle_service.set_active_cycle(session, cycle)
        print(f"Created and activated cycle '{cycle.name}'.")

        # ------------------------------------------------------------------
        # History
        # ------------------------------------------------------------------
        logged = _log_history(session, profile, cycle, rng)
        print(f"Logged {logged} workouts.")
        print("Seed complete!")


if __name__ == "__main__":
    seed()
