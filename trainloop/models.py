from datetime import date, datetime
from enum import Enum

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class ExecutionMode(str, Enum):
    SINGLE = "single"
    CYCLE = "cycle"


class WorkoutMode(str, Enum):
    FREE = "free"
    ROUTINE = "routine"


class EntrySource(str, Enum):
    FREE = "free"
    ROUTINE = "routine"


class SetMetricType(str, Enum):
    WEIGHT_REPS = "weight_reps"
    BODYWEIGHT_REPS = "bodyweight_reps"
    TIME_DISTANCE = "time_distance"
    COMPLETION = "completion"


# ---------------------------------------------------------------------------
# Profile and catalogue
# ---------------------------------------------------------------------------


class Profile(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    execution_mode: ExecutionMode = ExecutionMode.SINGLE
    active_plan_id: int | None = None
    day_transition_hour: int = 3
    created_at: datetime = Field(default_factory=datetime.now)


class Exercise(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    metric_type: SetMetricType = SetMetricType.WEIGHT_REPS


# ---------------------------------------------------------------------------
# Plan templates
# ---------------------------------------------------------------------------


class Plan(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profile.id", index=True)
    name: str
    note: str | None = None
    is_archived: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class PlanDay(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    plan_id: int = Field(foreign_key="plan.id", index=True)
    day_index: int  # 1-based, contiguous within a plan
    name: str | None = None
    is_rest_day: bool = False


class PlanExerciseGroup(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    plan_day_id: int = Field(foreign_key="planday.id", index=True)
    order_index: int = 0
    set_count: int = 3
    round_rest_seconds: int | None = None


class PlanExercise(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    plan_day_id: int = Field(foreign_key="planday.id", index=True)
    exercise_id: int = Field(foreign_key="exercise.id")
    order_index: int = 0
    group_id: int | None = Field(default=None, foreign_key="planexercisegroup.id")
    group_order_index: int | None = None
    metric_type: SetMetricType = SetMetricType.WEIGHT_REPS
    planned_set_count: int = 0


class PlannedSet(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    plan_exercise_id: int = Field(foreign_key="planexercise.id", index=True)
    order_index: int = 0
    target_weight: float | None = None  # kg
    target_reps: int | None = None
    target_duration_seconds: int | None = None
    target_distance_meters: float | None = None
    rest_time_seconds: int | None = None


# ---------------------------------------------------------------------------
# Cycles and progress pointers
# ---------------------------------------------------------------------------


class Cycle(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profile.id", index=True)
    name: str
    is_active: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CycleItem(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    cycle_id: int = Field(foreign_key="cycle.id", index=True)
    plan_id: int = Field(foreign_key="plan.id")
    order: int = 0  # 0-based, contiguous within a cycle


class CycleProgress(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    cycle_id: int = Field(foreign_key="cycle.id", unique=True)
    current_item_index: int = 0  # 0-based
    current_day_index: int = 1  # 1-based
    last_completed_at: datetime | None = None
    last_advanced_at: datetime | None = None
    last_advanced_for: date | None = None
    last_opened_for: date | None = None


class PlanProgress(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("profile_id", "plan_id"),)

    id: int | None = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profile.id")
    plan_id: int = Field(foreign_key="plan.id")
    current_day_index: int = 1  # 1-based
    last_completed_at: datetime | None = None
    last_advanced_for: date | None = None
    last_opened_for: date | None = None


# ---------------------------------------------------------------------------
# Logged workouts
# ---------------------------------------------------------------------------


class WorkoutDay(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("profile_id", "date"),)

    id: int | None = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profile.id")
    mode: WorkoutMode = WorkoutMode.FREE
    routine_preset_id: int | None = None
    routine_day_id: int | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    date: date  # workout date, transition hour already applied


class WorkoutExerciseGroup(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    workout_day_id: int = Field(foreign_key="workoutday.id", index=True)
    order_index: int = 0
    set_count: int = 3
    round_rest_seconds: int | None = None


class WorkoutExerciseEntry(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    workout_day_id: int = Field(foreign_key="workoutday.id", index=True)
    exercise_id: int = Field(foreign_key="exercise.id")
    order_index: int = 0
    metric_type: SetMetricType = SetMetricType.WEIGHT_REPS
    source: EntrySource = EntrySource.FREE
    planned_set_count: int = 0
    group_id: int | None = Field(default=None, foreign_key="workoutexercisegroup.id")
    group_order_index: int | None = None


class WorkoutSet(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    entry_id: int = Field(foreign_key="workoutexerciseentry.id", index=True)
    set_index: int
    metric_type: SetMetricType = SetMetricType.WEIGHT_REPS
    weight: float | None = None  # kg
    reps: int | None = None
    duration_seconds: int | None = None
    distance_meters: float | None = None
    rest_time_seconds: int | None = None
    is_completed: bool = False
    completed_at: datetime | None = None
    is_soft_deleted: bool = False


class DayChangeUndo(SQLModel, table=True):
    # Token ids are never reused after older rows are pruned
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(default=None, primary_key=True)
    workout_day_id: int = Field(foreign_key="workoutday.id", index=True)
    previous_mode: WorkoutMode
    previous_routine_preset_id: int | None = None
    previous_routine_day_id: int | None = None
    groups: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    entries: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    progress_kind: str | None = None  # "plan" | "cycle"
    progress_id: int | None = None
    previous_day_index: int | None = None
    consumed: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
