from datetime import date, datetime

import structlog
from sqlmodel import Session, select

from trainloop.models import CycleProgress, PlanProgress
from trainloop.services.dates import today_workout_date, workout_date

logger = structlog.get_logger(__name__)

Progress = PlanProgress | CycleProgress


def advance_day_index(current_day_index: int, day_count: int) -> int:
    """Next 1-based day index, wrapping from ``day_count`` back to 1."""
    if day_count <= 0:
        return current_day_index
    return (current_day_index % day_count) + 1


def clamp_day_index(progress: Progress, day_count: int) -> bool:
    """Pull the pointer back inside 1..day_count. Returns True if it moved."""
    clamped = max(1, min(progress.current_day_index, day_count))
    if clamped == progress.current_day_index:
        return False
    progress.current_day_index = clamped
    return True


def shift_for_removed_day(progress: Progress, removed_day_index: int, day_count: int) -> None:
    """Keep the pointer on the same plan day after the day at ``removed_day_index`` is gone."""
    if progress.current_day_index > removed_day_index:
        progress.current_day_index -= 1
    clamp_day_index(progress, day_count)


def get_progress(session: Session, profile_id: int, plan_id: int) -> PlanProgress | None:
    return session.exec(
        select(PlanProgress).where(
            PlanProgress.profile_id == profile_id,
            PlanProgress.plan_id == plan_id,
        )
    ).first()


def get_or_create_progress(session: Session, profile_id: int, plan_id: int) -> PlanProgress:
    progress = get_progress(session, profile_id, plan_id)
    if progress is not None:
        return progress
    progress = PlanProgress(profile_id=profile_id, plan_id=plan_id, current_day_index=1)
    session.add(progress)
    session.commit()
    session.refresh(progress)
    logger.info("plan_progress_created", profile_id=profile_id, plan_id=plan_id)
    return progress


def mark_completed(session: Session, progress: Progress, now: datetime | None = None) -> None:
    """Record a completion. Does not move the pointer.

    An older completion (backfilling a past day) never replaces a newer one.
    """
    completed_at = now or datetime.now()
    if progress.last_completed_at is not None and completed_at <= progress.last_completed_at:
        return
    progress.last_completed_at = completed_at
    session.add(progress)
    session.commit()


def pending_completion_date(progress: Progress, transition_hour: int) -> date | None:
    """Workout date of the last completion if the pointer has not moved past it yet."""
    if progress.last_completed_at is None:
        return None
    completed_for = workout_date(progress.last_completed_at, transition_hour)
    if progress.last_advanced_for is not None and progress.last_advanced_for >= completed_for:
        return None
    return completed_for


def is_advance_due(progress: Progress, transition_hour: int, now: datetime | None = None) -> bool:
    completed_for = pending_completion_date(progress, transition_hour)
    return completed_for is not None and completed_for < today_workout_date(transition_hour, now)


def is_rest_day_over(
    progress: Progress, on_rest_day: bool, transition_hour: int, now: datetime | None = None
) -> bool:
    """True when the pointer sat on a rest day that was opened on an earlier workout date."""
    if not on_rest_day or progress.last_opened_for is None:
        return False
    return progress.last_opened_for < today_workout_date(transition_hour, now)


def should_advance(
    progress: Progress, on_rest_day: bool, transition_hour: int, now: datetime | None = None
) -> bool:
    """Whether the next open of today moves the pointer one day forward."""
    return is_advance_due(progress, transition_hour, now) or is_rest_day_over(
        progress, on_rest_day, transition_hour, now
    )


def record_advance(progress: Progress, transition_hour: int, now: datetime | None = None) -> None:
    """Stamp what the pointer just moved past, so it is not consumed twice."""
    if is_advance_due(progress, transition_hour, now):
        progress.last_advanced_for = workout_date(progress.last_completed_at, transition_hour)
    progress.last_opened_for = today_workout_date(transition_hour, now)


def record_open(progress: Progress, transition_hour: int, now: datetime | None = None) -> bool:
    """Stamp today's workout date as opened. Returns True if it changed."""
    today = today_workout_date(transition_hour, now)
    if progress.last_opened_for == today:
        return False
    progress.last_opened_for = today
    return True


def auto_advance_if_stale(
    session: Session,
    progress: PlanProgress,
    day_count: int,
    transition_hour: int,
    now: datetime | None = None,
    on_rest_day: bool = False,
) -> bool:
    """Advance once after a completed workout date, or an opened rest day, has rolled over.

    Repeated calls within the same workout date are no-ops: the completion's
    workout date is stamped into ``last_advanced_for`` when it is consumed,
    and every call stamps today into ``last_opened_for``.
    """
    if day_count <= 0 or not should_advance(progress, on_rest_day, transition_hour, now):
        if record_open(progress, transition_hour, now):
            session.add(progress)
            session.commit()
        return False

    previous = progress.current_day_index
    progress.current_day_index = advance_day_index(previous, day_count)
    record_advance(progress, transition_hour, now)
    session.add(progress)
    session.commit()
    logger.info(
        "plan_progress_auto_advanced",
        plan_id=progress.plan_id,
        from_day=previous,
        to_day=progress.current_day_index,
        rest_day=on_rest_day,
    )
    return True
