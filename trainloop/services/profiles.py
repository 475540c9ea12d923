import structlog
from sqlmodel import Session, select

from trainloop.config import get_settings
from trainloop.models import ExecutionMode, Profile

logger = structlog.get_logger(__name__)


def get_profile(session: Session) -> Profile | None:
    return session.exec(select(Profile).order_by(Profile.id)).first()


def get_or_create_profile(session: Session) -> Profile:
    """Return the installation's profile, creating it on first use."""
    profile = get_profile(session)
    if profile is not None:
        return profile
    profile = Profile(day_transition_hour=get_settings().DEFAULT_DAY_TRANSITION_HOUR)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    logger.info("profile_created", profile_id=profile.id)
    return profile


def update_settings(
    session: Session,
    profile: Profile,
    execution_mode: ExecutionMode | None = None,
    day_transition_hour: int | None = None,
) -> Profile:
    if day_transition_hour is not None:
        if not 0 <= day_transition_hour <= 23:
            raise ValueError(f"day_transition_hour must be within 0..23, got {day_transition_hour}")
        profile.day_transition_hour = day_transition_hour
    if execution_mode is not None:
        profile.execution_mode = execution_mode
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def set_active_plan(session: Session, profile: Profile, plan_id: int | None) -> Profile:
    """Select the plan for single mode; ``None`` switches to free-form workouts."""
    profile.active_plan_id = plan_id
    if plan_id is not None:
        profile.execution_mode = ExecutionMode.SINGLE
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def clear_active_plan(session: Session, profile: Profile) -> Profile:
    return set_active_plan(session, profile, None)
