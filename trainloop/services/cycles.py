"""Plan cycles: ordered, looping sequences of plans.

Progress through a cycle is the pair (current_item_index, current_day_index):
0-based into the cycle's items, 1-based into the current plan's days. The
pair only moves through ``advance`` (or an explicit day change); a new
progress row starts at (0, 1) and there is no terminal state.
"""

from datetime import datetime

import structlog
from sqlmodel import Session, select

from trainloop.models import Cycle, CycleItem, CycleProgress, ExecutionMode, Plan, PlanDay, Profile
from trainloop.services import plans as plan_service
from trainloop.services.cycle_items import get_cycle_progress, remove_cycle_item, sorted_items
from trainloop.services.progress import record_advance, record_open, should_advance

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Cycle management
# ---------------------------------------------------------------------------


def create_cycle(
    session: Session, profile_id: int, name: str, plan_ids: list[int] | None = None
) -> Cycle:
    cycle = Cycle(profile_id=profile_id, name=name)
    session.add(cycle)
    session.flush()
    for order, plan_id in enumerate(plan_ids or []):
        session.add(CycleItem(cycle_id=cycle.id, plan_id=plan_id, order=order))
    session.commit()
    session.refresh(cycle)
    return cycle


def get_cycles(session: Session, profile_id: int) -> list[Cycle]:
    return list(
        session.exec(
            select(Cycle)
            .where(Cycle.profile_id == profile_id)
            .order_by(Cycle.created_at.desc(), Cycle.id.desc())
        ).all()
    )


def get_cycle(session: Session, cycle_id: int) -> Cycle | None:
    return session.get(Cycle, cycle_id)


def get_active_cycle(session: Session, profile_id: int) -> Cycle | None:
    return session.exec(
        select(Cycle).where(Cycle.profile_id == profile_id, Cycle.is_active == True)  # noqa: E712
    ).first()


def set_active_cycle(session: Session, cycle: Cycle) -> Cycle:
    """Activate ``cycle``, deactivating every other cycle of the same profile."""
    for other in get_cycles(session, cycle.profile_id):
        if other.id != cycle.id and other.is_active:
            other.is_active = False
            session.add(other)

    cycle.is_active = True
    _touch(cycle)
    session.add(cycle)

    profile = session.get(Profile, cycle.profile_id)
    if profile is not None and profile.execution_mode != ExecutionMode.CYCLE:
        profile.execution_mode = ExecutionMode.CYCLE
        session.add(profile)

    session.commit()
    ensure_progress(session, cycle)
    session.refresh(cycle)
    logger.info("cycle_activated", cycle_id=cycle.id, profile_id=cycle.profile_id)
    return cycle


def deactivate_cycle(session: Session, cycle: Cycle) -> Cycle:
    """Clear the active flag. Progress is kept so re-activation resumes."""
    cycle.is_active = False
    _touch(cycle)
    session.add(cycle)
    session.commit()
    session.refresh(cycle)
    logger.info("cycle_deactivated", cycle_id=cycle.id)
    return cycle


def delete_cycle(session: Session, cycle: Cycle) -> None:
    for item in sorted_items(session, cycle.id):
        session.delete(item)
    progress = get_cycle_progress(session, cycle.id)
    if progress is not None:
        session.delete(progress)
    session.delete(cycle)
    session.commit()


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def add_plan(session: Session, cycle: Cycle, plan: Plan) -> CycleItem:
    items = sorted_items(session, cycle.id)
    next_order = (max(item.order for item in items) + 1) if items else 0
    item = CycleItem(cycle_id=cycle.id, plan_id=plan.id, order=next_order)
    session.add(item)
    _touch(cycle)
    session.add(cycle)
    session.commit()
    session.refresh(item)
    return item


def remove_item(session: Session, cycle: Cycle, item: CycleItem) -> None:
    remove_cycle_item(session, item)
    _touch(cycle)
    session.add(cycle)
    session.commit()


def move_item(session: Session, cycle: Cycle, from_index: int, to_index: int) -> list[CycleItem]:
    items = sorted_items(session, cycle.id)
    if not (0 <= from_index < len(items) and 0 <= to_index < len(items)):
        return items
    item = items.pop(from_index)
    items.insert(to_index, item)
    for order, moved in enumerate(items):
        moved.order = order
        session.add(moved)
    _touch(cycle)
    session.add(cycle)
    session.commit()
    return sorted_items(session, cycle.id)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def ensure_progress(session: Session, cycle: Cycle) -> CycleProgress:
    progress = get_cycle_progress(session, cycle.id)
    if progress is None:
        progress = CycleProgress(cycle_id=cycle.id, current_item_index=0, current_day_index=1)
        session.add(progress)
        session.commit()
        session.refresh(progress)
    return progress


def reset_progress(session: Session, cycle: Cycle) -> CycleProgress:
    progress = ensure_progress(session, cycle)
    progress.current_item_index = 0
    progress.current_day_index = 1
    progress.last_advanced_at = None
    progress.last_completed_at = None
    progress.last_advanced_for = None
    progress.last_opened_for = None
    session.add(progress)
    session.commit()
    return progress


def current_plan(session: Session, cycle: Cycle) -> Plan | None:
    progress = get_cycle_progress(session, cycle.id)
    if progress is None:
        return None
    items = sorted_items(session, cycle.id)
    if not 0 <= progress.current_item_index < len(items):
        return None
    return plan_service.get_plan(session, items[progress.current_item_index].plan_id)


def current_plan_day(session: Session, cycle: Cycle) -> tuple[Plan, PlanDay] | None:
    """Resolve the plan and day the cycle points at, or None if anything is missing."""
    plan = current_plan(session, cycle)
    if plan is None:
        return None
    progress = get_cycle_progress(session, cycle.id)
    plan_day = plan_service.day_at(session, plan.id, progress.current_day_index)
    if plan_day is None:
        return None
    return plan, plan_day


# ---------------------------------------------------------------------------
# Advancement
# ---------------------------------------------------------------------------


def _plan_day_count(session: Session, item: CycleItem) -> int:
    if plan_service.get_plan(session, item.plan_id) is None:
        return 0
    return plan_service.day_count(session, item.plan_id)


def _skip_empty_plans(session: Session, progress: CycleProgress, items: list[CycleItem]) -> bool:
    """Move forward from the current item to the first plan that has days."""
    for _ in range(len(items)):
        if _plan_day_count(session, items[progress.current_item_index]) > 0:
            return True
        progress.current_item_index = (progress.current_item_index + 1) % len(items)
        progress.current_day_index = 1
    return False


def _step(session: Session, progress: CycleProgress, items: list[CycleItem]) -> bool:
    if progress.current_item_index >= len(items):
        progress.current_item_index = 0
        progress.current_day_index = 1
        return _skip_empty_plans(session, progress, items)

    total_days = _plan_day_count(session, items[progress.current_item_index])
    if 0 < total_days and progress.current_day_index < total_days:
        progress.current_day_index += 1
        return True

    progress.current_item_index = (progress.current_item_index + 1) % len(items)
    progress.current_day_index = 1
    return _skip_empty_plans(session, progress, items)


def next_position(
    session: Session, cycle: Cycle, item_index: int, day_index: int
) -> tuple[int, int] | None:
    """Where ``advance`` would move a pointer at (item_index, day_index), without writing."""
    items = sorted_items(session, cycle.id)
    if not items:
        return None
    ahead = CycleProgress(
        cycle_id=cycle.id, current_item_index=item_index, current_day_index=day_index
    )
    if not _step(session, ahead, items):
        return None
    return ahead.current_item_index, ahead.current_day_index


def advance(session: Session, cycle: Cycle, now: datetime | None = None) -> bool:
    """Move the cycle to its next day, rolling over to the next plan after the last day.

    Plans that were deleted or have no days are skipped. Returns False when
    the cycle has no progress yet (it is created at (0, 1)), no items, or no
    plan with days.
    """
    progress = get_cycle_progress(session, cycle.id)
    if progress is None:
        ensure_progress(session, cycle)
        return False

    items = sorted_items(session, cycle.id)
    if not items:
        return False

    before = (progress.current_item_index, progress.current_day_index)
    advanced = _step(session, progress, items)
    progress.last_advanced_at = now or datetime.now()
    profile = session.get(Profile, cycle.profile_id)
    if profile is not None:
        record_advance(progress, profile.day_transition_hour, now)
    session.add(progress)
    session.commit()
    logger.info(
        "cycle_advanced",
        cycle_id=cycle.id,
        from_state=before,
        to_state=(progress.current_item_index, progress.current_day_index),
    )
    return advanced


def auto_advance_if_stale(
    session: Session, cycle: Cycle, transition_hour: int, now: datetime | None = None
) -> bool:
    """Advance once when the last completed workout date, or an opened rest day, has rolled over."""
    progress = get_cycle_progress(session, cycle.id)
    if progress is None:
        return False
    resolved = current_plan_day(session, cycle)
    on_rest_day = resolved is not None and resolved[1].is_rest_day
    if not should_advance(progress, on_rest_day, transition_hour, now):
        if record_open(progress, transition_hour, now):
            session.add(progress)
            session.commit()
        return False
    record_advance(progress, transition_hour, now)
    session.add(progress)
    return advance(session, cycle, now)


def _touch(cycle: Cycle) -> None:
    cycle.updated_at = datetime.now()
