"""Cycle items and the cycle progress row, kept valid as items come and go.

Plan and cycle services both edit items (deleting a plan detaches it from
every cycle), so this module only depends on the models.
"""

import structlog
from sqlmodel import Session, select

from trainloop.models import CycleItem, CycleProgress

logger = structlog.get_logger(__name__)


def sorted_items(session: Session, cycle_id: int) -> list[CycleItem]:
    return list(
        session.exec(
            select(CycleItem)
            .where(CycleItem.cycle_id == cycle_id)
            .order_by(CycleItem.order, CycleItem.id)
        ).all()
    )


def get_cycle_progress(session: Session, cycle_id: int) -> CycleProgress | None:
    return session.exec(select(CycleProgress).where(CycleProgress.cycle_id == cycle_id)).first()


def progresses_on_plan(session: Session, plan_id: int) -> list[CycleProgress]:
    """Cycle progress rows whose current item is ``plan_id``."""
    cycle_ids = {
        item.cycle_id
        for item in session.exec(select(CycleItem).where(CycleItem.plan_id == plan_id)).all()
    }
    found = []
    for cycle_id in sorted(cycle_ids):
        progress = get_cycle_progress(session, cycle_id)
        if progress is None:
            continue
        items = sorted_items(session, cycle_id)
        if 0 <= progress.current_item_index < len(items) and (
            items[progress.current_item_index].plan_id == plan_id
        ):
            found.append(progress)
    return found


def reindex_items(session: Session, cycle_id: int) -> None:
    for order, item in enumerate(sorted_items(session, cycle_id)):
        if item.order != order:
            item.order = order
            session.add(item)


def remove_cycle_item(session: Session, item: CycleItem) -> None:
    """Delete one item, re-index the rest to 0..N-1 and keep the pointer valid. The caller commits."""
    cycle_id = item.cycle_id
    removed_position = next(
        (i for i, other in enumerate(sorted_items(session, cycle_id)) if other.id == item.id), None
    )
    session.delete(item)
    session.flush()
    reindex_items(session, cycle_id)

    progress = get_cycle_progress(session, cycle_id)
    if progress is None or removed_position is None:
        return
    remaining = len(sorted_items(session, cycle_id))
    if remaining == 0:
        progress.current_item_index = 0
        progress.current_day_index = 1
    elif removed_position < progress.current_item_index:
        progress.current_item_index -= 1
    elif removed_position == progress.current_item_index:
        # The pointer now lands on the plan that followed the removed one
        progress.current_item_index %= remaining
        progress.current_day_index = 1
    session.add(progress)


def detach_plan(session: Session, plan_id: int) -> None:
    """Remove every cycle item that references ``plan_id``. The caller commits."""
    items = session.exec(select(CycleItem).where(CycleItem.plan_id == plan_id)).all()
    for item in items:
        remove_cycle_item(session, item)
        logger.info("cycle_item_detached", cycle_id=item.cycle_id, plan_id=plan_id)
