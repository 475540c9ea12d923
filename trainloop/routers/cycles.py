from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, SQLModel

from trainloop.database import get_session
from trainloop.models import Cycle, CycleItem
from trainloop.services import cycles as cycle_service
from trainloop.services import plans as plan_service
from trainloop.services.profiles import get_or_create_profile

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class CycleItemRead(SQLModel):
    id: int
    plan_id: int
    plan_name: str
    order: int


class CycleRead(SQLModel):
    id: int
    name: str
    is_active: bool
    current_item_index: int | None
    current_day_index: int | None
    items: list[CycleItemRead]


class CycleCreate(SQLModel):
    name: str
    plan_ids: list[int] = []


class AddPlanBody(SQLModel):
    plan_id: int


def _build_cycle_read(cycle: Cycle, session: Session) -> CycleRead:
    items = []
    for item in cycle_service.sorted_items(session, cycle.id):
        plan = plan_service.get_plan(session, item.plan_id)
        items.append(
            CycleItemRead(
                id=item.id,
                plan_id=item.plan_id,
                plan_name=plan.name if plan else "",
                order=item.order,
            )
        )
    progress = cycle_service.get_cycle_progress(session, cycle.id)
    return CycleRead(
        id=cycle.id,
        name=cycle.name,
        is_active=cycle.is_active,
        current_item_index=progress.current_item_index if progress else None,
        current_day_index=progress.current_day_index if progress else None,
        items=items,
    )


def _get_cycle_or_404(id: int, session: Session) -> Cycle:
    cycle = cycle_service.get_cycle(session, id)
    if cycle is None:
        raise HTTPException(status_code=404, detail="Cycle not found")
    return cycle


def _verify_plans_exist(session: Session, plan_ids: list[int]) -> None:
    for plan_id in plan_ids:
        if plan_service.get_plan(session, plan_id) is None:
            raise HTTPException(status_code=400, detail=f"Plan with id {plan_id} does not exist")


@router.get("/", response_model=list[CycleRead])
def list_cycles(session: SessionDep):
    profile = get_or_create_profile(session)
    return [_build_cycle_read(c, session) for c in cycle_service.get_cycles(session, profile.id)]


@router.post("/", response_model=CycleRead, status_code=201)
def create_cycle(body: CycleCreate, session: SessionDep):
    _verify_plans_exist(session, body.plan_ids)
    profile = get_or_create_profile(session)
    cycle = cycle_service.create_cycle(session, profile.id, body.name, body.plan_ids)
    return _build_cycle_read(cycle, session)


@router.get("/active", response_model=CycleRead | None)
def get_active_cycle(session: SessionDep):
    profile = get_or_create_profile(session)
    cycle = cycle_service.get_active_cycle(session, profile.id)
    return _build_cycle_read(cycle, session) if cycle else None


@router.post("/{id}/plans", response_model=CycleRead, status_code=201)
def add_plan(id: int, body: AddPlanBody, session: SessionDep):
    cycle = _get_cycle_or_404(id, session)
    _verify_plans_exist(session, [body.plan_id])
    cycle_service.add_plan(session, cycle, plan_service.get_plan(session, body.plan_id))
    return _build_cycle_read(cycle, session)


@router.delete("/{id}/items/{item_id}", response_model=CycleRead)
def remove_item(id: int, item_id: int, session: SessionDep):
    cycle = _get_cycle_or_404(id, session)
    item = session.get(CycleItem, item_id)
    if item is None or item.cycle_id != cycle.id:
        raise HTTPException(status_code=404, detail="Cycle item not found")
    cycle_service.remove_item(session, cycle, item)
    return _build_cycle_read(cycle, session)


@router.post("/{id}/activate", response_model=CycleRead)
def activate_cycle(id: int, session: SessionDep):
    cycle = cycle_service.set_active_cycle(session, _get_cycle_or_404(id, session))
    return _build_cycle_read(cycle, session)


@router.post("/{id}/deactivate", response_model=CycleRead)
def deactivate_cycle(id: int, session: SessionDep):
    cycle = cycle_service.deactivate_cycle(session, _get_cycle_or_404(id, session))
    return _build_cycle_read(cycle, session)


@router.post("/{id}/advance", response_model=CycleRead)
def advance_cycle(id: int, session: SessionDep):
    """Manually move the cycle to its next day."""
    cycle = _get_cycle_or_404(id, session)
    cycle_service.advance(session, cycle)
    return _build_cycle_read(cycle, session)


@router.delete("/{id}", status_code=204)
def delete_cycle(id: int, session: SessionDep):
    cycle_service.delete_cycle(session, _get_cycle_or_404(id, session))
