from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, SQLModel

from trainloop.database import get_session
from trainloop.models import WorkoutSet
from trainloop.routers.workouts import SetRead, SetUpdateRead, build_set_update_read
from trainloop.services import workouts as workout_service

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class SetComplete(SQLModel):
    weight: float | None = None
    reps: int | None = None


class SetUpdate(SQLModel):
    weight: float | None = None
    reps: int | None = None
    duration_seconds: int | None = None
    distance_meters: float | None = None


def _get_set_or_404(set_id: int, session: Session) -> WorkoutSet:
    workout_set = session.get(WorkoutSet, set_id)
    if workout_set is None:
        raise HTTPException(status_code=404, detail="Set not found")
    return workout_set


@router.post("/{set_id}/complete", response_model=SetUpdateRead)
def complete_set(set_id: int, session: SessionDep, body: SetComplete | None = None):
    body = body or SetComplete()
    result = workout_service.complete_set(
        session, _get_set_or_404(set_id, session), weight=body.weight, reps=body.reps
    )
    return build_set_update_read(result)


@router.post("/{set_id}/uncomplete", response_model=SetUpdateRead)
def uncomplete_set(set_id: int, session: SessionDep):
    result = workout_service.uncomplete_set(session, _get_set_or_404(set_id, session))
    return build_set_update_read(result)


@router.post("/{set_id}/restore", response_model=SetRead)
def restore_set(set_id: int, session: SessionDep):
    return workout_service.restore_set(session, _get_set_or_404(set_id, session))


@router.patch("/{set_id}", response_model=SetRead)
def update_set(set_id: int, body: SetUpdate, session: SessionDep):
    return workout_service.update_set(
        session,
        _get_set_or_404(set_id, session),
        weight=body.weight,
        reps=body.reps,
        duration_seconds=body.duration_seconds,
        distance_meters=body.distance_meters,
    )


@router.delete("/{set_id}", status_code=204)
def delete_set(set_id: int, session: SessionDep):
    """Soft-delete: the set drops out of statistics but can be restored."""
    workout_service.soft_delete_set(session, _get_set_or_404(set_id, session))
