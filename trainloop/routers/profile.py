from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Field, Session, SQLModel

from trainloop.database import get_session
from trainloop.models import ExecutionMode
from trainloop.services.profiles import get_or_create_profile, update_settings

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class ProfileRead(SQLModel):
    id: int
    execution_mode: ExecutionMode
    active_plan_id: int | None
    day_transition_hour: int


class ProfileUpdate(SQLModel):
    execution_mode: ExecutionMode | None = None
    day_transition_hour: int | None = Field(default=None, ge=0, le=23)


@router.get("/", response_model=ProfileRead)
def get_profile(session: SessionDep):
    return get_or_create_profile(session)


@router.patch("/", response_model=ProfileRead)
def patch_profile(body: ProfileUpdate, session: SessionDep):
    profile = get_or_create_profile(session)
    try:
        return update_settings(
            session,
            profile,
            execution_mode=body.execution_mode,
            day_transition_hour=body.day_transition_hour,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
