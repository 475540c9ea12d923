from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from trainloop.database import get_session
from trainloop.models import Exercise, SetMetricType

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class ExerciseRead(SQLModel):
    id: int
    name: str
    metric_type: SetMetricType


class ExerciseCreate(SQLModel):
    name: str
    metric_type: SetMetricType = SetMetricType.WEIGHT_REPS


@router.get("/", response_model=list[ExerciseRead])
def list_exercises(session: SessionDep):
    return session.exec(select(Exercise).order_by(Exercise.name)).all()


@router.post("/", response_model=ExerciseRead, status_code=201)
def create_exercise(body: ExerciseCreate, session: SessionDep):
    exercise = Exercise(name=body.name, metric_type=body.metric_type)
    session.add(exercise)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=400, detail="Name already exists")
    session.refresh(exercise)
    return exercise


@router.delete("/{id}", status_code=204)
def delete_exercise(id: int, session: SessionDep):
    """Remove an exercise from the catalogue.

    Plans and logged workouts keep their references; a pending day-change
    undo skips entries for exercises that no longer exist.
    """
    exercise = session.get(Exercise, id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    session.delete(exercise)
    session.commit()
