from contextlib import asynccontextmanager

from fastapi import FastAPI

import trainloop.models as _models  # noqa: F401 registers tables with SQLModel metadata
from trainloop.database import create_db_and_tables
from trainloop.logging_config import configure_logging
from trainloop.routers import cycles, exercises, plans, profile, sets, workouts


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    create_db_and_tables()
    yield


app = FastAPI(title="Trainloop", lifespan=lifespan)

app.include_router(profile.router, prefix="/api/profile", tags=["profile"])
app.include_router(exercises.router, prefix="/api/exercises", tags=["exercises"])
app.include_router(plans.router, prefix="/api/plans", tags=["plans"])
app.include_router(cycles.router, prefix="/api/cycles", tags=["cycles"])
app.include_router(workouts.router, prefix="/api/workouts", tags=["workouts"])
app.include_router(sets.router, prefix="/api/sets", tags=["sets"])
