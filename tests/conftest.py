import os

# Keep the module-level engine off the working directory's database file
os.environ.setdefault("TRAINLOOP_DATABASE_URL", "sqlite://")
os.environ.setdefault("TRAINLOOP_APP_ENV", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from trainloop.database import get_session  # noqa: E402
from trainloop.main import app  # noqa: E402
from trainloop.models import Profile  # noqa: E402
from trainloop.services.profiles import get_or_create_profile  # noqa: E402


@pytest.fixture(name="session")
def session_fixture():
    # StaticPool ensures the in-memory DB is shared across all connections,
    # including those spawned by TestClient's anyio thread pool.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="profile")
def profile_fixture(session: Session) -> Profile:
    return get_or_create_profile(session)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()
