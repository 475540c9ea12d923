import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from trainloop.routers.profile import router


@pytest.fixture(name="client")
def client_fixture(session: Session):
    from fastapi import FastAPI

    from trainloop.database import get_session

    test_app = FastAPI()
    test_app.include_router(router, prefix="/api/profile")
    test_app.dependency_overrides[get_session] = lambda: session
    return TestClient(test_app)


def test_get_creates_default_profile(client: TestClient):
    response = client.get("/api/profile/")
    assert response.status_code == 200
    body = response.json()
    assert body["execution_mode"] == "single"
    assert body["active_plan_id"] is None
    assert body["day_transition_hour"] == 3


def test_get_is_stable(client: TestClient):
    first = client.get("/api/profile/").json()
    second = client.get("/api/profile/").json()
    assert first["id"] == second["id"]


def test_patch_transition_hour(client: TestClient):
    response = client.patch("/api/profile/", json={"day_transition_hour": 0})
    assert response.status_code == 200
    assert response.json()["day_transition_hour"] == 0


def test_patch_execution_mode(client: TestClient):
    response = client.patch("/api/profile/", json={"execution_mode": "cycle"})
    assert response.status_code == 200
    assert response.json()["execution_mode"] == "cycle"


@pytest.mark.parametrize("hour", [-1, 24])
def test_patch_rejects_out_of_range_hour(client: TestClient, hour: int):
    response = client.patch("/api/profile/", json={"day_transition_hour": hour})
    assert response.status_code == 422
    assert client.get("/api/profile/").json()["day_transition_hour"] == 3
