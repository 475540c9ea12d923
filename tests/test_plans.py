from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from trainloop.database import get_session
from trainloop.models import Exercise, Profile
from trainloop.routers.plans import router
from trainloop.services.workouts import add_entry, get_or_create_workout_day, log_set


@pytest.fixture(name="client")
def client_fixture(session: Session):
    from fastapi import FastAPI

    test_app = FastAPI()
    test_app.include_router(router, prefix="/api/plans")
    test_app.dependency_overrides[get_session] = lambda: session
    return TestClient(test_app)


def make_exercises(session: Session, *names: str) -> list[int]:
    """Create Exercise records and return their IDs."""
    ids = []
    for name in names:
        exercise = Exercise(name=name)
        session.add(exercise)
        session.commit()
        session.refresh(exercise)
        ids.append(exercise.id)
    return ids


def _plan_body(*exercise_ids: int) -> dict:
    return {
        "name": "Full Body",
        "days": [
            {
                "name": "A",
                "blocks": [{"exercises": [{"exercise_id": exercise_ids[0], "planned_set_count": 3}]}],
            },
            {
                "name": "B",
                "blocks": [
                    {
                        "grouped": True,
                        "set_count": 4,
                        "exercises": [{"exercise_id": i} for i in exercise_ids[1:]],
                    }
                ],
            },
            {"name": "Rest", "is_rest_day": True},
        ],
    }


# ---------------------------------------------------------------------------
# POST / and GET /{id}
# ---------------------------------------------------------------------------


def test_create_plan(session: Session, client: TestClient):
    squat, curl, dip = make_exercises(session, "Squat", "Curl", "Dip")

    response = client.post("/api/plans/", json=_plan_body(squat, curl, dip))
    assert response.status_code == 201
    data = response.json()
    assert [d["day_index"] for d in data["days"]] == [1, 2, 3]
    assert data["days"][0]["exercises"][0]["exercise_name"] == "Squat"
    assert data["days"][2]["is_rest_day"] is True

    grouped = data["days"][1]["exercises"]
    assert [e["exercise_name"] for e in grouped] == ["Curl", "Dip"]
    assert grouped[0]["group_id"] == grouped[1]["group_id"] is not None
    assert [e["planned_set_count"] for e in grouped] == [4, 4]


def test_create_plan_unknown_exercise(client: TestClient):
    response = client.post("/api/plans/", json=_plan_body(999, 998))
    assert response.status_code == 400


def test_get_plan(session: Session, client: TestClient):
    squat, curl = make_exercises(session, "Squat", "Curl")
    plan_id = client.post("/api/plans/", json=_plan_body(squat, curl)).json()["id"]

    response = client.get(f"/api/plans/{plan_id}")
    assert response.status_code == 200
    assert response.json()["name"] == "Full Body"


def test_get_plan_not_found(client: TestClient):
    assert client.get("/api/plans/9999").status_code == 404


# ---------------------------------------------------------------------------
# GET /
# ---------------------------------------------------------------------------


def test_list_plans(session: Session, client: TestClient):
    squat, curl = make_exercises(session, "Squat", "Curl")
    client.post("/api/plans/", json=_plan_body(squat, curl))

    plans = client.get("/api/plans/").json()
    assert len(plans) == 1
    assert plans[0]["day_count"] == 3


# ---------------------------------------------------------------------------
# POST /{id}/activate and DELETE /{id}
# ---------------------------------------------------------------------------


def test_activate_plan_sets_profile(session: Session, client: TestClient):
    from trainloop.services.profiles import get_profile

    squat, curl = make_exercises(session, "Squat", "Curl")
    plan_id = client.post("/api/plans/", json=_plan_body(squat, curl)).json()["id"]

    response = client.post(f"/api/plans/{plan_id}/activate")
    assert response.status_code == 200
    profile = get_profile(session)
    assert profile.active_plan_id == plan_id
    assert profile.execution_mode == "single"


def test_activate_plan_not_found(client: TestClient):
    assert client.post("/api/plans/9999/activate").status_code == 404


def test_delete_plan(session: Session, client: TestClient):
    squat, curl = make_exercises(session, "Squat", "Curl")
    plan_id = client.post("/api/plans/", json=_plan_body(squat, curl)).json()["id"]
    client.post(f"/api/plans/{plan_id}/activate")

    response = client.delete(f"/api/plans/{plan_id}")
    assert response.status_code == 204
    assert client.get(f"/api/plans/{plan_id}").status_code == 404
    assert client.get("/api/plans/").json() == []


def test_delete_plan_not_found(client: TestClient):
    assert client.delete("/api/plans/9999").status_code == 404


# ---------------------------------------------------------------------------
# PUT /exercises/{id}/sets
# ---------------------------------------------------------------------------


def test_sync_plan_exercise_from_logged_sets(session: Session, client: TestClient, profile: Profile):
    squat, curl = make_exercises(session, "Squat", "Curl")
    plan = client.post("/api/plans/", json=_plan_body(squat, curl)).json()
    plan_exercise_id = plan["days"][0]["exercises"][0]["id"]

    workout_day = get_or_create_workout_day(session, profile.id, date(2024, 5, 15))
    entry = add_entry(session, workout_day, squat)
    log_set(session, entry, weight=100.0, reps=5)
    log_set(session, entry, weight=105.0, reps=3)

    response = client.put(
        f"/api/plans/exercises/{plan_exercise_id}/sets", json={"entry_id": entry.id}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["planned_set_count"] == 2
    assert [(s["target_weight"], s["target_reps"]) for s in data["planned_sets"]] == [
        (100.0, 5),
        (105.0, 3),
    ]


def test_sync_plan_exercise_not_found(client: TestClient):
    response = client.put("/api/plans/exercises/9999/sets", json={"entry_id": 1})
    assert response.status_code == 404


def test_sync_plan_exercise_unknown_entry(session: Session, client: TestClient):
    squat, curl = make_exercises(session, "Squat", "Curl")
    plan = client.post("/api/plans/", json=_plan_body(squat, curl)).json()
    plan_exercise_id = plan["days"][0]["exercises"][0]["id"]

    response = client.put(f"/api/plans/exercises/{plan_exercise_id}/sets", json={"entry_id": 999})
    assert response.status_code == 400
