"""One learner journey through the whole API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.identity import Role
from tests.conftest import bearer, seed_identity

client = TestClient(app)


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_openapi_docs_are_off_outside_dev() -> None:
    assert client.get("/docs").status_code == 404


def test_learner_journey() -> None:
    admin = seed_identity("admin@example.com", role=Role.ADMIN)
    created = client.post(
        "/v1/programs",
        headers=bearer(admin),
        json={
            "name": "Intro",
            "materials": [
                {
                    "name": "Week 1",
                    "contents": [{"name": f"Lesson {n}", "sortOrder": n} for n in (1, 2, 3, 4)],
                }
            ],
        },
    ).json()["data"]
    lesson_ids = [c["id"] for c in created["materials"][0]["contents"]]

    session = client.post(
        "/auth/register",
        json={"name": "Grace", "email": "grace@example.com", "password": "long-enough-pw"},
    ).json()["data"]
    headers = _auth(session["accessToken"])

    for content_id in lesson_ids[:2]:
        assert (
            client.post("/v1/progress/tasks", headers=headers, json={"contentId": content_id}).status_code
            == 200
        )

    program = client.get(f"/v1/programs/{created['id']}", headers=headers).json()["data"]["program"]
    assert program["progress"] == pytest.approx(0.5)

    # Removing an unfinished lesson raises the learner's progress.
    client.delete(f"/v1/catalog/nodes/{lesson_ids[3]}", headers=bearer(admin))
    program = client.get(f"/v1/programs/{created['id']}", headers=headers).json()["data"]["program"]
    assert program["progress"] == pytest.approx(2 / 3)

    me = client.get("/auth/me", headers=headers).json()["data"]
    assert sorted(me["completedTasks"]) == sorted(lesson_ids[:2])
