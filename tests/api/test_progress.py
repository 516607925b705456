from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.models.identity import Identity
from tests.conftest import bearer, seed_program


def _complete(client: TestClient, identity: Identity, content_id: str):
    return client.post("/v1/progress/tasks", headers=bearer(identity), json={"contentId": content_id})


def test_mark_task_complete(client: TestClient, learner: Identity) -> None:
    seed_program()

    resp = _complete(client, learner, "c2")

    assert resp.status_code == 200
    assert resp.json()["data"]["completedTasks"] == ["c2"]


def test_marking_twice_is_idempotent(client: TestClient, learner: Identity) -> None:
    seed_program()
    _complete(client, learner, "c1")
    _complete(client, learner, "c3")

    again = _complete(client, learner, "c1")

    assert again.status_code == 200
    assert again.json()["data"]["completedTasks"] == ["c1", "c3"]


def test_unknown_content_is_404(client: TestClient, learner: Identity) -> None:
    seed_program()
    resp = _complete(client, learner, "does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "content_not_found"


def test_deleted_content_cannot_be_marked(client: TestClient, learner: Identity, admin: Identity) -> None:
    seed_program()
    client.delete("/v1/catalog/nodes/c3", headers=bearer(admin))

    assert _complete(client, learner, "c3").status_code == 404


def test_admin_cannot_record_progress(client: TestClient, admin: Identity) -> None:
    seed_program()
    assert _complete(client, admin, "c1").status_code == 403
    assert client.get("/v1/progress", headers=bearer(admin)).status_code == 403


def test_progress_summary(client: TestClient, learner: Identity) -> None:
    seed_program()
    _complete(client, learner, "c1")

    resp = client.get("/v1/progress", headers=bearer(learner))

    assert resp.status_code == 200
    [summary] = resp.json()["data"]
    assert summary["programId"] == "p1"
    assert summary["progress"] == pytest.approx(1 / 3)
    assert (summary["completedCount"], summary["totalCount"]) == (1, 3)


def test_progress_reaches_one(client: TestClient, learner: Identity) -> None:
    seed_program()
    for content_id in ("c1", "c2", "c3"):
        _complete(client, learner, content_id)

    [summary] = client.get("/v1/progress", headers=bearer(learner)).json()["data"]
    assert summary["progress"] == 1.0


def test_empty_content_id_is_rejected(client: TestClient, learner: Identity) -> None:
    assert _complete(client, learner, "").status_code == 400
