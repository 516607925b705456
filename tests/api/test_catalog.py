"""Catalog reads per role, admin writes, soft delete."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import identity_repo
from app.models.identity import Identity
from tests.conftest import bearer, seed_program


def _complete(identity: Identity, *content_ids: str) -> None:
    for content_id in content_ids:
        asyncio.run(identity_repo.add_completed_task(identity.id, content_id))


def test_learner_sees_progress_one_of_three(client: TestClient, learner: Identity) -> None:
    seed_program()
    _complete(learner, "c1")

    resp = client.get("/v1/programs", headers=bearer(learner))

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["view"] == "learner"
    program = data["programs"][0]
    assert program["progress"] == pytest.approx(1 / 3)
    assert program["completedCount"] == 1
    assert program["totalCount"] == 3
    items = program["materials"][0]["items"]
    assert [(i["id"], i["completed"]) for i in items] == [
        ("c1", True),
        ("c2", False),
        ("c3", False),
    ]
    # The empty practical is not shown to learners.
    assert program["practicals"] == []


def test_learner_view_hides_deleted_nodes(client: TestClient, learner: Identity, admin: Identity) -> None:
    seed_program()
    assert client.delete("/v1/catalog/nodes/c2", headers=bearer(admin)).status_code == 200

    program = client.get("/v1/programs", headers=bearer(learner)).json()["data"]["programs"][0]

    assert [i["id"] for i in program["materials"][0]["items"]] == ["c1", "c3"]
    assert program["totalCount"] == 2
    assert "isDeleted" not in program


def test_admin_sees_full_tree_with_deleted_flags(client: TestClient, admin: Identity) -> None:
    seed_program()
    client.delete("/v1/catalog/nodes/c2", headers=bearer(admin))

    data = client.get("/v1/programs", headers=bearer(admin)).json()["data"]

    assert data["view"] == "admin"
    program = data["programs"][0]
    contents = program["materials"][0]["contents"]
    assert [(c["id"], c["isDeleted"]) for c in contents] == [
        ("c1", False),
        ("c2", True),
        ("c3", False),
    ]
    assert program["practicals"][0]["id"] == "pr1"
    assert "progress" not in program


def test_admin_can_hide_deleted_nodes(client: TestClient, admin: Identity) -> None:
    seed_program()
    client.delete("/v1/catalog/nodes/c2", headers=bearer(admin))

    resp = client.get("/v1/programs", params={"includeDeleted": "false"}, headers=bearer(admin))

    contents = resp.json()["data"]["programs"][0]["materials"][0]["contents"]
    assert [c["id"] for c in contents] == ["c1", "c3"]


def test_get_program_detail_per_role(
    client: TestClient, learner: Identity, super_admin: Identity
) -> None:
    seed_program()

    as_learner = client.get("/v1/programs/p1", headers=bearer(learner)).json()["data"]
    as_admin = client.get("/v1/programs/p1", headers=bearer(super_admin)).json()["data"]

    assert as_learner["view"] == "learner"
    assert as_learner["program"]["progress"] == 0
    assert as_admin["view"] == "admin"
    assert as_admin["program"]["isDeleted"] is False


def test_deleted_program_is_404_for_learner_but_visible_to_admin(
    client: TestClient, learner: Identity, admin: Identity
) -> None:
    seed_program()
    client.delete("/v1/catalog/nodes/p1", headers=bearer(admin))

    learner_resp = client.get("/v1/programs/p1", headers=bearer(learner))
    admin_resp = client.get("/v1/programs/p1", headers=bearer(admin))

    assert learner_resp.status_code == 404
    assert learner_resp.json()["error"]["code"] == "program_not_found"
    assert admin_resp.status_code == 200
    assert admin_resp.json()["data"]["program"]["isDeleted"] is True
    assert client.get("/v1/programs", headers=bearer(learner)).json()["data"]["programs"] == []


def test_unknown_program_is_404(client: TestClient, admin: Identity) -> None:
    resp = client.get("/v1/programs/nope", headers=bearer(admin))
    assert resp.status_code == 404


def test_catalog_requires_authentication(client: TestClient) -> None:
    assert client.get("/v1/programs").status_code == 401


def test_admin_creates_program_with_ordered_contents(client: TestClient, admin: Identity) -> None:
    resp = client.post(
        "/v1/programs",
        headers=bearer(admin),
        json={
            "name": "Data Science",
            "materials": [
                {
                    "name": "Week 1",
                    "contents": [
                        {"name": "second", "sortOrder": 2},
                        {"name": "first", "sortOrder": 1, "payload": {"url": "https://x"}},
                    ],
                }
            ],
            "assignments": [{"name": "Homework"}],
        },
    )

    assert resp.status_code == 201
    program = resp.json()["data"]
    assert program["name"] == "Data Science"
    names = [c["name"] for c in program["materials"][0]["contents"]]
    assert names == ["first", "second"]
    assert program["materials"][0]["kind"] == "material"
    assert program["assignments"][0]["kind"] == "assignment"

    listed = client.get("/v1/programs", headers=bearer(admin)).json()["data"]["programs"]
    assert [p["id"] for p in listed] == [program["id"]]


def test_learner_cannot_create_or_delete(client: TestClient, learner: Identity) -> None:
    seed_program()
    created = client.post("/v1/programs", headers=bearer(learner), json={"name": "Nope"})
    deleted = client.delete("/v1/catalog/nodes/c1", headers=bearer(learner))
    assert created.status_code == 403
    assert deleted.status_code == 403


def test_delete_unknown_node_is_404(client: TestClient, admin: Identity) -> None:
    resp = client.delete("/v1/catalog/nodes/missing", headers=bearer(admin))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "node_not_found"


def test_deleting_a_section_hides_it_from_learners(
    client: TestClient, learner: Identity, admin: Identity
) -> None:
    seed_program()
    _complete(learner, "c1")
    client.delete("/v1/catalog/nodes/m1", headers=bearer(admin))

    program = client.get("/v1/programs", headers=bearer(learner)).json()["data"]["programs"][0]

    assert program["materials"] == []
    assert program["totalCount"] == 0
    assert program["progress"] == 0
