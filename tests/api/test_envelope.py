"""Every response, including framework errors, uses the same envelope."""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app


def _assert_error_envelope(body: dict, status: int, code: str) -> None:
    assert set(body) == {"success", "statusCode", "message", "error"}
    assert body["success"] is False
    assert body["statusCode"] == status
    assert body["error"]["code"] == code
    assert isinstance(body["message"], str) and body["message"]


def test_success_envelope_shape(client: TestClient) -> None:
    body = client.get("/health").json()
    assert set(body) == {"success", "statusCode", "message", "data"}
    assert body["success"] is True
    assert body["statusCode"] == 200


def test_unknown_route_is_enveloped_404(client: TestClient) -> None:
    resp = client.get("/no/such/route")
    assert resp.status_code == 404
    _assert_error_envelope(resp.json(), 404, "not_found")


def test_wrong_method_is_enveloped_405(client: TestClient) -> None:
    resp = client.delete("/health")
    assert resp.status_code == 405
    _assert_error_envelope(resp.json(), 405, "method_not_allowed")


def test_api_error_carries_bearer_challenge(client: TestClient) -> None:
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"
    _assert_error_envelope(resp.json(), 401, "unauthenticated")


def test_malformed_json_is_validation_error(client: TestClient) -> None:
    resp = client.post(
        "/auth/login", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400
    _assert_error_envelope(resp.json(), 400, "validation_error")


def test_unhandled_exception_is_enveloped_500_without_internals() -> None:
    @app.get("/__boom")
    async def boom() -> None:
        raise RuntimeError("database password is hunter2")

    try:
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/__boom")
    finally:
        app.router.routes[:] = [r for r in app.router.routes if getattr(r, "path", None) != "/__boom"]

    assert resp.status_code == 500
    body = resp.json()
    _assert_error_envelope(body, 500, "internal_error")
    assert "hunter2" not in resp.text
