"""Liveness and readiness probes.

/health answers "is the process up?" and reports each dependency; it is
200 even when degraded, because restarting the container would not fix a
database outage.  /ready answers "should traffic come here?" and is 503
while the database, the one dependency without an in-memory fallback
once configured, is unreachable.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.api.envelope import CamelModel, Envelope, error_response, ok
from app.db.engine import database_status
from app.db.redis import redis_status

router = APIRouter(tags=["health"])


class HealthOut(CamelModel):
    status: str
    checks: dict[str, str]


@router.get("/health")
async def health() -> Envelope[HealthOut]:
    checks = {"database": await database_status(), "redis": await redis_status()}
    overall = "degraded" if "unavailable" in checks.values() else "ok"
    return ok(HealthOut(status=overall, checks=checks))


@router.get("/ready", response_model=None)
async def ready() -> Envelope[HealthOut] | JSONResponse:
    db = await database_status()
    if db == "unavailable":
        return error_response(503, "not_ready", "Database unavailable", {"database": db})
    return ok(HealthOut(status="ready", checks={"database": db}))
