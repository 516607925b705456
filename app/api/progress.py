"""Learner progress: mark content items done, read per-program progress.

Marking is idempotent: re-sending an id that is already completed
returns the same set with 200.  Only live content items can be marked.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import Field

from app.api.dependencies import catalog_repo, identity_repo, require_roles
from app.api.envelope import ApiError, CamelModel, Envelope, ok
from app.core.errors import not_found
from app.models.identity import Identity, Role
from app.services import projector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])

require_learner = require_roles(Role.USER)


class CompleteTaskIn(CamelModel):
    content_id: str = Field(min_length=1, max_length=64)


class CompletedTasksOut(CamelModel):
    completed_tasks: list[str]


class ProgramProgressOut(CamelModel):
    program_id: str
    name: str
    progress: float
    completed_count: int
    total_count: int


@router.post("/tasks")
async def complete_task(
    payload: CompleteTaskIn,
    identity: Annotated[Identity, Depends(require_learner)],
) -> Envelope[CompletedTasksOut]:
    item = await catalog_repo.find_live_content_item(payload.content_id)
    if item is None:
        raise ApiError(not_found("Content item not found", "content_not_found"))

    updated = await identity_repo.add_completed_task(identity.id, item.id)
    if updated is None:
        raise ApiError(not_found("Identity not found", "identity_not_found"))

    logger.info("Task completed  identity=%s content=%s", identity.id, item.id)
    return ok(CompletedTasksOut(completed_tasks=sorted(updated.completed_tasks)))


@router.get("")
async def get_progress(
    identity: Annotated[Identity, Depends(require_learner)],
) -> Envelope[list[ProgramProgressOut]]:
    view = projector.project_learner(
        await catalog_repo.snapshot(), identity.completed_tasks
    )
    return ok(
        [
            ProgramProgressOut(
                program_id=p.id,
                name=p.name,
                progress=p.progress,
                completed_count=p.completed_count,
                total_count=p.total_count,
            )
            for p in view.programs
        ]
    )
