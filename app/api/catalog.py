"""Catalog endpoints: role-dependent reads, admin-only writes.

Reads go through the content projector, so the response body depends on
the caller's role.  The ``view`` field says which shape was returned:

  admin    full tree, soft-deleted nodes included and flagged
           (``includeDeleted=false`` hides them)
  learner  live nodes only, items flagged ``completed``, progress per
           program and per section
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field

from app.api.dependencies import catalog_repo, require_roles
from app.api.envelope import ApiError, CamelModel, Envelope, ok
from app.core.errors import not_found
from app.models.catalog import ContentItem, Program, Section, SectionKind
from app.models.identity import ADMIN_ROLES, ALL_ROLES, Identity
from app.models.progress import (
    AdminView,
    LearnerItemView,
    LearnerProgramView,
    LearnerSectionView,
)
from app.services import projector

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])

require_any_role = require_roles(*ALL_ROLES)
require_admin = require_roles(*ADMIN_ROLES)


# --- Admin shapes ------------------------------------------------------------


class ContentItemOut(CamelModel):
    id: str
    name: str
    sort_order: int
    payload: dict[str, Any]
    is_deleted: bool

    @staticmethod
    def of(item: ContentItem) -> ContentItemOut:
        return ContentItemOut(
            id=item.id,
            name=item.name,
            sort_order=item.sort_order,
            payload=dict(item.payload),
            is_deleted=item.is_deleted,
        )


class SectionOut(CamelModel):
    id: str
    name: str
    kind: SectionKind
    is_deleted: bool
    contents: list[ContentItemOut]

    @staticmethod
    def of(section: Section) -> SectionOut:
        return SectionOut(
            id=section.id,
            name=section.name,
            kind=section.kind,
            is_deleted=section.is_deleted,
            contents=[ContentItemOut.of(i) for i in section.contents],
        )


class ProgramOut(CamelModel):
    id: str
    name: str
    description: str
    is_deleted: bool
    materials: list[SectionOut]
    practicals: list[SectionOut]
    assignments: list[SectionOut]

    @staticmethod
    def of(program: Program) -> ProgramOut:
        return ProgramOut(
            id=program.id,
            name=program.name,
            description=program.description,
            is_deleted=program.is_deleted,
            materials=[SectionOut.of(s) for s in program.materials],
            practicals=[SectionOut.of(s) for s in program.practicals],
            assignments=[SectionOut.of(s) for s in program.assignments],
        )


# --- Learner shapes ----------------------------------------------------------


class LearnerItemOut(CamelModel):
    id: str
    name: str
    payload: dict[str, Any]
    completed: bool

    @staticmethod
    def of(view: LearnerItemView) -> LearnerItemOut:
        return LearnerItemOut(
            id=view.id, name=view.name, payload=dict(view.payload), completed=view.completed
        )


class LearnerSectionOut(CamelModel):
    id: str
    name: str
    kind: SectionKind
    progress: float
    items: list[LearnerItemOut]

    @staticmethod
    def of(view: LearnerSectionView) -> LearnerSectionOut:
        return LearnerSectionOut(
            id=view.id,
            name=view.name,
            kind=view.kind,
            progress=view.progress,
            items=[LearnerItemOut.of(i) for i in view.items],
        )


class LearnerProgramOut(CamelModel):
    id: str
    name: str
    description: str
    progress: float
    completed_count: int
    total_count: int
    materials: list[LearnerSectionOut]
    practicals: list[LearnerSectionOut]
    assignments: list[LearnerSectionOut]

    @staticmethod
    def of(view: LearnerProgramView) -> LearnerProgramOut:
        return LearnerProgramOut(
            id=view.id,
            name=view.name,
            description=view.description,
            progress=view.progress,
            completed_count=view.completed_count,
            total_count=view.total_count,
            materials=[LearnerSectionOut.of(s) for s in view.materials],
            practicals=[LearnerSectionOut.of(s) for s in view.practicals],
            assignments=[LearnerSectionOut.of(s) for s in view.assignments],
        )


# --- Envelopes for the two views ---------------------------------------------


class AdminCatalogOut(CamelModel):
    view: Literal["admin"] = "admin"
    programs: list[ProgramOut]


class LearnerCatalogOut(CamelModel):
    view: Literal["learner"] = "learner"
    programs: list[LearnerProgramOut]


CatalogOut = Annotated[AdminCatalogOut | LearnerCatalogOut, Field(discriminator="view")]


class AdminProgramDetailOut(CamelModel):
    view: Literal["admin"] = "admin"
    program: ProgramOut


class LearnerProgramDetailOut(CamelModel):
    view: Literal["learner"] = "learner"
    program: LearnerProgramOut


ProgramDetailOut = Annotated[
    AdminProgramDetailOut | LearnerProgramDetailOut, Field(discriminator="view")
]


# --- Inputs ------------------------------------------------------------------


class ContentItemIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    sort_order: int = 0
    payload: dict[str, Any] = Field(default_factory=dict)


class SectionIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    contents: list[ContentItemIn] = Field(default_factory=list)

    def build(self, kind: SectionKind) -> Section:
        return Section.new(
            name=self.name,
            kind=kind,
            contents=tuple(
                ContentItem.new(name=c.name, sort_order=c.sort_order, payload=c.payload)
                for c in self.contents
            ),
        )


class CreateProgramIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    materials: list[SectionIn] = Field(default_factory=list)
    practicals: list[SectionIn] = Field(default_factory=list)
    assignments: list[SectionIn] = Field(default_factory=list)

    def build(self) -> Program:
        return Program.new(
            name=self.name,
            description=self.description,
            materials=tuple(s.build(SectionKind.MATERIAL) for s in self.materials),
            practicals=tuple(s.build(SectionKind.PRACTICAL) for s in self.practicals),
            assignments=tuple(s.build(SectionKind.ASSIGNMENT) for s in self.assignments),
        )


# --- Routes ------------------------------------------------------------------


def _program_missing() -> ApiError:
    return ApiError(not_found("Program not found", "program_not_found"))


@router.get("/v1/programs")
async def list_programs(
    identity: Annotated[Identity, Depends(require_any_role)],
    include_deleted: Annotated[bool, Query(alias="includeDeleted")] = True,
) -> Envelope[CatalogOut]:
    catalog = await catalog_repo.snapshot()
    view = projector.project(
        identity.role, identity, catalog, include_deleted=include_deleted
    )
    if isinstance(view, AdminView):
        return ok(AdminCatalogOut(programs=[ProgramOut.of(p) for p in view.programs]))
    return ok(LearnerCatalogOut(programs=[LearnerProgramOut.of(p) for p in view.programs]))


@router.get("/v1/programs/{program_id}")
async def get_program(
    program_id: str,
    identity: Annotated[Identity, Depends(require_any_role)],
    include_deleted: Annotated[bool, Query(alias="includeDeleted")] = True,
) -> Envelope[ProgramDetailOut]:
    program = await catalog_repo.get_program(program_id)
    if program is None:
        raise _program_missing()

    view = projector.project(
        identity.role, identity, [program], include_deleted=include_deleted
    )
    if not view.programs:
        raise _program_missing()
    if isinstance(view, AdminView):
        return ok(AdminProgramDetailOut(program=ProgramOut.of(view.programs[0])))
    return ok(LearnerProgramDetailOut(program=LearnerProgramOut.of(view.programs[0])))


@router.post("/v1/programs", status_code=status.HTTP_201_CREATED)
async def create_program(
    payload: CreateProgramIn,
    actor: Annotated[Identity, Depends(require_admin)],
) -> Envelope[ProgramOut]:
    program = payload.build()
    await catalog_repo.add_program(program)
    logger.info("Program created  id=%s by=%s", program.id, actor.id)
    ordered = projector.project_admin([program]).programs[0]
    return ok(ProgramOut.of(ordered), "Program created", status.HTTP_201_CREATED)


@router.delete("/v1/catalog/nodes/{node_id}")
async def delete_node(
    node_id: str,
    actor: Annotated[Identity, Depends(require_admin)],
) -> Envelope[None]:
    """Soft-delete a program, section or content item."""
    if not await catalog_repo.soft_delete_node(node_id):
        raise ApiError(not_found("Catalog node not found", "node_not_found"))
    logger.info("Catalog node soft-deleted  id=%s by=%s", node_id, actor.id)
    return ok(None, "Node deleted")
