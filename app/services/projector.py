"""Role-dependent projection of the catalog.

``project`` is a pure function of (role, completed tasks, catalog
snapshot): administrators get the catalog back with content items in
display order; learners get only live nodes, each item flagged
``completed`` and each program and section annotated with progress.

A node is *live* when neither it nor any ancestor is soft-deleted.
Progress is ``|completed ∩ live item ids| / |live item ids|`` and is 0
for a program with no live items, so stale completed-task ids (deleted
or unknown items) never move it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from app.core.metrics import PROJECTIONS
from app.models.catalog import ContentItem, Program, Section
from app.models.identity import Identity, Role
from app.models.progress import (
    AdminView,
    LearnerItemView,
    LearnerProgramView,
    LearnerSectionView,
    LearnerView,
)


def ordered(items: Iterable[ContentItem]) -> list[ContentItem]:
    # sorted() is stable: equal sort_order keeps insertion order.
    return sorted(items, key=lambda item: item.sort_order)


def live_items(section: Section) -> list[ContentItem]:
    if section.is_deleted:
        return []
    return ordered(item for item in section.contents if not item.is_deleted)


def content_ids_of(program: Program) -> list[str]:
    """Live content-item ids reachable from the program, in display order."""
    if program.is_deleted:
        return []
    return [item.id for section in program.sections() for item in live_items(section)]


def progress_of(ids: Sequence[str], completed: frozenset[str]) -> float:
    if not ids:
        return 0.0
    done = sum(1 for content_id in set(ids) if content_id in completed)
    return done / len(set(ids))


def project(
    role: Role,
    identity: Identity | None,
    catalog: Iterable[Program],
    *,
    include_deleted: bool = True,
) -> AdminView | LearnerView:
    match role:
        case Role.SUPER_ADMIN | Role.ADMIN:
            PROJECTIONS.labels(view="admin").inc()
            return project_admin(catalog, include_deleted=include_deleted)
        case Role.USER:
            PROJECTIONS.labels(view="learner").inc()
            completed = identity.completed_tasks if identity is not None else frozenset()
            return project_learner(catalog, completed)


# ----------------------------------------------------------------------
# administrative view
# ----------------------------------------------------------------------


def project_admin(catalog: Iterable[Program], *, include_deleted: bool = True) -> AdminView:
    programs = [
        _admin_program(program, include_deleted)
        for program in catalog
        if include_deleted or not program.is_deleted
    ]
    return AdminView(programs=tuple(programs))


def _admin_program(program: Program, include_deleted: bool) -> Program:
    def sections(group: tuple[Section, ...]) -> tuple[Section, ...]:
        return tuple(
            _admin_section(section, include_deleted)
            for section in group
            if include_deleted or not section.is_deleted
        )

    return replace(
        program,
        materials=sections(program.materials),
        practicals=sections(program.practicals),
        assignments=sections(program.assignments),
    )


def _admin_section(section: Section, include_deleted: bool) -> Section:
    contents = ordered(
        item for item in section.contents if include_deleted or not item.is_deleted
    )
    return replace(section, contents=tuple(contents))


# ----------------------------------------------------------------------
# learner view
# ----------------------------------------------------------------------


def project_learner(catalog: Iterable[Program], completed: frozenset[str]) -> LearnerView:
    return LearnerView(
        programs=tuple(
            learner_program(program, completed)
            for program in catalog
            if not program.is_deleted
        )
    )


def learner_program(program: Program, completed: frozenset[str]) -> LearnerProgramView:
    ids = content_ids_of(program)
    unique = set(ids)
    return LearnerProgramView(
        id=program.id,
        name=program.name,
        description=program.description,
        progress=progress_of(ids, completed),
        completed_count=len(unique & completed),
        total_count=len(unique),
        materials=_learner_sections(program.materials, completed),
        practicals=_learner_sections(program.practicals, completed),
        assignments=_learner_sections(program.assignments, completed),
    )


def _learner_sections(
    sections: tuple[Section, ...], completed: frozenset[str]
) -> tuple[LearnerSectionView, ...]:
    views = []
    for section in sections:
        items = live_items(section)
        if not items:
            continue
        views.append(
            LearnerSectionView(
                id=section.id,
                name=section.name,
                kind=section.kind,
                progress=progress_of([item.id for item in items], completed),
                items=tuple(
                    LearnerItemView(
                        id=item.id,
                        name=item.name,
                        payload=item.payload,
                        completed=item.id in completed,
                    )
                    for item in items
                ),
            )
        )
    return tuple(views)
