"""Read models produced by the content projector.

Derived on every request from a catalog snapshot plus a learner's
completed-task set; nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.models.catalog import Program, SectionKind


@dataclass(frozen=True, slots=True)
class AdminView:
    """Catalog as administrators see it: full detail, items in display order."""

    programs: tuple[Program, ...]


@dataclass(frozen=True, slots=True)
class LearnerItemView:
    id: str
    name: str
    payload: dict[str, Any]
    completed: bool


@dataclass(frozen=True, slots=True)
class LearnerSectionView:
    id: str
    name: str
    kind: SectionKind
    progress: float
    items: tuple[LearnerItemView, ...]


@dataclass(frozen=True, slots=True)
class LearnerProgramView:
    id: str
    name: str
    description: str
    progress: float
    completed_count: int
    total_count: int
    materials: tuple[LearnerSectionView, ...] = ()
    practicals: tuple[LearnerSectionView, ...] = ()
    assignments: tuple[LearnerSectionView, ...] = ()


@dataclass(frozen=True, slots=True)
class LearnerView:
    programs: tuple[LearnerProgramView, ...]
