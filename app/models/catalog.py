from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from uuid import uuid4


class SectionKind(StrEnum):
    MATERIAL = "material"
    PRACTICAL = "practical"
    ASSIGNMENT = "assignment"


def _new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class ContentItem:
    id: str
    name: str
    sort_order: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    is_deleted: bool = False

    @staticmethod
    def new(
        *, name: str, sort_order: int = 0, payload: dict[str, Any] | None = None
    ) -> ContentItem:
        return ContentItem(
            id=_new_id(), name=name, sort_order=sort_order, payload=payload or {}
        )


@dataclass(frozen=True, slots=True)
class Section:
    """A learning material, practical or assignment inside a program.

    ``contents`` keeps insertion order; display order comes from each
    item's ``sort_order``.
    """

    id: str
    name: str
    kind: SectionKind
    contents: tuple[ContentItem, ...] = ()
    is_deleted: bool = False

    @staticmethod
    def new(
        *,
        name: str,
        kind: SectionKind = SectionKind.MATERIAL,
        contents: tuple[ContentItem, ...] = (),
    ) -> Section:
        return Section(id=_new_id(), name=name, kind=kind, contents=contents)


@dataclass(frozen=True, slots=True)
class Program:
    id: str
    name: str
    description: str = ""
    materials: tuple[Section, ...] = ()
    practicals: tuple[Section, ...] = ()
    assignments: tuple[Section, ...] = ()
    is_deleted: bool = False

    def sections(self) -> Iterator[Section]:
        """Every section in program order: materials, practicals, assignments."""
        yield from self.materials
        yield from self.practicals
        yield from self.assignments

    @staticmethod
    def new(
        *,
        name: str,
        description: str = "",
        materials: tuple[Section, ...] = (),
        practicals: tuple[Section, ...] = (),
        assignments: tuple[Section, ...] = (),
    ) -> Program:
        return Program(
            id=_new_id(),
            name=name,
            description=description,
            materials=materials,
            practicals=practicals,
            assignments=assignments,
        )
