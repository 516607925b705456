from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from app.models.catalog import ContentItem, Program, Section


class CatalogRepo(Protocol):
    async def snapshot(self) -> list[Program]:
        """Every program, fully joined, soft-deleted nodes included."""
        ...

    async def get_program(self, program_id: str) -> Program | None: ...

    async def find_live_content_item(self, content_id: str) -> ContentItem | None:
        """The item, if neither it nor any ancestor is soft-deleted."""
        ...

    async def add_program(self, program: Program) -> None: ...

    async def soft_delete_node(self, node_id: str) -> bool:
        """Flag a program, section or content item as deleted.

        Returns False when no node has that id.
        """
        ...


class InMemoryCatalogRepo:
    def __init__(self) -> None:
        self._programs: dict[str, Program] = {}

    async def snapshot(self) -> list[Program]:
        return list(self._programs.values())

    async def get_program(self, program_id: str) -> Program | None:
        return self._programs.get(program_id)

    async def find_live_content_item(self, content_id: str) -> ContentItem | None:
        for program in self._programs.values():
            if program.is_deleted:
                continue
            for section in program.sections():
                if section.is_deleted:
                    continue
                for item in section.contents:
                    if item.id == content_id and not item.is_deleted:
                        return item
        return None

    async def add_program(self, program: Program) -> None:
        if program.id in self._programs:
            raise ValueError("program already exists")
        self._programs[program.id] = program

    async def soft_delete_node(self, node_id: str) -> bool:
        for program_id, program in self._programs.items():
            if program.id == node_id:
                self._programs[program_id] = replace(program, is_deleted=True)
                return True
            updated = _delete_in_program(program, node_id)
            if updated is not None:
                self._programs[program_id] = updated
                return True
        return False


def _delete_in_program(program: Program, node_id: str) -> Program | None:
    for field_name in ("materials", "practicals", "assignments"):
        sections: tuple[Section, ...] = getattr(program, field_name)
        for index, section in enumerate(sections):
            new_section = _delete_in_section(section, node_id)
            if new_section is None:
                continue
            changed = sections[:index] + (new_section,) + sections[index + 1 :]
            return replace(program, **{field_name: changed})
    return None


def _delete_in_section(section: Section, node_id: str) -> Section | None:
    if section.id == node_id:
        return replace(section, is_deleted=True)
    for index, item in enumerate(section.contents):
        if item.id == node_id:
            contents = (
                section.contents[:index]
                + (replace(item, is_deleted=True),)
                + section.contents[index + 1 :]
            )
            return replace(section, contents=contents)
    return None
