"""PostgreSQL implementation of CatalogRepo.

The join happens here: three ordered selects are stitched back into
Program → Section → ContentItem trees, so the projector always receives
an already-materialized snapshot.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.tables import ContentItemRow, ProgramRow, SectionRow
from app.models.catalog import ContentItem, Program, Section, SectionKind


class PgCatalogRepo:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def snapshot(self) -> list[Program]:
        async with self._sessions() as session:
            programs = (
                await session.execute(
                    select(ProgramRow).order_by(ProgramRow.created_at, ProgramRow.id)
                )
            ).scalars().all()
            return await self._assemble(session, list(programs))

    async def get_program(self, program_id: str) -> Program | None:
        async with self._sessions() as session:
            row = await session.get(ProgramRow, program_id)
            if row is None:
                return None
            assembled = await self._assemble(session, [row])
            return assembled[0]

    async def find_live_content_item(self, content_id: str) -> ContentItem | None:
        stmt = (
            select(ContentItemRow)
            .join(SectionRow, SectionRow.id == ContentItemRow.section_id)
            .join(ProgramRow, ProgramRow.id == SectionRow.program_id)
            .where(
                ContentItemRow.id == content_id,
                ContentItemRow.is_deleted.is_(False),
                SectionRow.is_deleted.is_(False),
                ProgramRow.is_deleted.is_(False),
            )
        )
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_item(row) if row is not None else None

    async def add_program(self, program: Program) -> None:
        async with self._sessions.begin() as session:
            if await session.get(ProgramRow, program.id) is not None:
                raise ValueError("program already exists")
            session.add(
                ProgramRow(
                    id=program.id,
                    name=program.name,
                    description=program.description,
                    is_deleted=program.is_deleted,
                )
            )
            for position, section in enumerate(program.sections()):
                session.add(
                    SectionRow(
                        id=section.id,
                        program_id=program.id,
                        kind=section.kind.value,
                        name=section.name,
                        position=position,
                        is_deleted=section.is_deleted,
                    )
                )
                for item_position, item in enumerate(section.contents):
                    session.add(
                        ContentItemRow(
                            id=item.id,
                            section_id=section.id,
                            name=item.name,
                            sort_order=item.sort_order,
                            position=item_position,
                            payload=dict(item.payload),
                            is_deleted=item.is_deleted,
                        )
                    )

    async def soft_delete_node(self, node_id: str) -> bool:
        async with self._sessions.begin() as session:
            for table in (ProgramRow, SectionRow, ContentItemRow):
                result = await session.execute(
                    update(table).where(table.id == node_id).values(is_deleted=True)
                )
                if result.rowcount:
                    return True
        return False

    async def _assemble(
        self, session: AsyncSession, programs: list[ProgramRow]
    ) -> list[Program]:
        if not programs:
            return []
        program_ids = [p.id for p in programs]

        sections = (
            await session.execute(
                select(SectionRow)
                .where(SectionRow.program_id.in_(program_ids))
                .order_by(SectionRow.program_id, SectionRow.position)
            )
        ).scalars().all()
        items = (
            await session.execute(
                select(ContentItemRow)
                .where(ContentItemRow.section_id.in_([s.id for s in sections]))
                .order_by(ContentItemRow.section_id, ContentItemRow.position)
            )
        ).scalars().all()

        items_by_section: dict[str, list[ContentItem]] = defaultdict(list)
        for item in items:
            items_by_section[item.section_id].append(_row_to_item(item))

        sections_by_program: dict[str, dict[SectionKind, list[Section]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for s in sections:
            kind = SectionKind(s.kind)
            sections_by_program[s.program_id][kind].append(
                Section(
                    id=s.id,
                    name=s.name,
                    kind=kind,
                    contents=tuple(items_by_section[s.id]),
                    is_deleted=s.is_deleted,
                )
            )

        result = []
        for p in programs:
            grouped = sections_by_program[p.id]
            result.append(
                Program(
                    id=p.id,
                    name=p.name,
                    description=p.description,
                    materials=tuple(grouped[SectionKind.MATERIAL]),
                    practicals=tuple(grouped[SectionKind.PRACTICAL]),
                    assignments=tuple(grouped[SectionKind.ASSIGNMENT]),
                    is_deleted=p.is_deleted,
                )
            )
        return result


def _row_to_item(row: ContentItemRow) -> ContentItem:
    return ContentItem(
        id=row.id,
        name=row.name,
        sort_order=row.sort_order,
        payload=dict(row.payload or {}),
        is_deleted=row.is_deleted,
    )
