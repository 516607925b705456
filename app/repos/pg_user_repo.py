"""PostgreSQL implementation of IdentityRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, not_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.tables import ConsumedTokenRow, IdentityRow
from app.models.identity import Identity, IdentityStatus, Role


class PgIdentityRepo:
    """Satisfies the IdentityRepo Protocol; one transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def get_by_id(self, identity_id: UUID) -> Identity | None:
        async with self._sessions() as session:
            row = await session.get(IdentityRow, identity_id)
            return _row_to_identity(row) if row is not None else None

    async def get_by_email(self, email: str) -> Identity | None:
        stmt = select(IdentityRow).where(IdentityRow.email == email.strip().lower())
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_identity(row) if row is not None else None

    async def list_all(self, *, include_deleted: bool = False) -> list[Identity]:
        stmt = select(IdentityRow).order_by(IdentityRow.email)
        if not include_deleted:
            stmt = stmt.where(IdentityRow.is_deleted.is_(False))
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_identity(r) for r in rows]

    async def add(self, identity: Identity) -> None:
        stmt = (
            insert(IdentityRow)
            .values(
                id=identity.id,
                email=identity.email,
                password_hash=identity.password_hash,
                name=identity.name,
                role=identity.role.value,
                status=identity.status.value,
                completed_tasks=sorted(identity.completed_tasks),
                is_deleted=identity.is_deleted,
            )
            .on_conflict_do_nothing(index_elements=[IdentityRow.email])
        )
        async with self._sessions.begin() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise ValueError("email already exists")

    async def update_password_hash(
        self, identity_id: UUID, password_hash: str
    ) -> Identity | None:
        return await self._update(identity_id, password_hash=password_hash)

    async def set_status(
        self, identity_id: UUID, status: IdentityStatus
    ) -> Identity | None:
        return await self._update(identity_id, status=status.value)

    async def set_role(self, identity_id: UUID, role: Role) -> Identity | None:
        return await self._update(identity_id, role=role.value)

    async def soft_delete(self, identity_id: UUID) -> Identity | None:
        return await self._update(identity_id, is_deleted=True)

    async def add_completed_task(
        self, identity_id: UUID, content_id: str
    ) -> Identity | None:
        # A single UPDATE: the row lock plus the re-checked predicate give
        # set-union semantics under concurrent writers.
        stmt = (
            update(IdentityRow)
            .where(
                IdentityRow.id == identity_id,
                not_(IdentityRow.completed_tasks.contains([content_id])),
            )
            .values(
                completed_tasks=func.array_append(
                    IdentityRow.completed_tasks, content_id
                )
            )
        )
        async with self._sessions.begin() as session:
            await session.execute(stmt)
        return await self.get_by_id(identity_id)

    async def redeem_password_token(
        self,
        identity_id: UUID,
        token_id: str,
        expires_at: datetime,
        password_hash: str,
        *,
        activate: bool,
    ) -> Identity | None:
        ledger = (
            insert(ConsumedTokenRow)
            .values(token_id=token_id, identity_id=identity_id, expires_at=expires_at)
            .on_conflict_do_nothing(index_elements=[ConsumedTokenRow.token_id])
        )
        values: dict[str, object] = {"password_hash": password_hash}
        if activate:
            values["status"] = IdentityStatus.ACTIVE.value
        write = (
            update(IdentityRow)
            .where(IdentityRow.id == identity_id)
            .values(**values)
            .returning(IdentityRow)
        )

        async with self._sessions() as session:
            if (await session.execute(ledger)).rowcount == 0:
                await session.rollback()
                return None
            row = (await session.execute(write)).scalar_one_or_none()
            if row is None:
                await session.rollback()
                return None
            identity = _row_to_identity(row)
            await session.commit()
            return identity

    async def _update(self, identity_id: UUID, **values: object) -> Identity | None:
        stmt = (
            update(IdentityRow)
            .where(IdentityRow.id == identity_id)
            .values(**values)
            .returning(IdentityRow)
        )
        async with self._sessions.begin() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_identity(row) if row is not None else None


def _row_to_identity(row: IdentityRow) -> Identity:
    return Identity(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash or "",
        name=row.name or "",
        role=Role(row.role),
        status=IdentityStatus(row.status),
        completed_tasks=frozenset(row.completed_tasks or ()),
        is_deleted=row.is_deleted,
    )
