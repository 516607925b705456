from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.models.identity import Identity, IdentityStatus, Role


class IdentityRepo(Protocol):
    async def get_by_id(self, identity_id: UUID) -> Identity | None: ...
    async def get_by_email(self, email: str) -> Identity | None: ...
    async def list_all(self, *, include_deleted: bool = False) -> list[Identity]: ...
    async def add(self, identity: Identity) -> None: ...
    async def update_password_hash(
        self, identity_id: UUID, password_hash: str
    ) -> Identity | None: ...
    async def set_status(
        self, identity_id: UUID, status: IdentityStatus
    ) -> Identity | None: ...
    async def set_role(self, identity_id: UUID, role: Role) -> Identity | None: ...
    async def soft_delete(self, identity_id: UUID) -> Identity | None: ...

    async def add_completed_task(
        self, identity_id: UUID, content_id: str
    ) -> Identity | None:
        """Set-union ``content_id`` into completed_tasks.

        Re-adding a present id is a no-op; concurrent additions of different
        ids must all survive.
        """
        ...

    async def redeem_password_token(
        self,
        identity_id: UUID,
        token_id: str,
        expires_at: datetime,
        password_hash: str,
        *,
        activate: bool,
    ) -> Identity | None:
        """Consume a single-use token and write the password, all-or-nothing.

        Returns None, with nothing written, if ``token_id`` was already
        consumed or the identity is gone.
        """
        ...


class InMemoryIdentityRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, Identity] = {}
        self._by_id: dict[UUID, Identity] = {}
        self._consumed_tokens: dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def get_by_id(self, identity_id: UUID) -> Identity | None:
        return self._by_id.get(identity_id)

    async def get_by_email(self, email: str) -> Identity | None:
        return self._by_email.get(email.strip().lower())

    async def list_all(self, *, include_deleted: bool = False) -> list[Identity]:
        return [i for i in self._by_id.values() if include_deleted or not i.is_deleted]

    async def add(self, identity: Identity) -> None:
        if identity.email in self._by_email:
            raise ValueError("email already exists")
        self._store(identity)

    async def update_password_hash(
        self, identity_id: UUID, password_hash: str
    ) -> Identity | None:
        return self._update(identity_id, password_hash=password_hash)

    async def set_status(
        self, identity_id: UUID, status: IdentityStatus
    ) -> Identity | None:
        return self._update(identity_id, status=status)

    async def set_role(self, identity_id: UUID, role: Role) -> Identity | None:
        return self._update(identity_id, role=role)

    async def soft_delete(self, identity_id: UUID) -> Identity | None:
        return self._update(identity_id, is_deleted=True)

    async def add_completed_task(
        self, identity_id: UUID, content_id: str
    ) -> Identity | None:
        async with self._lock:
            current = self._by_id.get(identity_id)
            if current is None:
                return None
            if content_id in current.completed_tasks:
                return current
            return self._update(
                identity_id, completed_tasks=current.completed_tasks | {content_id}
            )

    async def redeem_password_token(
        self,
        identity_id: UUID,
        token_id: str,
        expires_at: datetime,
        password_hash: str,
        *,
        activate: bool,
    ) -> Identity | None:
        async with self._lock:
            if token_id in self._consumed_tokens:
                return None
            current = self._by_id.get(identity_id)
            if current is None:
                return None
            self._consumed_tokens[token_id] = expires_at
            status = IdentityStatus.ACTIVE if activate else current.status
            return self._update(identity_id, password_hash=password_hash, status=status)

    def _update(self, identity_id: UUID, **changes: object) -> Identity | None:
        current = self._by_id.get(identity_id)
        if current is None:
            return None
        updated = replace(current, **changes)  # type: ignore[arg-type]
        self._store(updated)
        return updated

    def _store(self, identity: Identity) -> None:
        self._by_id[identity.id] = identity
        self._by_email[identity.email] = identity
