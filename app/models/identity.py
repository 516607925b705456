from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID, uuid4


class Role(StrEnum):
    SUPER_ADMIN = "superAdmin"
    ADMIN = "admin"
    USER = "user"

    @property
    def is_administrative(self) -> bool:
        match self:
            case Role.SUPER_ADMIN | Role.ADMIN:
                return True
            case Role.USER:
                return False


ADMIN_ROLES: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
ALL_ROLES: frozenset[Role] = frozenset(Role)


class IdentityStatus(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"


@dataclass(frozen=True, slots=True)
class Identity:
    """A user record as the auth and catalog layers see it.

    Never physically removed: ``is_deleted`` hides it from lookups that
    care, while the row itself stays in the store.
    """

    id: UUID
    email: str
    password_hash: str
    role: Role = Role.USER
    status: IdentityStatus = IdentityStatus.ACTIVE
    name: str = ""
    completed_tasks: frozenset[str] = frozenset()
    is_deleted: bool = False

    @property
    def is_blocked(self) -> bool:
        return self.status == IdentityStatus.BLOCKED

    @property
    def can_sign_in(self) -> bool:
        return (
            not self.is_deleted
            and self.status in (IdentityStatus.ACTIVE, IdentityStatus.IN_PROGRESS)
            and bool(self.password_hash)
        )

    @staticmethod
    def new(
        *,
        email: str,
        password_hash: str = "",
        role: Role = Role.USER,
        status: IdentityStatus = IdentityStatus.ACTIVE,
        name: str = "",
    ) -> Identity:
        return Identity(
            id=uuid4(),
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
            status=status,
            name=name,
        )
