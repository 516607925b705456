"""Administrative identity management (/v1/users).

Admins and super-admins may list, inspect, invite, block and soft-delete
identities.  Only a super-admin may create a super-admin or change
anyone's role, and nobody may demote, block or delete themselves.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field

from app.api.auth import EmailField, IdentityOut
from app.api.dependencies import identity_repo, recovery_flow, require_roles
from app.api.envelope import ApiError, CamelModel, Envelope, ok, unwrap
from app.core.errors import conflict, forbidden, not_found
from app.models.identity import ADMIN_ROLES, Identity, IdentityStatus, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])

require_admin = require_roles(*ADMIN_ROLES)
require_super_admin = require_roles(Role.SUPER_ADMIN)


class CreateIdentityIn(EmailField):
    name: str = Field(min_length=1, max_length=200)
    role: Role = Role.USER


class StatusIn(CamelModel):
    status: IdentityStatus


class RoleIn(CamelModel):
    role: Role


class InvitationOut(CamelModel):
    user: IdentityOut
    invitation_sent: bool


async def _load(identity_id: UUID) -> Identity:
    identity = await identity_repo.get_by_id(identity_id)
    if identity is None or identity.is_deleted:
        raise ApiError(not_found("Identity not found", "identity_not_found"))
    return identity


def _found(identity: Identity | None) -> Identity:
    if identity is None:
        raise ApiError(not_found("Identity not found", "identity_not_found"))
    return identity


def _not_self(actor: Identity, target: Identity, action: str) -> None:
    if actor.id == target.id:
        raise ApiError(forbidden(f"You cannot {action} your own account", "self_modification"))


@router.get("")
async def list_identities(
    _actor: Annotated[Identity, Depends(require_admin)],
    include_deleted: Annotated[bool, Query(alias="includeDeleted")] = False,
) -> Envelope[list[IdentityOut]]:
    identities = await identity_repo.list_all(include_deleted=include_deleted)
    identities.sort(key=lambda i: i.email)
    return ok([IdentityOut.of(i) for i in identities])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_identity(
    payload: CreateIdentityIn,
    actor: Annotated[Identity, Depends(require_admin)],
) -> Envelope[InvitationOut]:
    """Create a pending identity and send it a password-setup invitation."""
    if payload.role == Role.SUPER_ADMIN and actor.role != Role.SUPER_ADMIN:
        raise ApiError(forbidden("Only a super admin can create a super admin"))

    identity = Identity.new(
        email=payload.email,
        role=payload.role,
        status=IdentityStatus.PENDING,
        name=payload.name.strip(),
    )
    try:
        await identity_repo.add(identity)
    except ValueError:
        raise ApiError(conflict("Email already registered", "email_taken")) from None

    logger.info("Identity created  id=%s role=%s by=%s", identity.id, identity.role, actor.id)
    issued = unwrap(await recovery_flow.invite(identity))
    return ok(
        InvitationOut(user=IdentityOut.of(identity), invitation_sent=issued.notified),
        issued.warning or "User created, invitation sent",
        status.HTTP_201_CREATED,
    )


@router.get("/{identity_id}")
async def get_identity(
    identity_id: UUID,
    _actor: Annotated[Identity, Depends(require_admin)],
) -> Envelope[IdentityOut]:
    return ok(IdentityOut.of(await _load(identity_id)))


@router.patch("/{identity_id}/status")
async def set_status(
    identity_id: UUID,
    payload: StatusIn,
    actor: Annotated[Identity, Depends(require_admin)],
) -> Envelope[IdentityOut]:
    target = await _load(identity_id)
    _not_self(actor, target, "change the status of")
    if target.role == Role.SUPER_ADMIN and actor.role != Role.SUPER_ADMIN:
        raise ApiError(forbidden("Only a super admin can change a super admin"))

    updated = _found(await identity_repo.set_status(target.id, payload.status))
    logger.info("Status changed  id=%s status=%s by=%s", target.id, payload.status, actor.id)
    return ok(IdentityOut.of(updated), "Status updated")


@router.patch("/{identity_id}/role")
async def set_role(
    identity_id: UUID,
    payload: RoleIn,
    actor: Annotated[Identity, Depends(require_super_admin)],
) -> Envelope[IdentityOut]:
    """Takes effect on the target's next token refresh."""
    target = await _load(identity_id)
    _not_self(actor, target, "change the role of")

    updated = _found(await identity_repo.set_role(target.id, payload.role))
    logger.info("Role changed  id=%s role=%s by=%s", target.id, payload.role, actor.id)
    return ok(IdentityOut.of(updated), "Role updated")


@router.delete("/{identity_id}")
async def delete_identity(
    identity_id: UUID,
    actor: Annotated[Identity, Depends(require_admin)],
) -> Envelope[IdentityOut]:
    target = await _load(identity_id)
    _not_self(actor, target, "delete")
    if target.role == Role.SUPER_ADMIN and actor.role != Role.SUPER_ADMIN:
        raise ApiError(forbidden("Only a super admin can delete a super admin"))

    deleted = _found(await identity_repo.soft_delete(target.id))
    logger.info("Identity soft-deleted  id=%s by=%s", target.id, actor.id)
    return ok(IdentityOut.of(deleted), "User deleted")
