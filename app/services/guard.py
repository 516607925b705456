from __future__ import annotations

import logging
from collections.abc import Set
from dataclasses import replace

from app.core.errors import Failure, forbidden, not_found, unauthenticated
from app.core.metrics import AUTHORIZATION_DECISIONS
from app.models.credential import TokenKind
from app.models.identity import Identity, Role
from app.repos.user_repo import IdentityRepo
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)


def parse_bearer(raw_credential: str | None) -> str | None:
    """Pull the token out of an Authorization value.

    Accepts ``Bearer <token>`` (any scheme casing) or a bare token.
    """
    if not raw_credential:
        return None
    parts = raw_credential.strip().split()
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


class AuthorizationGuard:
    """Resolve a raw credential to an Identity and enforce a role set.

    The role checked is the one embedded in the access token, and the
    returned Identity carries that role; role changes reach the token on
    the next refresh.  The identity is still read from
    the store so that deleted or blocked accounts are cut off immediately.
    """

    def __init__(self, tokens: TokenService, users: IdentityRepo) -> None:
        self._tokens = tokens
        self._users = users

    async def authorize(
        self, raw_credential: str | None, allowed_roles: Set[Role] = frozenset()
    ) -> Identity | Failure:
        token = parse_bearer(raw_credential)
        if token is None:
            return self._deny("unauthenticated", unauthenticated("Missing credential"))

        credential = self._tokens.verify(token, TokenKind.ACCESS)
        if isinstance(credential, Failure):
            code = "token_expired" if credential.code == "token_expired" else "invalid_credential"
            return self._deny(
                "unauthenticated", unauthenticated(credential.message, code)
            )

        if await self._tokens.is_revoked(credential):
            return self._deny(
                "unauthenticated", unauthenticated("Token has been revoked", "token_revoked")
            )

        identity = await self._users.get_by_email(credential.subject)
        if identity is None or identity.is_deleted:
            logger.warning("Token for missing identity  sub=%s", credential.subject)
            return self._deny("not_found", not_found("Identity not found", "identity_not_found"))
        if identity.is_blocked:
            logger.warning("Token for blocked identity  id=%s", identity.id)
            return self._deny(
                "unauthenticated", unauthenticated("Identity is blocked", "identity_blocked")
            )

        role = credential.role
        if allowed_roles and (role is None or role not in allowed_roles):
            logger.warning(
                "Access denied: identity=%s role=%s allowed=%s",
                identity.id,
                role,
                sorted(allowed_roles),
            )
            return self._deny("forbidden", forbidden("Insufficient permissions"))

        AUTHORIZATION_DECISIONS.labels(result="allowed").inc()
        # Downstream role checks see the session role, not the stored one.
        return replace(identity, role=role) if role is not None else identity

    @staticmethod
    def _deny(result: str, failure: Failure) -> Failure:
        AUTHORIZATION_DECISIONS.labels(result=result).inc()
        return failure
