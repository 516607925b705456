"""Password setup, reset and change.

Per identity the flow moves NoActiveRecovery → RecoveryIssued → Consumed:

  request_reset / invite     issue a single-use token and notify
  complete_reset /
  create_initial_password    redeem the token and write the new password
  change_password            re-prove the current password; no token

Single-use is enforced by the identity store: redemption records the
token id in a consumed-token ledger in the same transaction as the
password write, so of two concurrent redemptions exactly one succeeds
and a replay after success fails with InvalidToken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from app.core.errors import (
    ErrorKind,
    Failure,
    forbidden,
    invalid_token,
    not_found,
)
from app.core.metrics import NOTIFICATION_FAILURES, RECOVERY_EVENTS
from app.models.credential import TokenKind
from app.models.identity import Identity, IdentityStatus
from app.repos.user_repo import IdentityRepo
from app.services import auth_service
from app.services.notifier import NotificationError, Notifier
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecoveryIssued:
    identity: Identity
    token: str
    expires_at: datetime
    warning: str | None = None

    @property
    def notified(self) -> bool:
        return self.warning is None


class CredentialRecoveryFlow:
    def __init__(
        self, tokens: TokenService, users: IdentityRepo, notifier: Notifier
    ) -> None:
        self._tokens = tokens
        self._users = users
        self._notifier = notifier

    # ------------------------------------------------------------------
    # issuing
    # ------------------------------------------------------------------

    async def request_reset(self, email: str) -> RecoveryIssued | Failure:
        identity = await self._users.get_by_email(email)
        if identity is None or identity.is_deleted:
            RECOVERY_EVENTS.labels(event="rejected").inc()
            logger.warning("Password reset requested for unknown email")
            return not_found("No account with that email", "identity_not_found")
        return await self._issue(identity, TokenKind.PASSWORD_RESET)

    async def invite(self, identity: Identity) -> RecoveryIssued | Failure:
        """Issue a passwordSetup token for an administratively created identity."""
        if identity.is_deleted:
            return not_found("Identity not found", "identity_not_found")
        return await self._issue(identity, TokenKind.PASSWORD_SETUP)

    async def _issue(self, identity: Identity, kind: TokenKind) -> RecoveryIssued:
        token, expires_at = self._tokens.issue_with_expiry(identity.email, kind)
        RECOVERY_EVENTS.labels(event="issued").inc()
        logger.info("Issued %s token  identity=%s", kind, identity.id)

        send = (
            self._notifier.send_invitation
            if kind == TokenKind.PASSWORD_SETUP
            else self._notifier.send_password_reset
        )
        try:
            await send(identity, token, expires_at)
        except NotificationError as e:
            NOTIFICATION_FAILURES.labels(template=kind.value).inc()
            logger.warning(
                "Notification failed for %s  identity=%s: %s", kind, identity.id, e
            )
            return RecoveryIssued(
                identity=identity,
                token=token,
                expires_at=expires_at,
                warning="Notification could not be sent",
            )
        return RecoveryIssued(identity=identity, token=token, expires_at=expires_at)

    # ------------------------------------------------------------------
    # redeeming
    # ------------------------------------------------------------------

    async def create_initial_password(
        self, token: object, new_password: str
    ) -> Identity | Failure:
        return await self._redeem(token, TokenKind.PASSWORD_SETUP, new_password)

    async def complete_reset(self, token: object, new_password: str) -> Identity | Failure:
        return await self._redeem(token, TokenKind.PASSWORD_RESET, new_password)

    async def _redeem(
        self, token: object, kind: TokenKind, new_password: str
    ) -> Identity | Failure:
        credential = self._tokens.verify(token, kind)
        if isinstance(credential, Failure):
            RECOVERY_EVENTS.labels(event="rejected").inc()
            return credential

        identity = await self._users.get_by_email(credential.subject)
        if identity is None or identity.is_deleted:
            RECOVERY_EVENTS.labels(event="rejected").inc()
            return not_found("Identity not found", "identity_not_found")

        if kind == TokenKind.PASSWORD_SETUP and identity.status != IdentityStatus.PENDING:
            RECOVERY_EVENTS.labels(event="replayed").inc()
            return invalid_token("Password has already been set", "token_consumed")

        if not new_password:
            return Failure(
                ErrorKind.VALIDATION_ERROR, "password_required", "Password is required"
            )

        updated = await self._users.redeem_password_token(
            identity.id,
            credential.token_id,
            credential.expires_at,
            auth_service.hash_password(new_password),
            activate=identity.status == IdentityStatus.PENDING,
        )
        if updated is None:
            RECOVERY_EVENTS.labels(event="replayed").inc()
            logger.warning("Replayed %s token  identity=%s", kind, identity.id)
            return invalid_token("Token has already been used", "token_consumed")

        RECOVERY_EVENTS.labels(event="consumed").inc()
        logger.info("Password set via %s  identity=%s", kind, identity.id)
        return updated

    # ------------------------------------------------------------------
    # authenticated change
    # ------------------------------------------------------------------

    async def change_password(
        self, identity: Identity, old_password: str, new_password: str
    ) -> Identity | Failure:
        current = await self._users.get_by_id(identity.id)
        if current is None or current.is_deleted:
            return not_found("Identity not found", "identity_not_found")

        if not auth_service.verify_password(old_password, current.password_hash):
            RECOVERY_EVENTS.labels(event="rejected").inc()
            logger.warning("Password change with wrong old password  identity=%s", current.id)
            return forbidden("Current password is incorrect", "wrong_password")

        if not new_password:
            return Failure(
                ErrorKind.VALIDATION_ERROR, "password_required", "Password is required"
            )

        updated = await self._users.update_password_hash(
            current.id, auth_service.hash_password(new_password)
        )
        if updated is None:
            return not_found("Identity not found", "identity_not_found")

        RECOVERY_EVENTS.labels(event="changed").inc()
        logger.info("Password changed  identity=%s", current.id)
        return updated
