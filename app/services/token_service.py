"""Signed, expiring credentials (HS256 JWTs).

One service issues and verifies every token kind.  The kind decides:

  - the signing secret (``TokenSettings.secret_for``)
  - the audience claim (``academy-api:<kind>``)
  - the default lifetime (``TokenSettings.ttl_for``)

so a token of one kind can never verify as another, even if the two
secrets were misconfigured to the same value.

Access tokens embed the role, which lets AuthorizationGuard check it
without a store round-trip.  Refresh tokens carry only the subject: the
refresh path re-reads the identity, so a role change or a block takes
effect on the next refresh instead of being frozen at login time.

Expiry is checked against the injected clock (``now < exp``) rather than
PyJWT's wall clock, which keeps expiry tests deterministic.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from app.core.config import TokenSettings
from app.core.errors import Failure, invalid_token, not_found
from app.core.metrics import TOKEN_VERIFICATIONS, TOKENS_ISSUED
from app.models.credential import Credential, TokenKind
from app.models.identity import Identity, Role
from app.repos.user_repo import IdentityRepo
from app.services.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

_RESERVED_CLAIMS = frozenset({"sub", "kind", "iss", "aud", "iat", "exp", "jti"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenService:
    def __init__(
        self,
        settings: TokenSettings,
        *,
        blacklist: TokenBlacklist | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._blacklist = blacklist
        self._clock = clock

    def audience_for(self, kind: TokenKind) -> str:
        return f"{self._settings.issuer}:{kind.value}"

    def ttl_for(self, kind: TokenKind) -> timedelta:
        return self._settings.ttl_for(kind)

    # ------------------------------------------------------------------
    # issue / verify
    # ------------------------------------------------------------------

    def issue(
        self,
        subject: str,
        kind: TokenKind,
        claims: Mapping[str, Any] | None = None,
        ttl: timedelta | None = None,
    ) -> str:
        """Sign ``{subject, kind, claims, exp=now+ttl}`` with the kind's secret."""
        token, _ = self.issue_with_expiry(subject, kind, claims, ttl)
        return token

    def issue_with_expiry(
        self,
        subject: str,
        kind: TokenKind,
        claims: Mapping[str, Any] | None = None,
        ttl: timedelta | None = None,
    ) -> tuple[str, datetime]:
        now = self._clock().replace(microsecond=0)
        lifetime = ttl if ttl is not None else self._settings.ttl_for(kind)
        payload: dict[str, Any] = {
            k: v for k, v in (claims or {}).items() if k not in _RESERVED_CLAIMS
        }
        expires_at = now + lifetime
        payload.update(
            {
                "sub": subject,
                "kind": kind.value,
                "iss": self._settings.issuer,
                "aud": self.audience_for(kind),
                "iat": int(now.timestamp()),
                "exp": int(expires_at.timestamp()),
                "jti": str(uuid.uuid4()),
            }
        )
        TOKENS_ISSUED.labels(kind=kind.value).inc()
        token = jwt.encode(payload, self._settings.secret_for(kind), algorithm=ALGORITHM)
        return token, expires_at

    def issue_access(self, identity: Identity) -> str:
        return self.issue(
            identity.email, TokenKind.ACCESS, {"role": identity.role.value}
        )

    def issue_refresh(self, identity: Identity) -> str:
        return self.issue(identity.email, TokenKind.REFRESH)

    def verify(self, token: object, expected_kind: TokenKind) -> Credential | Failure:
        """Check signature, audience, kind and expiry.

        Never raises: malformed input of any type comes back as an
        InvalidToken failure.
        """
        if not isinstance(token, str) or not token:
            return self._reject(expected_kind, "invalid", "Malformed token")

        try:
            payload = jwt.decode(
                token,
                self._settings.secret_for(expected_kind),
                algorithms=[ALGORITHM],
                issuer=self._settings.issuer,
                audience=self.audience_for(expected_kind),
                options={
                    "require": ["sub", "kind", "iat", "exp", "jti"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidAudienceError:
            return self._reject(
                expected_kind, "kind_mismatch", "Wrong token kind", "token_kind_mismatch"
            )
        except jwt.PyJWTError as e:
            logger.debug("Token rejected kind=%s reason=%s", expected_kind, e)
            return self._reject(expected_kind, "invalid", "Invalid token")

        if payload.get("kind") != expected_kind.value:
            return self._reject(
                expected_kind, "kind_mismatch", "Wrong token kind", "token_kind_mismatch"
            )

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), UTC)
        except (TypeError, ValueError, OverflowError):
            return self._reject(expected_kind, "invalid", "Invalid token")

        if not self._clock() < expires_at:
            return self._reject(
                expected_kind, "expired", "Token expired", "token_expired"
            )

        role: Role | None = None
        if expected_kind == TokenKind.ACCESS:
            try:
                role = Role(payload.get("role"))
            except ValueError:
                return self._reject(expected_kind, "invalid", "Invalid token")

        TOKEN_VERIFICATIONS.labels(kind=expected_kind.value, result="ok").inc()
        return Credential(
            subject=str(payload["sub"]),
            kind=expected_kind,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=str(payload["jti"]),
            role=role,
            claims={k: v for k, v in payload.items() if k not in _RESERVED_CLAIMS},
        )

    # ------------------------------------------------------------------
    # refresh
    # ------------------------------------------------------------------

    async def refresh(self, refresh_token: object, users: IdentityRepo) -> str | Failure:
        """Mint a fresh access token carrying the identity's *current* role."""
        credential = self.verify(refresh_token, TokenKind.REFRESH)
        if isinstance(credential, Failure):
            return credential

        if await self.is_revoked(credential):
            TOKEN_VERIFICATIONS.labels(kind="refresh", result="revoked").inc()
            logger.warning("Revoked refresh token presented  sub=%s", credential.subject)
            return invalid_token("Refresh token has been revoked", "token_revoked")

        identity = await users.get_by_email(credential.subject)
        if identity is None or identity.is_deleted:
            logger.warning("Refresh for unknown identity  sub=%s", credential.subject)
            return not_found("Identity not found", "identity_unavailable")
        if identity.is_blocked:
            logger.warning("Refresh for blocked identity  id=%s", identity.id)
            return not_found("Identity is unavailable", "identity_unavailable")

        logger.info("Access token refreshed  id=%s role=%s", identity.id, identity.role)
        return self.issue_access(identity)

    # ------------------------------------------------------------------
    # revocation (logout)
    # ------------------------------------------------------------------

    async def revoke(self, credential: Credential) -> None:
        if self._blacklist is None:
            return
        await self._blacklist.revoke(
            credential.token_id, credential.expires_at.timestamp()
        )

    async def is_revoked(self, credential: Credential) -> bool:
        if self._blacklist is None:
            return False
        return await self._blacklist.is_revoked(credential.token_id)

    def _reject(
        self,
        kind: TokenKind,
        result: str,
        message: str,
        code: str = "invalid_token",
    ) -> Failure:
        TOKEN_VERIFICATIONS.labels(kind=kind.value, result=result).inc()
        return invalid_token(message, code)
