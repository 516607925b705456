from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from app.models.identity import Role


class TokenKind(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_SETUP = "passwordSetup"
    PASSWORD_RESET = "passwordReset"

    @property
    def is_single_use(self) -> bool:
        return self in (TokenKind.PASSWORD_SETUP, TokenKind.PASSWORD_RESET)


@dataclass(frozen=True, slots=True)
class Credential:
    """A verified token, reconstructed from its signed claims.

    Never persisted. Only access tokens carry a role; refresh and
    password tokens identify the subject and nothing else.
    """

    subject: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    token_id: str
    role: Role | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at
