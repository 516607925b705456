"""Revoked token ids, kept until the token would have expired anyway.

Logout adds the access token's id (and the refresh token's, when the
client sends it).  AuthorizationGuard and the refresh path consult the
list after signature verification.  Entries carry a TTL equal to the
token's remaining lifetime, so the list never outgrows the set of
still-valid tokens.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from app.core.metrics import TOKEN_BLACKLIST_CHECKS
from app.db.redis import redis_pool


@runtime_checkable
class TokenBlacklist(Protocol):
    async def revoke(self, jti: str, expires_at: float) -> None: ...

    async def is_revoked(self, jti: str) -> bool: ...


class InMemoryTokenBlacklist:
    """Per-process blacklist for tests and single-instance dev."""

    def __init__(self) -> None:
        self._revoked: dict[str, float] = {}

    async def revoke(self, jti: str, expires_at: float) -> None:
        if expires_at <= time.time():
            return
        self._revoked[jti] = expires_at

    async def is_revoked(self, jti: str) -> bool:
        exp = self._revoked.get(jti)
        if exp is not None and exp < time.time():
            del self._revoked[jti]
            exp = None
        TOKEN_BLACKLIST_CHECKS.labels(result="valid" if exp is None else "revoked").inc()
        return exp is not None


class RedisTokenBlacklist:
    """Blacklist shared by every API instance."""

    _PREFIX = "blacklist:jti:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def revoke(self, jti: str, expires_at: float) -> None:
        ttl_seconds = int(expires_at - time.time())
        if ttl_seconds <= 0:
            return
        # SETEX: value and TTL in one command, no window without expiry.
        await self._redis.setex(f"{self._PREFIX}{jti}", ttl_seconds, "1")

    async def is_revoked(self, jti: str) -> bool:
        revoked = bool(await self._redis.exists(f"{self._PREFIX}{jti}"))
        TOKEN_BLACKLIST_CHECKS.labels(result="revoked" if revoked else "valid").inc()
        return revoked


if redis_pool is not None:
    token_blacklist: TokenBlacklist = RedisTokenBlacklist(redis_pool)
else:
    token_blacklist = InMemoryTokenBlacklist()
