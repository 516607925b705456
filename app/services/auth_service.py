from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from app.core.errors import Failure, unauthenticated
from app.models.identity import Identity
from app.repos.user_repo import IdentityRepo

logger = logging.getLogger(__name__)

# Argon2 encodes its parameters and salt into the hash string, so a
# parameter bump only needs check_needs_rehash() on the next login.
_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


async def authenticate(repo: IdentityRepo, email: str, password: str) -> Identity | Failure:
    """Check email + password; the same failure for every rejection reason."""
    identity = await repo.get_by_email(email)
    if identity is None or not identity.can_sign_in:
        return unauthenticated("Invalid email or password", "invalid_credentials")
    if not verify_password(password, identity.password_hash):
        return unauthenticated("Invalid email or password", "invalid_credentials")

    if _ph.check_needs_rehash(identity.password_hash):
        upgraded = await repo.update_password_hash(identity.id, _ph.hash(password))
        if upgraded is not None:
            identity = upgraded
            logger.info("Rehashed password for identity=%s", identity.id)

    return identity
