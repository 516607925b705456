from __future__ import annotations

import asyncio
from datetime import timedelta

import jwt as pyjwt
import pytest

from app.core.errors import ErrorKind, Failure
from app.models.credential import Credential, TokenKind
from app.models.identity import Identity, IdentityStatus, Role
from app.repos.user_repo import InMemoryIdentityRepo
from app.services.token_blacklist import InMemoryTokenBlacklist
from app.services.token_service import TokenService
from tests.conftest import FakeClock, make_token_settings


def _service(clock: FakeClock | None = None, **kwargs) -> TokenService:
    return TokenService(make_token_settings(), clock=clock or FakeClock(), **kwargs)


def _identity(role: Role = Role.USER, **kwargs) -> Identity:
    return Identity.new(email="ada@example.com", password_hash="x", role=role, **kwargs)


# ---------------------------------------------------------------------------
# issue / verify round trip
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("kind", list(TokenKind))
def test_verify_returns_subject_and_claims_before_expiry(kind: TokenKind) -> None:
    clock = FakeClock()
    svc = _service(clock)
    claims = {"role": "admin"} if kind == TokenKind.ACCESS else {"purpose": "test"}

    token = svc.issue("ada@example.com", kind, claims, timedelta(minutes=5))
    clock.advance(minutes=4, seconds=59)
    result = svc.verify(token, kind)

    assert isinstance(result, Credential)
    assert result.subject == "ada@example.com"
    assert result.kind == kind
    assert result.expires_at == result.issued_at + timedelta(minutes=5)
    for key, value in claims.items():
        assert result.claims[key] == value


def test_verify_fails_at_and_after_expiry() -> None:
    clock = FakeClock()
    svc = _service(clock)
    token = svc.issue("ada@example.com", TokenKind.REFRESH, ttl=timedelta(minutes=5))

    clock.advance(minutes=5)
    result = svc.verify(token, TokenKind.REFRESH)

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.INVALID_TOKEN
    assert result.code == "token_expired"


def test_default_ttl_comes_from_settings() -> None:
    clock = FakeClock()
    svc = _service(clock)
    token = svc.issue_refresh(_identity())

    clock.advance(days=6, hours=23)
    assert isinstance(svc.verify(token, TokenKind.REFRESH), Credential)
    clock.advance(hours=1)
    assert isinstance(svc.verify(token, TokenKind.REFRESH), Failure)


def test_reserved_claims_cannot_be_overridden() -> None:
    svc = _service()
    token = svc.issue(
        "ada@example.com", TokenKind.REFRESH, {"sub": "mallory@example.com", "kind": "access"}
    )
    result = svc.verify(token, TokenKind.REFRESH)
    assert isinstance(result, Credential)
    assert result.subject == "ada@example.com"


def test_each_token_gets_a_unique_id() -> None:
    svc = _service()
    first = svc.verify(svc.issue_refresh(_identity()), TokenKind.REFRESH)
    second = svc.verify(svc.issue_refresh(_identity()), TokenKind.REFRESH)
    assert isinstance(first, Credential) and isinstance(second, Credential)
    assert first.token_id != second.token_id


# ---------------------------------------------------------------------------
# kind isolation and malformed input
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("issued", "expected"),
    [
        (TokenKind.ACCESS, TokenKind.REFRESH),
        (TokenKind.REFRESH, TokenKind.ACCESS),
        (TokenKind.PASSWORD_RESET, TokenKind.PASSWORD_SETUP),
        (TokenKind.PASSWORD_SETUP, TokenKind.PASSWORD_RESET),
        (TokenKind.ACCESS, TokenKind.PASSWORD_RESET),
    ],
)
def test_token_of_one_kind_never_verifies_as_another(
    issued: TokenKind, expected: TokenKind
) -> None:
    svc = _service()
    token = svc.issue("ada@example.com", issued, {"role": "user"})
    result = svc.verify(token, expected)
    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.INVALID_TOKEN


def test_kind_isolation_holds_even_with_shared_secret() -> None:
    # Audience and kind claims still separate kinds if keys were reused.
    settings = make_token_settings()
    object.__setattr__(settings, "refresh_secret", settings.access_secret)
    svc = TokenService(settings, clock=FakeClock())

    token = svc.issue_access(_identity())
    result = svc.verify(token, TokenKind.REFRESH)
    assert isinstance(result, Failure)
    assert result.code == "token_kind_mismatch"


@pytest.mark.parametrize(
    "garbage",
    [None, 42, b"bytes", "", "not-a-jwt", "a.b.c", "Bearer xyz", {"sub": "x"}],
)
def test_verify_never_raises_on_malformed_input(garbage: object) -> None:
    result = _service().verify(garbage, TokenKind.ACCESS)
    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.INVALID_TOKEN


def test_verify_rejects_wrong_signature() -> None:
    svc = _service()
    other = TokenService(
        make_token_settings(access_secret="some-other-access-secret"), clock=FakeClock()
    )
    token = other.issue_access(_identity())
    assert isinstance(svc.verify(token, TokenKind.ACCESS), Failure)


def test_verify_rejects_unsigned_token() -> None:
    svc = _service()
    token = pyjwt.encode(
        {"sub": "ada@example.com", "kind": "access", "role": "admin"}, key="", algorithm="none"
    )
    assert isinstance(svc.verify(token, TokenKind.ACCESS), Failure)


def test_access_token_carries_role() -> None:
    svc = _service()
    result = svc.verify(svc.issue_access(_identity(Role.ADMIN)), TokenKind.ACCESS)
    assert isinstance(result, Credential)
    assert result.role == Role.ADMIN


def test_access_token_with_unknown_role_is_rejected() -> None:
    svc = _service()
    token = svc.issue("ada@example.com", TokenKind.ACCESS, {"role": "root"})
    assert isinstance(svc.verify(token, TokenKind.ACCESS), Failure)


def test_refresh_token_carries_no_role() -> None:
    svc = _service()
    token = svc.issue_refresh(_identity(Role.SUPER_ADMIN))
    claims = pyjwt.decode(token, options={"verify_signature": False})
    assert "role" not in claims


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


def test_refresh_uses_current_role_not_login_role() -> None:
    svc = _service()
    repo = InMemoryIdentityRepo()
    identity = _identity(Role.USER)
    asyncio.run(repo.add(identity))

    refresh_token = svc.issue_refresh(identity)
    asyncio.run(repo.set_role(identity.id, Role.ADMIN))

    access = asyncio.run(svc.refresh(refresh_token, repo))
    assert isinstance(access, str)
    credential = svc.verify(access, TokenKind.ACCESS)
    assert isinstance(credential, Credential)
    assert credential.role == Role.ADMIN


@pytest.mark.parametrize(
    "change",
    [
        lambda repo, i: repo.soft_delete(i.id),
        lambda repo, i: repo.set_status(i.id, IdentityStatus.BLOCKED),
    ],
    ids=["deleted", "blocked"],
)
def test_refresh_fails_for_unavailable_identity(change) -> None:
    svc = _service()
    repo = InMemoryIdentityRepo()
    identity = _identity()
    asyncio.run(repo.add(identity))
    refresh_token = svc.issue_refresh(identity)

    asyncio.run(change(repo, identity))
    result = asyncio.run(svc.refresh(refresh_token, repo))

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.NOT_FOUND
    assert result.code == "identity_unavailable"


def test_refresh_fails_for_unknown_identity() -> None:
    svc = _service()
    token = svc.issue_refresh(_identity())
    result = asyncio.run(svc.refresh(token, InMemoryIdentityRepo()))
    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.NOT_FOUND


def test_refresh_rejects_access_token() -> None:
    svc = _service()
    repo = InMemoryIdentityRepo()
    identity = _identity()
    asyncio.run(repo.add(identity))

    result = asyncio.run(svc.refresh(svc.issue_access(identity), repo))
    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.INVALID_TOKEN


def test_refresh_rejects_revoked_token() -> None:
    svc = _service(blacklist=InMemoryTokenBlacklist())
    repo = InMemoryIdentityRepo()
    identity = _identity()
    asyncio.run(repo.add(identity))
    token = svc.issue_refresh(identity)

    credential = svc.verify(token, TokenKind.REFRESH)
    assert isinstance(credential, Credential)
    asyncio.run(svc.revoke(credential))

    result = asyncio.run(svc.refresh(token, repo))
    assert isinstance(result, Failure)
    assert result.code == "token_revoked"
