"""Session and password endpoints under /auth.

Login and register return the token pair in the body and also set the
refresh token as an HttpOnly ``refreshToken`` cookie scoped to /auth, so
browser clients can refresh without keeping it in script-readable
storage.  /auth/refresh accepts either transport.

Password reset and setup tokens are never returned over HTTP; they only
leave the service inside the notification link.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Body, Cookie, Depends, Header, Response, status
from pydantic import Field, field_validator

from app.api.dependencies import (
    identity_repo,
    recovery_flow,
    require_authenticated,
    token_service,
)
from app.api.envelope import ApiError, CamelModel, Envelope, ok, unwrap
from app.api.ratelimit import require_rate_limit
from app.core.config import SETTINGS
from app.core.errors import Failure, conflict, invalid_token
from app.models.credential import TokenKind
from app.models.identity import Identity, IdentityStatus, Role
from app.services import auth_service
from app.services.guard import parse_bearer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE = "refreshToken"

# --- Schemas ---------------------------------------------------------------


class EmailField(CamelModel):
    email: str = Field(min_length=3, max_length=320)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("not a valid email address")
        return v


class RegisterIn(EmailField):
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8, max_length=256)


class LoginIn(CamelModel):
    email: str
    password: str


class RefreshIn(CamelModel):
    refresh_token: str | None = None


class LogoutIn(CamelModel):
    refresh_token: str | None = None


class ForgotPasswordIn(EmailField):
    pass


class TokenPasswordIn(CamelModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=256)


class ChangePasswordIn(CamelModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=256)


class IdentityOut(CamelModel):
    id: str
    email: str
    name: str
    role: Role
    status: IdentityStatus
    completed_tasks: list[str]
    is_deleted: bool

    @staticmethod
    def of(identity: Identity) -> IdentityOut:
        return IdentityOut(
            id=str(identity.id),
            email=identity.email,
            name=identity.name,
            role=identity.role,
            status=identity.status,
            completed_tasks=sorted(identity.completed_tasks),
            is_deleted=identity.is_deleted,
        )


class SessionOut(CamelModel):
    access_token: str
    refresh_token: str
    user: IdentityOut


class AccessTokenOut(CamelModel):
    access_token: str


class RecoveryOut(CamelModel):
    expires_at: datetime
    notified: bool


# --- Helpers -----------------------------------------------------------------


def _start_session(identity: Identity, response: Response) -> SessionOut:
    access = token_service.issue_access(identity)
    refresh = token_service.issue_refresh(identity)
    response.set_cookie(
        REFRESH_COOKIE,
        refresh,
        max_age=int(token_service.ttl_for(TokenKind.REFRESH).total_seconds()),
        httponly=True,
        secure=SETTINGS.is_prod,
        samesite="lax",
        path="/auth",
    )
    return SessionOut(
        access_token=access, refresh_token=refresh, user=IdentityOut.of(identity)
    )


# --- Session -----------------------------------------------------------------


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit("register"))],
)
async def register(payload: RegisterIn, response: Response) -> Envelope[SessionOut]:
    identity = Identity.new(
        email=payload.email,
        password_hash=auth_service.hash_password(payload.password),
        role=Role.USER,
        status=IdentityStatus.ACTIVE,
        name=payload.name.strip(),
    )
    try:
        await identity_repo.add(identity)
    except ValueError:
        logger.warning("Registration for existing email rejected")
        raise ApiError(conflict("Email already registered", "email_taken")) from None

    logger.info("Registered identity=%s", identity.id)
    return ok(_start_session(identity, response), "Registered", status.HTTP_201_CREATED)


@router.post("/login", dependencies=[Depends(require_rate_limit("login"))])
async def login(payload: LoginIn, response: Response) -> Envelope[SessionOut]:
    identity = unwrap(
        await auth_service.authenticate(identity_repo, payload.email, payload.password)
    )
    logger.info("Login succeeded  identity=%s", identity.id)
    return ok(_start_session(identity, response), "Logged in")


@router.post("/refresh")
async def refresh(
    payload: Annotated[RefreshIn | None, Body()] = None,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> Envelope[AccessTokenOut]:
    raw = (payload.refresh_token if payload else None) or refresh_cookie
    if not raw:
        raise ApiError(invalid_token("Refresh token is required", "token_missing"))
    access = unwrap(await token_service.refresh(raw, identity_repo))
    return ok(AccessTokenOut(access_token=access), "Token refreshed")


@router.post("/logout")
async def logout(
    identity: Annotated[Identity, Depends(require_authenticated)],
    response: Response,
    payload: Annotated[LogoutIn | None, Body()] = None,
    authorization: Annotated[str | None, Header()] = None,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> Envelope[None]:
    access = token_service.verify(parse_bearer(authorization), TokenKind.ACCESS)
    if not isinstance(access, Failure):
        await token_service.revoke(access)

    raw_refresh = (payload.refresh_token if payload else None) or refresh_cookie
    if raw_refresh:
        credential = token_service.verify(raw_refresh, TokenKind.REFRESH)
        if isinstance(credential, Failure):
            logger.info("Ignoring unusable refresh token on logout: %s", credential.code)
        elif credential.subject == identity.email:
            await token_service.revoke(credential)

    response.delete_cookie(REFRESH_COOKIE, path="/auth")
    logger.info("Logged out  identity=%s", identity.id)
    return ok(None, "Logged out")


@router.get("/me")
async def me(
    identity: Annotated[Identity, Depends(require_authenticated)],
) -> Envelope[IdentityOut]:
    return ok(IdentityOut.of(identity))


# --- Passwords ---------------------------------------------------------------


@router.patch("/password")
async def change_password(
    payload: ChangePasswordIn,
    identity: Annotated[Identity, Depends(require_authenticated)],
) -> Envelope[None]:
    unwrap(
        await recovery_flow.change_password(
            identity, payload.old_password, payload.new_password
        )
    )
    return ok(None, "Password changed")


@router.post(
    "/password/forgot", dependencies=[Depends(require_rate_limit("password-forgot"))]
)
async def forgot_password(payload: ForgotPasswordIn) -> Envelope[RecoveryOut]:
    issued = unwrap(await recovery_flow.request_reset(payload.email))
    message = issued.warning or "Password reset link sent"
    return ok(RecoveryOut(expires_at=issued.expires_at, notified=issued.notified), message)


@router.post("/password/reset")
async def reset_password(payload: TokenPasswordIn) -> Envelope[None]:
    unwrap(await recovery_flow.complete_reset(payload.token, payload.new_password))
    return ok(None, "Password has been reset")


@router.post("/password/create")
async def create_password(payload: TokenPasswordIn) -> Envelope[None]:
    unwrap(
        await recovery_flow.create_initial_password(payload.token, payload.new_password)
    )
    return ok(None, "Password created")
