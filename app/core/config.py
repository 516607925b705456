from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

from app.models.credential import TokenKind

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_SECRET_ENV = {
    TokenKind.ACCESS: "JWT_ACCESS_SECRET",
    TokenKind.REFRESH: "JWT_REFRESH_SECRET",
    TokenKind.PASSWORD_SETUP: "JWT_SETUP_SECRET",
    TokenKind.PASSWORD_RESET: "JWT_RESET_SECRET",
}


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class TokenSettings:
    """Signing keys and lifetimes, one pair per token kind.

    Access and refresh tokens are signed with different secrets, so a
    leaked refresh secret cannot mint access tokens (and vice versa).
    The same goes for the two single-use password kinds.
    """

    access_secret: str
    refresh_secret: str
    setup_secret: str
    reset_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    setup_ttl: timedelta = timedelta(hours=72)
    reset_ttl: timedelta = timedelta(minutes=60)
    issuer: str = "academy-api"

    def __post_init__(self) -> None:
        keys = (
            self.access_secret,
            self.refresh_secret,
            self.setup_secret,
            self.reset_secret,
        )
        if not all(keys):
            raise ValueError("token secrets must be non-empty")
        if len(set(keys)) != len(keys):
            raise ValueError("token secrets must be distinct per token kind")

    def secret_for(self, kind: TokenKind) -> str:
        match kind:
            case TokenKind.ACCESS:
                return self.access_secret
            case TokenKind.REFRESH:
                return self.refresh_secret
            case TokenKind.PASSWORD_SETUP:
                return self.setup_secret
            case TokenKind.PASSWORD_RESET:
                return self.reset_secret

    def ttl_for(self, kind: TokenKind) -> timedelta:
        match kind:
            case TokenKind.ACCESS:
                return self.access_ttl
            case TokenKind.REFRESH:
                return self.refresh_ttl
            case TokenKind.PASSWORD_SETUP:
                return self.setup_ttl
            case TokenKind.PASSWORD_RESET:
                return self.reset_ttl

    @staticmethod
    def generate() -> TokenSettings:
        """Fresh random secrets for every kind (dev and test processes)."""
        return TokenSettings(
            access_secret=secrets.token_urlsafe(32),
            refresh_secret=secrets.token_urlsafe(32),
            setup_secret=secrets.token_urlsafe(32),
            reset_secret=secrets.token_urlsafe(32),
        )


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    tokens: TokenSettings
    frontend_url: str = "http://localhost:5173"
    mail_webhook_url: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _load_token_settings(app_env: str) -> TokenSettings:
    secrets_by_kind: dict[TokenKind, str] = {}
    for kind, env_name in _SECRET_ENV.items():
        value = _getenv(env_name, "")
        if not value:
            if app_env == "prod":
                raise ValueError(f"{env_name} must be set when APP_ENV=prod")
            value = secrets.token_urlsafe(32)
        secrets_by_kind[kind] = value

    return TokenSettings(
        access_secret=secrets_by_kind[TokenKind.ACCESS],
        refresh_secret=secrets_by_kind[TokenKind.REFRESH],
        setup_secret=secrets_by_kind[TokenKind.PASSWORD_SETUP],
        reset_secret=secrets_by_kind[TokenKind.PASSWORD_RESET],
        access_ttl=timedelta(minutes=_getenv_int("ACCESS_TOKEN_TTL_MIN", 15)),
        refresh_ttl=timedelta(days=_getenv_int("REFRESH_TOKEN_TTL_DAYS", 7)),
        setup_ttl=timedelta(hours=_getenv_int("PASSWORD_SETUP_TTL_HOURS", 72)),
        reset_ttl=timedelta(minutes=_getenv_int("PASSWORD_RESET_TTL_MIN", 60)),
        issuer=_getenv("JWT_ISSUER", "academy-api") or "academy-api",
    )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv_bool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        tokens=_load_token_settings(app_env_raw),
        frontend_url=_getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
        mail_webhook_url=_getenv("MAIL_WEBHOOK_URL", "") or None,
    )


SETTINGS = load_settings()
