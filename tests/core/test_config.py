from __future__ import annotations

from datetime import timedelta

import pytest

from app.core.config import AppEnv, Settings, TokenSettings, load_settings
from app.models.credential import TokenKind
from tests.conftest import make_token_settings

_SECRET_VARS = ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET", "JWT_SETUP_SECRET", "JWT_RESET_SECRET")


@pytest.fixture
def prod_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    for i, name in enumerate(_SECRET_VARS):
        monkeypatch.setenv(name, f"secret-{i}")


# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.database_url is None
    assert settings.tokens.access_ttl == timedelta(minutes=15)
    assert settings.tokens.refresh_ttl == timedelta(days=7)


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch, prod_secrets: None) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("ACCESS_TOKEN_TTL_MIN", "5")
    monkeypatch.setenv("FRONTEND_URL", "https://academy.example.com/")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.tokens.access_secret == "secret-0"
    assert settings.tokens.access_ttl == timedelta(minutes=5)
    assert settings.frontend_url == "https://academy.example.com"


def test_load_settings_normalizes_case_and_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  TEST  ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "debug"


def test_dev_generates_distinct_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    for name in _SECRET_VARS:
        monkeypatch.delenv(name, raising=False)
    tokens = load_settings().tokens
    assert len({tokens.secret_for(kind) for kind in TokenKind}) == len(TokenKind)


# ---- invalid values ----


def test_load_settings_rejects_invalid_app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


def test_prod_requires_every_secret(monkeypatch: pytest.MonkeyPatch, prod_secrets: None) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.delenv("JWT_RESET_SECRET")
    with pytest.raises(ValueError, match="JWT_RESET_SECRET must be set"):
        load_settings()


@pytest.mark.parametrize("raw", ["abc", "0", "-3"])
def test_ttl_must_be_positive_integer(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("REFRESH_TOKEN_TTL_DAYS", raw)
    with pytest.raises(ValueError, match="REFRESH_TOKEN_TTL_DAYS"):
        load_settings()


def test_log_json_must_be_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_JSON", "maybe")
    with pytest.raises(ValueError, match="LOG_JSON"):
        load_settings()


# ---- TokenSettings ----


def test_token_settings_reject_shared_secret() -> None:
    with pytest.raises(ValueError, match="distinct"):
        make_token_settings(refresh_secret="access-secret-for-tests")


def test_token_settings_reject_empty_secret() -> None:
    with pytest.raises(ValueError, match="non-empty"):
        make_token_settings(setup_secret="")


def test_token_settings_lookup_per_kind() -> None:
    tokens = make_token_settings()
    assert tokens.secret_for(TokenKind.REFRESH) == "refresh-secret-for-tests"
    assert tokens.ttl_for(TokenKind.PASSWORD_SETUP) == timedelta(hours=72)
    assert tokens.ttl_for(TokenKind.PASSWORD_RESET) == timedelta(minutes=60)


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
        tokens=TokenSettings.generate(),
    )


@pytest.mark.parametrize("app_env", ["dev", "test", "prod"])
def test_settings_env_flags(app_env: AppEnv) -> None:
    s = _make_settings(app_env)
    assert (s.is_dev, s.is_test, s.is_prod) == (
        app_env == "dev",
        app_env == "test",
        app_env == "prod",
    )


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
