from __future__ import annotations

import asyncio
import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

os.environ.setdefault("APP_ENV", "test")

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.api.dependencies import catalog_repo, identity_repo, token_service  # noqa: E402
from app.api.ratelimit import rate_limiter  # noqa: E402
from app.core.config import TokenSettings  # noqa: E402
from app.main import app  # noqa: E402
from app.models.catalog import ContentItem, Program, Section, SectionKind  # noqa: E402
from app.models.identity import Identity, IdentityStatus, Role  # noqa: E402
from app.services import auth_service  # noqa: E402
from app.services.task_queue import task_queue  # noqa: E402
from app.services.token_blacklist import token_blacklist  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Singleton state resets
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_identity_store() -> None:
    identity_repo._by_email.clear()  # type: ignore[union-attr]
    identity_repo._by_id.clear()  # type: ignore[union-attr]
    identity_repo._consumed_tokens.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_catalog() -> None:
    catalog_repo._programs.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    rate_limiter._buckets.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_token_blacklist() -> None:
    token_blacklist._revoked.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Settable clock for TokenService; starts at a fixed aware datetime."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def make_token_settings(**overrides) -> TokenSettings:
    values = {
        "access_secret": "access-secret-for-tests",
        "refresh_secret": "refresh-secret-for-tests",
        "setup_secret": "setup-secret-for-tests",
        "reset_secret": "reset-secret-for-tests",
    }
    values.update(overrides)
    return TokenSettings(**values)


def seed_identity(
    email: str = "learner@example.com",
    *,
    password: str | None = DEFAULT_PASSWORD,
    role: Role = Role.USER,
    status: IdentityStatus = IdentityStatus.ACTIVE,
    name: str = "Test Person",
) -> Identity:
    """Add an identity to the app's in-memory store."""
    identity = Identity.new(
        email=email,
        password_hash=auth_service.hash_password(password) if password else "",
        role=role,
        status=status,
        name=name,
    )
    asyncio.run(identity_repo.add(identity))
    return identity


def bearer(identity: Identity) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_service.issue_access(identity)}"}


def sample_program(name: str = "Python Basics") -> Program:
    """Program with one material (c1, c2, c3) and one empty practical."""
    return Program(
        id="p1",
        name=name,
        description="intro course",
        materials=(
            Section(
                id="m1",
                name="Week 1",
                kind=SectionKind.MATERIAL,
                contents=(
                    ContentItem(id="c1", name="Variables", sort_order=1),
                    ContentItem(id="c2", name="Loops", sort_order=2),
                    ContentItem(id="c3", name="Functions", sort_order=3),
                ),
            ),
        ),
        practicals=(Section(id="pr1", name="Lab", kind=SectionKind.PRACTICAL),),
    )


def seed_program(program: Program | None = None) -> Program:
    program = program or sample_program()
    asyncio.run(catalog_repo.add_program(program))
    return program


@pytest.fixture
def learner() -> Identity:
    return seed_identity("learner@example.com")


@pytest.fixture
def admin() -> Identity:
    return seed_identity("admin@example.com", role=Role.ADMIN)


@pytest.fixture
def super_admin() -> Identity:
    return seed_identity("root@example.com", role=Role.SUPER_ADMIN)
