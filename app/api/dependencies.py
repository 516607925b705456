"""Process-wide service graph and the auth dependencies routes declare.

Stores follow the conditional-singleton pattern used for the blacklist
and task queue: PostgreSQL when DATABASE_URL is set, in-memory otherwise.
Tests swap the in-memory instances' state out in conftest, not the
objects themselves.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header

from app.api.envelope import ApiError
from app.core.config import SETTINGS
from app.core.errors import Failure
from app.core.logging import user_id_var
from app.db.engine import async_session_factory
from app.models.identity import Identity, Role
from app.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from app.repos.pg_catalog_repo import PgCatalogRepo
from app.repos.pg_user_repo import PgIdentityRepo
from app.repos.user_repo import IdentityRepo, InMemoryIdentityRepo
from app.services.guard import AuthorizationGuard
from app.services.notifier import QueueNotifier
from app.services.recovery_service import CredentialRecoveryFlow
from app.services.task_queue import task_queue
from app.services.token_blacklist import token_blacklist
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singletons
# ---------------------------------------------------------------------------

if async_session_factory is not None:
    identity_repo: IdentityRepo = PgIdentityRepo(async_session_factory)
    catalog_repo: CatalogRepo = PgCatalogRepo(async_session_factory)
else:
    identity_repo = InMemoryIdentityRepo()
    catalog_repo = InMemoryCatalogRepo()

token_service = TokenService(SETTINGS.tokens, blacklist=token_blacklist)
notifier = QueueNotifier(task_queue, SETTINGS.frontend_url)
recovery_flow = CredentialRecoveryFlow(token_service, identity_repo, notifier)
guard = AuthorizationGuard(token_service, identity_repo)


# ---------------------------------------------------------------------------
# Route dependencies
# ---------------------------------------------------------------------------


def require_roles(*roles: Role):
    """Dependency factory: authenticate the bearer token, demand one of ``roles``.

    With no roles any authenticated identity passes.  The resolved
    Identity is request-scoped: it is returned to the route and tagged on
    the request's log records, nothing else.

    Usage::

        @router.get("/v1/users")
        async def list_users(
            actor: Annotated[Identity, Depends(require_roles(*ADMIN_ROLES))],
        ): ...
    """
    allowed = frozenset(roles)

    async def _guard(
        authorization: Annotated[str | None, Header()] = None,
    ) -> Identity:
        result = await guard.authorize(authorization, allowed)
        if isinstance(result, Failure):
            raise ApiError(result)
        user_id_var.set(str(result.id))
        return result

    return _guard


require_authenticated = require_roles()
