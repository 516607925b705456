"""Outbound notifications for the password flows.

The recovery flow only needs to *hand off* a message; delivery happens
in app.worker.  A Notifier raises NotificationError when the hand-off
itself fails, and the caller reports that as a warning.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol
from urllib.parse import urlencode

from redis.exceptions import RedisError

from app.models.identity import Identity
from app.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

EMAIL_QUEUE = "email"


class NotificationError(Exception):
    pass


class Notifier(Protocol):
    async def send_password_reset(
        self, identity: Identity, token: str, expires_at: datetime
    ) -> None: ...

    async def send_invitation(
        self, identity: Identity, token: str, expires_at: datetime
    ) -> None: ...


class QueueNotifier:
    """Enqueue an ``email`` task for the worker to deliver."""

    def __init__(self, queue: TaskQueue, frontend_url: str) -> None:
        self._queue = queue
        self._frontend_url = frontend_url.rstrip("/")

    async def send_password_reset(
        self, identity: Identity, token: str, expires_at: datetime
    ) -> None:
        await self._enqueue(
            "password_reset",
            identity,
            link=self._link("/reset-password", token),
            expires_at=expires_at,
        )

    async def send_invitation(
        self, identity: Identity, token: str, expires_at: datetime
    ) -> None:
        await self._enqueue(
            "invitation",
            identity,
            link=self._link("/create-password", token),
            expires_at=expires_at,
        )

    def _link(self, path: str, token: str) -> str:
        return f"{self._frontend_url}{path}?{urlencode({'token': token})}"

    async def _enqueue(
        self, template: str, identity: Identity, *, link: str, expires_at: datetime
    ) -> None:
        payload = {
            "template": template,
            "to": identity.email,
            "name": identity.name,
            "link": link,
            "expires_at": expires_at.isoformat(),
        }
        try:
            task = await self._queue.enqueue(EMAIL_QUEUE, payload)
        except (RedisError, OSError) as e:
            raise NotificationError(f"could not enqueue {template} email") from e
        logger.info(
            "Queued %s email  task=%s identity=%s", template, task.id, identity.id
        )
