"""Notification worker.

RUN:  python -m app.worker

Same image as the API, different command.  The API only enqueues email
tasks (see app.services.notifier); this process takes them off the queue
and hands them to the mail gateway at MAIL_WEBHOOK_URL as JSON.  With no
webhook configured the message is logged instead, which is what dev
setups want.

Messages carry password links.  The worker logs the template, recipient
and task id, never the link itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import httpx

from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.services.notifier import EMAIL_QUEUE
from app.services.task_queue import TaskQueue, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("app.worker")

_WEBHOOK_TIMEOUT = httpx.Timeout(10.0, connect=5.0)


class DeliveryError(Exception):
    pass


class EmailDelivery:
    def __init__(self, client: httpx.AsyncClient, webhook_url: str | None) -> None:
        self._client = client
        self._webhook_url = webhook_url

    async def __call__(self, payload: dict) -> None:
        template = payload.get("template", "?")
        if self._webhook_url is None:
            logger.info(
                "No MAIL_WEBHOOK_URL, dropping %s email to=%s", template, payload.get("to")
            )
            return
        try:
            response = await self._client.post(self._webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"{template} email to {payload.get('to')}: {e}") from e
        logger.info("Delivered %s email to=%s", template, payload.get("to"))


async def process_one(queue: TaskQueue, name: str, handler: TaskHandler, timeout: int = 1) -> bool:
    """Handle at most one task from ``name``; True if a task was taken."""
    task = await queue.dequeue(name, timeout=timeout)
    if task is None:
        return False
    try:
        await handler(task.payload)
    except DeliveryError:
        # At-most-once: a failed delivery is logged and dropped.
        logger.exception("Task %s on [%s] failed", task.id, name)
    else:
        logger.info("Task %s on [%s] completed", task.id, name)
    return True


async def run_worker() -> None:
    async with httpx.AsyncClient(timeout=_WEBHOOK_TIMEOUT) as client:
        handlers: dict[str, TaskHandler] = {
            EMAIL_QUEUE: EmailDelivery(client, SETTINGS.mail_webhook_url)
        }
        logger.info("Worker started, listening on queues: %s", sorted(handlers))
        while True:
            took_any = False
            for name, handler in handlers.items():
                took_any |= await process_one(task_queue, name, handler)
            if not took_any:
                # The in-memory queue returns immediately when empty.
                await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
