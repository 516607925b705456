"""Redis connection pool (optional).

Redis holds the state that must be shared between API instances but
need not be durable: revoked token ids, rate-limit buckets and the
notification queue.  With REDIS_URL unset ``redis_pool`` is None and each
of those falls back to its in-memory implementation.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


async def redis_status() -> str:
    """``ok``, ``unavailable`` or ``not_configured``; used by /health."""
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except aioredis.RedisError:
        logger.warning("Redis ping failed")
        return "unavailable"
    return "ok"


@asynccontextmanager
async def lifespan_redis():
    """Verify connectivity on startup, close the pool on shutdown.

    An unreachable Redis is logged but does not stop the app from booting.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, Redis features use in-memory fallbacks")
        yield
        return

    if await redis_status() == "ok":
        logger.info("Redis connected")
    else:
        logger.error("Redis unreachable on startup")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
