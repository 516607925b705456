"""Rate limiting as a route dependency.

A dependency, not middleware, so only the routes that declare it pay for
it: the public credential endpoints get a strict bucket, /health and
/metrics none at all.

Buckets are keyed per client IP and per endpoint, so failed logins do
not eat into the same client's forgot-password budget.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from app.core.metrics import RATE_LIMIT_HITS
from app.db.redis import redis_pool
from app.services.rate_limiter import (
    AUTH_LIMIT,
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiter,
    RedisRateLimiter,
)

logger = logging.getLogger(__name__)

if redis_pool is not None:
    rate_limiter: RateLimiter = RedisRateLimiter(redis_pool)
else:
    rate_limiter = InMemoryRateLimiter()


def require_rate_limit(scope: str, config: RateLimitConfig = AUTH_LIMIT):
    """Dependency factory.

    Usage::

        @router.post("/auth/login", dependencies=[Depends(require_rate_limit("login"))])
    """

    async def _check(request: Request) -> None:
        client_ip = request.client.host if request.client else "unknown"
        key = f"{scope}:ip:{client_ip}"
        result = await rate_limiter.check(key, config)
        if result.allowed:
            return

        RATE_LIMIT_HITS.labels(key_type="ip").inc()
        logger.warning("Rate limit exceeded  scope=%s ip=%s", scope, client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests, slow down",
            headers={
                "Retry-After": str(int(result.retry_after) + 1),
                "X-RateLimit-Limit": str(result.limit),
                "X-RateLimit-Remaining": "0",
            },
        )

    return _check
