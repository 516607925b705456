"""Token-bucket rate limiting for the public auth endpoints.

Each client key owns a bucket of ``capacity`` tokens that refills at
``refill_rate`` tokens per second.  A request spends one token; an empty
bucket means 429 with a ``Retry-After`` hint.

The bucket allows short bursts (a login form retried a few times) while
holding the long-run rate to ``refill_rate``, which is what brute-force
protection on /auth/login and /auth/password/forgot needs.  Only two
numbers are kept per key: tokens left and the time of the last refill.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    retry_after: float  # seconds until the next token; 0 when allowed


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Bucket shape: ``capacity`` is the burst size, ``refill_rate`` tokens/sec."""

    capacity: int = 60
    refill_rate: float = 1.0


# Credential endpoints: 10 attempts, then one every 6 seconds.
AUTH_LIMIT = RateLimitConfig(capacity=10, refill_rate=1 / 6)


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...
    async def reset(self, key: str) -> None: ...


class InMemoryRateLimiter:
    """Per-process buckets.

    Behind a load balancer every instance counts separately, so production
    deployments set REDIS_URL and get RedisRateLimiter instead.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, tuple[float, float]] = {}

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        tokens, last = self._buckets.get(key, (float(config.capacity), now))
        tokens = min(config.capacity, tokens + (now - last) * config.refill_rate)

        if tokens >= 1:
            tokens -= 1
            self._buckets[key] = (tokens, now)
            return RateLimitResult(
                allowed=True, remaining=int(tokens), limit=config.capacity, retry_after=0
            )

        self._buckets[key] = (tokens, now)
        return RateLimitResult(
            allowed=False,
            remaining=0,
            limit=config.capacity,
            retry_after=(1 - tokens) / config.refill_rate,
        )

    async def reset(self, key: str) -> None:
        self._buckets.pop(key, None)


class RedisRateLimiter:
    """Buckets shared by every API instance.

    Refill-and-spend is a read-modify-write, so it runs as one Lua script;
    Redis executes scripts atomically, which keeps two concurrent requests
    from both spending the last token.
    """

    # KEYS[1] bucket key; ARGV capacity, refill_rate, now (epoch seconds).
    # Returns {allowed, remaining, retry_after_ms}.
    _SCRIPT = """
    local capacity = tonumber(ARGV[1])
    local rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])
    local ttl = math.ceil(capacity / rate) + 60

    local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
    local tokens = tonumber(state[1]) or capacity
    local ts = tonumber(state[2]) or now
    tokens = math.min(capacity, tokens + (now - ts) * rate)

    local allowed = 0
    local retry_ms = 0
    if tokens >= 1 then
        tokens = tokens - 1
        allowed = 1
    else
        retry_ms = math.ceil((1 - tokens) / rate * 1000)
    end

    redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
    redis.call('EXPIRE', KEYS[1], ttl)
    return {allowed, math.floor(tokens), retry_ms}
    """

    _PREFIX = "ratelimit:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._script = redis_client.register_script(self._SCRIPT)

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        allowed, remaining, retry_ms = await self._script(
            keys=[f"{self._PREFIX}{key}"],
            args=[config.capacity, config.refill_rate, time.time()],
        )
        return RateLimitResult(
            allowed=bool(allowed),
            remaining=max(int(remaining), 0),
            limit=config.capacity,
            retry_after=int(retry_ms) / 1000,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")
