"""Fixed-window rate limiting.

The limiter is injected (see ``deps.get_rate_limiter``) so a multi-instance
deployment can share counters through Redis while tests and single-process
development use the in-memory variant.
"""

import time
from dataclasses import dataclass
from typing import Callable, Protocol

from fastapi import Request
from redis.asyncio import Redis

from label_engine.common.exceptions import RateLimitedError


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int  # seconds until the current window closes


class RateLimiter(Protocol):
    async def hit(self, key: str) -> RateLimitResult: ...


class MemoryRateLimiter:
    """Per-process fixed window. Counters vanish on restart."""

    _PRUNE_THRESHOLD = 10_000

    def __init__(self, limit: int, window: int, clock: Callable[[], float] = time.time):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._counters: dict[str, tuple[int, int]] = {}

    async def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        window_id = int(now // self.window)
        retry_after = int((window_id + 1) * self.window - now) or 1

        if len(self._counters) > self._PRUNE_THRESHOLD:
            self._counters = {
                k: v for k, v in self._counters.items() if v[0] == window_id
            }

        current_window, count = self._counters.get(key, (window_id, 0))
        if current_window != window_id:
            count = 0
        count += 1
        self._counters[key] = (window_id, count)

        return RateLimitResult(
            allowed=count <= self.limit,
            remaining=max(0, self.limit - count),
            retry_after=retry_after,
        )


class RedisRateLimiter:
    """Fixed window shared across instances via INCR + EXPIRE."""

    def __init__(
        self,
        client: Redis,
        limit: int,
        window: int,
        prefix: str = "label:ratelimit",
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.limit = limit
        self.window = window
        self.prefix = prefix
        self._clock = clock

    async def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        window_id = int(now // self.window)
        redis_key = f"{self.prefix}:{key}:{window_id}"

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window)
            count, _ = await pipe.execute()

        return RateLimitResult(
            allowed=int(count) <= self.limit,
            remaining=max(0, self.limit - int(count)),
            retry_after=int((window_id + 1) * self.window - now) or 1,
        )


async def limit_checkout(request: Request) -> None:
    """FastAPI dependency throttling checkout-session creation per client address."""
    from label_engine.deps import get_rate_limiter

    client_host = request.client.host if request.client else "unknown"
    result = await get_rate_limiter().hit(f"checkout:{client_host}")
    if not result.allowed:
        raise RateLimitedError(retry_after=result.retry_after)
