"""Per-account rate limiting for request creation and listing.

Two backends share one ``check(key)`` contract: a Redis sliding window
(ZADD + ZREMRANGEBYSCORE) for multi-process deployments and an in-process
token bucket when no Redis URL is configured. Limiting is advisory
back-pressure, so a Redis outage lets traffic through.
"""

from __future__ import annotations

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from redis.asyncio import Redis

from verdict.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class RateLimiter(ABC):
    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = limit
        self.window_seconds = window_seconds

    @abstractmethod
    async def check(self, key: str) -> RateLimitDecision:
        """Consume one unit for ``key`` and report whether it was allowed."""

    async def close(self) -> None:
        return None


class RedisSlidingWindowLimiter(RateLimiter):
    """Redis sliding window rate limiter (ZADD + ZREMRANGEBYSCORE)."""

    def __init__(
        self,
        redis: Redis,
        limit: int,
        window_seconds: int,
        prefix: str = "verdict:ratelimit",
    ) -> None:
        super().__init__(limit, window_seconds)
        self.redis = redis
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, limit: int, window_seconds: int) -> "RedisSlidingWindowLimiter":
        return cls(Redis.from_url(url, decode_responses=True), limit, window_seconds)

    async def check(self, key: str) -> RateLimitDecision:
        redis_key = f"{self.prefix}:{key}"
        try:
            now = time.time()
            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(redis_key, 0, now - self.window_seconds)
            pipe.zadd(redis_key, {f"{now}:{id(pipe)}": now})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.expire(redis_key, self.window_seconds + 1)
            results = await pipe.execute()
        except Exception as e:
            logger.warning("rate_limit_redis_error", key=key, error=str(e))
            return RateLimitDecision(allowed=True, limit=self.limit, remaining=self.limit)

        count = results[2]
        if count <= self.limit:
            return RateLimitDecision(
                allowed=True, limit=self.limit, remaining=max(0, self.limit - count)
            )

        oldest = results[3][0][1] if results[3] else now
        retry_after = max(1, math.ceil(oldest + self.window_seconds - now))
        return RateLimitDecision(
            allowed=False, limit=self.limit, remaining=0, retry_after=retry_after
        )

    async def close(self) -> None:
        await self.redis.aclose()


class TokenBucketLimiter(RateLimiter):
    """In-process token bucket: ``limit`` tokens refilled over ``window_seconds``."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(limit, window_seconds)
        self.refill_rate = limit / window_seconds
        self._clock = clock
        self._buckets: dict[str, tuple[float, float]] = {}
        self._last_prune = clock()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        # A bucket that has refilled to full is the same as no bucket
        full = [
            key
            for key, (tokens, last) in self._buckets.items()
            if tokens + (now - last) * self.refill_rate >= self.limit
        ]
        for key in full:
            del self._buckets[key]
        self._last_prune = now

    async def check(self, key: str) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            if now - self._last_prune >= self.window_seconds:
                self._prune(now)
            tokens, last = self._buckets.get(key, (float(self.limit), now))
            tokens = min(float(self.limit), tokens + (now - last) * self.refill_rate)

            if tokens >= 1.0:
                tokens -= 1.0
                self._buckets[key] = (tokens, now)
                return RateLimitDecision(
                    allowed=True, limit=self.limit, remaining=int(tokens)
                )

            self._buckets[key] = (tokens, now)
            retry_after = max(1, math.ceil((1.0 - tokens) / self.refill_rate))
            return RateLimitDecision(
                allowed=False, limit=self.limit, remaining=0, retry_after=retry_after
            )
