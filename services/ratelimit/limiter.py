"""
services/ratelimit/limiter.py
Fixed-quota window counters for the auth, profile, message and report limiter classes.

Per (class, identifier) key: the first hit opens a window with count=1 and
reset=now+window. Later hits inside the window increment until the quota is
reached, then are denied without incrementing. Once now passes reset the
window starts over. Check-and-increment is atomic per key on both backends.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from config.redis_client import get_redis
from config.settings import settings
from shared.errors import PersistenceFailure

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


LIMITS: dict[str, RateLimitRule] = {
    "auth": RateLimitRule(settings.RATE_LIMIT_AUTH_MAX, settings.RATE_LIMIT_AUTH_WINDOW),
    "profile": RateLimitRule(settings.RATE_LIMIT_PROFILE_MAX, settings.RATE_LIMIT_PROFILE_WINDOW),
    "message": RateLimitRule(settings.RATE_LIMIT_MESSAGE_MAX, settings.RATE_LIMIT_MESSAGE_WINDOW),
    "report": RateLimitRule(settings.RATE_LIMIT_REPORT_MAX, settings.RATE_LIMIT_REPORT_WINDOW),
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset: int                  # epoch milliseconds
    now: int                    # epoch milliseconds, when the decision was made

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets; 0 when allowed."""
        if self.allowed:
            return 0
        return max(1, math.ceil((self.reset - self.now) / 1000))

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


def get_rule(limiter_class: str) -> RateLimitRule:
    try:
        return LIMITS[limiter_class]
    except KeyError:
        raise ValueError(f"Unknown limiter class: {limiter_class}") from None


def _decide(count: int, reset: int, now: int, rule: RateLimitRule) -> tuple[bool, int, int]:
    """Apply one hit to a stored window. Returns (allowed, new_count, new_reset)."""
    if count == 0 or now > reset:
        return True, 1, now + rule.window_ms
    if count >= rule.limit:
        return False, count, reset
    return True, count + 1, reset


class RateLimiter:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or time.time

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def limit(self, limiter_class: str, identifier: str) -> RateLimitResult:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """Single-process counters. Fine for one worker or local development."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._windows: dict[str, tuple[int, int]] = {}
        self._lock = asyncio.Lock()

    async def limit(self, limiter_class: str, identifier: str) -> RateLimitResult:
        rule = get_rule(limiter_class)
        key = f"{limiter_class}:{identifier}"
        async with self._lock:
            now = self.now_ms()
            count, reset = self._windows.get(key, (0, 0))
            allowed, count, reset = _decide(count, reset, now, rule)
            self._windows[key] = (count, reset)
        return RateLimitResult(
            allowed=allowed,
            limit=rule.limit,
            remaining=max(0, rule.limit - count),
            reset=reset,
            now=now,
        )

    def clear(self) -> None:
        self._windows.clear()


class RedisRateLimiter(RateLimiter):
    """
    Counters in a Redis hash {count, reset}, updated under WATCH/MULTI.
    A concurrent writer on the same key aborts our EXEC and we retry,
    so two requests can never both take the last slot.
    """

    MAX_RETRIES = 20

    def __init__(self, client: aioredis.Redis, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.client = client

    @staticmethod
    def key(limiter_class: str, identifier: str) -> str:
        return f"ratelimit:{limiter_class}:{identifier}"

    async def limit(self, limiter_class: str, identifier: str) -> RateLimitResult:
        rule = get_rule(limiter_class)
        key = self.key(limiter_class, identifier)

        async with self.client.pipeline(transaction=True) as pipe:
            for _ in range(self.MAX_RETRIES):
                try:
                    await pipe.watch(key)
                    stored = await pipe.hgetall(key)
                    now = self.now_ms()
                    allowed, count, reset = _decide(
                        int(stored.get("count", 0)), int(stored.get("reset", 0)), now, rule
                    )
                    if allowed:
                        pipe.multi()
                        pipe.hset(key, mapping={"count": count, "reset": reset})
                        # TTL only garbage-collects idle keys; reset is the source of truth.
                        pipe.pexpire(key, reset - now + 1000)
                        await pipe.execute()
                    else:
                        await pipe.unwatch()
                    return RateLimitResult(
                        allowed=allowed,
                        limit=rule.limit,
                        remaining=max(0, rule.limit - count),
                        reset=reset,
                        now=now,
                    )
                except WatchError:
                    continue
        raise RedisError(f"Rate limit key {key} stayed contended")


# ── Backend selection ─────────────────────────────────────────

_memory_limiter: Optional[InMemoryRateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency. Redis unless RATE_LIMIT_BACKEND says memory."""
    global _memory_limiter
    if settings.RATE_LIMIT_BACKEND == "memory":
        if _memory_limiter is None:
            _memory_limiter = InMemoryRateLimiter()
        return _memory_limiter
    return RedisRateLimiter(get_redis())


async def check_limit(
    limiter: RateLimiter,
    limiter_class: str,
    identifier: str,
) -> RateLimitResult:
    """
    Run one limiter hit. When the counting store is down, allow the request
    and log it (RATE_LIMIT_FAIL_OPEN) or refuse with a retryable error.
    """
    try:
        return await limiter.limit(limiter_class, identifier)
    except RedisError as exc:
        if not settings.RATE_LIMIT_FAIL_OPEN:
            logger.error(f"Rate limiter unavailable for {limiter_class}: {exc}")
            raise PersistenceFailure() from exc
        logger.warning(f"Rate limiter degraded, failing open for {limiter_class}/{identifier}: {exc}")
        rule = get_rule(limiter_class)
        now = limiter.now_ms()
        return RateLimitResult(
            allowed=True,
            limit=rule.limit,
            remaining=rule.limit,
            reset=now + rule.window_ms,
            now=now,
        )
