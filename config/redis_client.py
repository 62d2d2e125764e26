"""
config/redis_client.py
Async Redis client for rate-limit counters, the JWT deny-list,
and the realtime change feed (pub/sub).
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from tenacity import retry, stop_after_attempt, wait_exponential

from config.settings import settings

logger = logging.getLogger(__name__)


# ── Global client (initialized on startup) ───────────────────
redis_client: Optional[aioredis.Redis] = None


@retry(stop=stop_after_attempt(5), wait=wait_exponential(multiplier=0.5, max=8), reraise=True)
async def init_redis() -> None:
    """Initialize the Redis connection pool."""
    global redis_client
    redis_client = aioredis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    # Test connection
    await redis_client.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection pool."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


def get_redis() -> aioredis.Redis:
    """FastAPI dependency to get Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client


# ── JWT Deny List ─────────────────────────────────────────────
class TokenDenyList:
    """Revoked session ids, kept until the token would have expired anyway."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @staticmethod
    def key(jti: str) -> str:
        return f"jwt_revoked:{jti}"

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        await self.client.setex(self.key(jti), max(ttl_seconds, 1), "1")

    async def is_revoked(self, jti: str) -> bool:
        return await self.client.exists(self.key(jti)) == 1
