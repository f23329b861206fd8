"""
Rate Limit Store

Shared Redis connection behind the per-actor scan and approval rate limits
(see core.rate_limit). Several API workers count against the same sorted
sets, so a volunteer can't multiply their allowance by hitting different
processes.

Redis is required in production; elsewhere the lifespan tolerates a failed
connection and the limits are counted per process instead.
"""

from redis.asyncio import Redis, from_url

from eventgate.core.config import settings

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect to ``settings.redis_url`` and ping it; raises if unreachable."""
    global redis_client
    redis_client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    await redis_client.ping()
    return redis_client


async def get_redis() -> Redis | None:
    """Client for the rate limiter, or None when counting in-process."""
    return redis_client


def is_redis_available() -> bool:
    return redis_client is not None


async def close_redis() -> None:
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
