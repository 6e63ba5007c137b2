"""
Fairway Orders: Redis client

One connection pool serves the realtime course channels and the checkout
idempotency cache. Key and channel names are built here only.
"""
import redis.asyncio as aioredis

from fairway.core.config import get_settings

settings = get_settings()
_redis_client: aioredis.Redis | None = None

IDEMPOTENCY_PREFIX = "idempotent:"


def get_redis() -> aioredis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
            health_check_interval=30,  # SSE subscribers sit idle between orders
        )
    return _redis_client


def order_channel(course_id: str) -> str:
    """Pub/sub channel carrying order row events for one course."""
    return f"{settings.ORDER_CHANNEL_PREFIX}{course_id}"


def idempotency_keys(idem_key: str) -> tuple[str, str]:
    """(stored response key, in-flight lock key) for a client Idempotency-Key."""
    cache_key = f"{IDEMPOTENCY_PREFIX}{idem_key}"
    return cache_key, f"{cache_key}:lock"


async def close_redis():
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
