"""
Shared Redis connection for the cache backend and lock coordinator.
"""
import logging
from typing import Optional

from redis.asyncio import Redis

from hoopsync.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Redis] = None


def get_redis_client(url: Optional[str] = None) -> Redis:
    """Get or create the process-wide Redis client."""
    global _client
    if _client is None:
        url = url or settings.REDIS_URL
        if not url:
            raise ValueError("REDIS_URL is not configured")
        _client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
        )
        logger.info("Redis client created")
    return _client


async def close_redis_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
