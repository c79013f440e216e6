"""
Redis connection used by the notification outbox.

The pool is created on first use so importing the API (or running the
test-suite) never needs a Redis server, and is closed on app shutdown.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis

from src.config import settings

logger = logging.getLogger(__name__)

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis() -> aioredis.Redis:
    """Return a client on the shared pool, creating the pool if needed."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(settings.redis_url, decode_responses=True)
        logger.info("Redis pool opened for %s", settings.redis_url)
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
