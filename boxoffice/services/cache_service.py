"""
Redis caching service for session seat maps.

CACHING STRATEGY
================

What we cache:
  - The seat map response of one session (every seat with its status and
    the session counters), JSON-serialized
  - Cache key pattern: "sessions:{session_id}:seatmap"

Why:
  - Storefront widgets poll the seat map far more often than anyone books
  - A large hall is thousands of rows; serving from Redis avoids the scan

Invalidation strategy:
  - Every inventory mutation (reserve, sell, release, lock) schedules a
    background delete of the affected session's key after its
    transaction commits; the booking call never waits on Redis
  - Short TTL as safety net (10 seconds by default)

Why the cache can never oversell:
  - It is read-only display data. Every booking decision is made by a
    conditional write against the seat rows, never against this cache.
"""

import asyncio
import json
from typing import Optional

from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_cache_operation
from boxoffice.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

# Invalidations still in flight, kept referenced until they finish
_invalidation_tasks: set[asyncio.Task] = set()


def _make_seat_map_key(session_id: int) -> str:
    return f"sessions:{session_id}:seatmap"


async def get_cached_seat_map(session_id: int) -> Optional[dict]:
    """Retrieve cached seat map response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_seat_map_key(session_id)
    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_seat_map(session_id: int, data: dict) -> None:
    """Cache seat map response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_seat_map_key(session_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_seat_map(*session_ids: int) -> None:
    """Drop cached seat maps after their inventory changed."""
    client = await get_redis()
    if not client or not session_ids:
        return

    keys = [_make_seat_map_key(session_id) for session_id in set(session_ids)]
    try:
        deleted = await client.delete(*keys)
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


def schedule_seat_map_invalidation(*session_ids: int) -> None:
    """Invalidate on a background task so the caller never waits on Redis."""
    task = asyncio.create_task(invalidate_seat_map(*session_ids))
    _invalidation_tasks.add(task)
    task.add_done_callback(_invalidation_tasks.discard)


async def wait_for_invalidations() -> None:
    """Wait until every scheduled invalidation has finished."""
    while _invalidation_tasks:
        await asyncio.gather(*list(_invalidation_tasks), return_exceptions=True)


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
