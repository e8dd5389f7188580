"""
Redis client shared by the seat map cache and the order notifier.
Separated from business logic; Redis is advisory and may be disabled.

A failed connect is remembered for REDIS_RETRY_COOLDOWN_SECONDS. Until the
cooldown passes every caller gets None at once instead of waiting out
another connect timeout.
"""

import time
from typing import Optional

import redis.asyncio as redis

from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None
_failed_at: Optional[float] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client, _failed_at

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        if _failed_at is not None and time.monotonic() - _failed_at < settings.REDIS_RETRY_COOLDOWN_SECONDS:
            return None
        try:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await client.ping()
            _redis_client = client
            _failed_at = None
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            _failed_at = time.monotonic()
            redis_connection_errors.inc()
            logger.error(
                "redis_connection_failed",
                error=str(e),
                retry_in_seconds=settings.REDIS_RETRY_COOLDOWN_SECONDS,
            )
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client, _failed_at
    _failed_at = None
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
