"""
Infrastructure layer - external system integrations.
Keeps booking logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis

__all__ = ['get_redis', 'close_redis']
