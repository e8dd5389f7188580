"""
Order notifier factory.
Configures which notification transport to use.
"""

from typing import Optional

from boxoffice.core.config import get_settings
from boxoffice.services.interfaces.logging_notifier import LoggingOrderNotifier
from boxoffice.services.interfaces.notifier import OrderNotifier
from boxoffice.services.notification_service import RedisOrderNotifier


def build_notifier() -> OrderNotifier:
    """
    Build the configured notifier.

    Selection via the NOTIFIER setting:
    - "redis": RedisOrderNotifier (requires REDIS_ENABLED)
    - anything else: LoggingOrderNotifier
    """
    settings = get_settings()

    if settings.NOTIFIER == "redis" and settings.REDIS_ENABLED:
        return RedisOrderNotifier(settings.ORDER_NOTIFICATION_CHANNEL)
    return LoggingOrderNotifier()


# Singleton instance
_notifier: Optional[OrderNotifier] = None


def get_notifier() -> OrderNotifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier
