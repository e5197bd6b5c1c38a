"""
FeedAlert Delivery Module
=========================

Notification policy and the surfaces that display alerts.
"""

from .console_surface import ConsoleNotificationSurface
from .notification_policy import (
    ERROR_ALERT_KEY,
    Alert,
    AlertAction,
    BlinkPattern,
    NotificationPolicy,
    NotificationSurface,
    blink_pattern,
)
from .telegram_surface import TelegramNotificationSurface

__all__ = [
    "ERROR_ALERT_KEY",
    "Alert",
    "AlertAction",
    "BlinkPattern",
    "NotificationPolicy",
    "NotificationSurface",
    "blink_pattern",
    "ConsoleNotificationSurface",
    "TelegramNotificationSurface",
]
