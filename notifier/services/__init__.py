"""
Services that publish to, or sit beside, the order-created trigger.

- Checkout: places orders and publishes OrderCreated
- Notification settings: device-token registration and the enable toggle
"""

from notifier.services.checkout import CheckoutService, EmptyCartError
from notifier.services.notification_settings import (
    NotificationSettingsService,
    InvalidTokenError,
)

__all__ = [
    "CheckoutService",
    "EmptyCartError",
    "NotificationSettingsService",
    "InvalidTokenError",
]
