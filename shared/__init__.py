"""
Shared infrastructure for the storefront order-notification service.

This package contains code used by the notifier services and the API:
- Document models (Order, UserProfile, FcmSettings, etc.)
- Configuration
- In-memory data store and Firebase adapters
- Push delivery types and the mock push provider
- Notification templates
"""

from shared.models import (
    Order,
    OrderItem,
    OrderStatus,
    ShippingInfo,
    UserRecord,
    UserProfile,
    FcmSettings,
    UserNotification,
    MailMessage,
)
from shared.config import Settings, get_settings
from shared.data_store import DataStore
from shared.channels import PushChannel, PushMessage, MulticastResult, SendResponse

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "ShippingInfo",
    "UserRecord",
    "UserProfile",
    "FcmSettings",
    "UserNotification",
    "MailMessage",
    "Settings",
    "get_settings",
    "DataStore",
    "PushChannel",
    "PushMessage",
    "MulticastResult",
    "SendResponse",
]
