"""
Order notifications for the storefront.

- Checkout writes an order and publishes OrderCreated
- The dispatcher subscribes to OrderCreated and push-notifies the
  administrator's devices, pruning tokens the provider reports as dead
- Publishers and subscribers are decoupled via the event bus
"""

from notifier.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from notifier.order_notifications import (
    OrderNotificationDispatcher,
    DispatchOutcome,
    DispatchStatus,
)
from notifier.services.checkout import CheckoutService

__all__ = [
    "Event",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    "OrderNotificationDispatcher",
    "DispatchOutcome",
    "DispatchStatus",
    "CheckoutService",
]
