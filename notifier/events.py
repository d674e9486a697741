"""
Event definitions.

Only document creation in the `orders` collection is a trigger. Updates and
deletes of orders produce no event, so nothing downstream fires for them.

The event carries everything the subscriber needs: the order id assigned by
the store and the order's field data as stored.
"""

from shared.models import Order
from notifier.event_bus import Event


class EventTypes:
    """Constants for event type names."""
    ORDER_CREATED = "OrderCreated"


def order_created(order: Order, source: str = "checkout") -> Event:
    """
    Create an OrderCreated event for a just-written order.

    Payload:
        order_id: The store-assigned id
        order: The order's field data (camelCase, as stored)
    """
    if not order.id:
        raise ValueError("Order has no id; write it to the store first")
    return Event(
        event_type=EventTypes.ORDER_CREATED,
        source=source,
        payload={
            "order_id": order.id,
            "order": order.to_document(),
        },
    )
