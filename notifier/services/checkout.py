"""
Checkout service.

Writes the order, which fires the OrderCreated trigger, then takes care of
the customer-facing side effects of a placed order:
- a confirmation email to the shipping address
- an in-app notification linking to the account page
- optionally, an email alert to the administrator

This service does NOT notify the administrator's devices. It publishes the
event and the dispatcher reacts to it.
"""

import logging
from typing import Optional

from notifier.event_bus import EventBus, get_event_bus
from notifier.events import order_created
from shared.config import Settings, get_settings
from shared.data_store import DataStore, get_data_store
from shared.models import Order, OrderItem, ShippingInfo
from shared.templates import NotificationType, order_context, render_notification

logger = logging.getLogger("checkout")


class EmptyCartError(ValueError):
    """Raised when checking out with no items."""


class CheckoutService:
    """
    Places orders.

    Example:
        checkout = CheckoutService()
        order = checkout.place_order(
            user_id="cust-uid-001",
            shipping_info=ShippingInfo(name="Ayesha Khan", email="ayesha@example.com"),
            items=[OrderItem(product_id="watch-01", name="Chrono", quantity=1, price=4999.0)],
        )
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        data_store: Optional[DataStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.event_bus = event_bus or get_event_bus()
        self.data_store = data_store or get_data_store()
        self.settings = settings or get_settings()

    @staticmethod
    def calculate_total(items: list[OrderItem]) -> float:
        """Sum of price x quantity, rounded to cents."""
        return round(sum(item.price * item.quantity for item in items), 2)

    def place_order(
        self,
        user_id: str,
        shipping_info: ShippingInfo,
        items: list[OrderItem],
        payment_method: str = "card",
    ) -> Order:
        """
        Place an order.

        Args:
            user_id: The buying user
            shipping_info: Delivery details; its email receives the confirmation
            items: Cart lines
            payment_method: e.g. "card" or "cod"

        Returns:
            The stored order, with its id

        Raises:
            EmptyCartError: If there are no items
        """
        if not items:
            raise EmptyCartError("Cannot place an order with an empty cart")

        order = self.data_store.create_order(Order(
            user_id=user_id,
            items=items,
            total_price=self.calculate_total(items),
            shipping_info=shipping_info,
            payment_method=payment_method,
        ))

        # The trigger: everything listening for new orders runs now
        self.event_bus.publish(order_created(order))

        self._send_confirmation_email(order)
        self._notify_customer(order)
        if self.settings.admin_email_alerts:
            self._send_admin_email(order)

        return order

    # =========================================================================
    # Side effects. Failures are logged; the order stands regardless.
    # =========================================================================

    def _context(self, order: Order) -> dict:
        return order_context(
            order,
            currency=self.settings.currency,
            store_name=self.settings.store_name,
        )

    def _send_confirmation_email(self, order: Order) -> None:
        if order.shipping_info is None or not order.shipping_info.email:
            logger.warning(f"Order {order.id} has no shipping email, skipping confirmation")
            return
        try:
            subject, body = render_notification(
                NotificationType.ORDER_CONFIRMATION, channel="email", **self._context(order)
            )
            self.data_store.queue_mail([order.shipping_info.email], subject, body)
        except Exception as e:
            logger.error(f"Failed to queue confirmation email for order {order.id}: {e}")

    def _notify_customer(self, order: Order) -> None:
        if not order.user_id:
            return
        try:
            _, message = render_notification(
                NotificationType.ORDER_CONFIRMATION, channel="in_app", **self._context(order)
            )
            self.data_store.add_user_notification(order.user_id, message, link="/account")
        except Exception as e:
            logger.error(f"Failed to create in-app notification for order {order.id}: {e}")

    def _send_admin_email(self, order: Order) -> None:
        try:
            subject, body = render_notification(
                NotificationType.NEW_ORDER_ADMIN, channel="email", **self._context(order)
            )
            self.data_store.queue_mail([self.settings.admin_email], subject, body)
        except Exception as e:
            logger.error(f"Failed to queue admin email for order {order.id}: {e}")
