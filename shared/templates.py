"""
Notification message templates.

Templates use Python's string formatting with {variable} placeholders.
Each notification type carries the variants it is actually sent on:
a push title/body, an email subject/body, and an in-app message.

Shared context variables:
    short_id      First 8 characters of the order id
    order_id      Full order id
    currency      Currency label from settings
    total_price   Order total (float)
    customer_name Shipping display name
    store_name    Store name from settings
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class NotificationType(str, Enum):
    """Business events that produce a message."""
    NEW_ORDER_ADMIN = "new_order_admin"          # To the store administrator
    ORDER_CONFIRMATION = "order_confirmation"    # To the customer


@dataclass
class NotificationTemplate:
    """A notification template with its per-channel variants."""
    notification_type: NotificationType
    push_title: Optional[str] = None
    push_body: Optional[str] = None
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    in_app_message: Optional[str] = None

    def render_push(self, **kwargs) -> tuple[str, str]:
        """
        Render the push variant.

        Returns:
            Tuple of (title, body)
        """
        if self.push_title is None or self.push_body is None:
            raise ValueError(f"No push variant for {self.notification_type.value}")
        return (
            self.push_title.format(**kwargs),
            self.push_body.format(**kwargs),
        )

    def render_email(self, **kwargs) -> tuple[str, str]:
        """
        Render the email variant.

        Returns:
            Tuple of (subject, body)
        """
        if self.email_subject is None or self.email_body is None:
            raise ValueError(f"No email variant for {self.notification_type.value}")
        return (
            self.email_subject.format(**kwargs),
            self.email_body.format(**kwargs),
        )

    def render_in_app(self, **kwargs) -> str:
        if self.in_app_message is None:
            raise ValueError(f"No in-app variant for {self.notification_type.value}")
        return self.in_app_message.format(**kwargs)


# =============================================================================
# Template Definitions
# =============================================================================

TEMPLATES: dict[NotificationType, NotificationTemplate] = {

    NotificationType.NEW_ORDER_ADMIN: NotificationTemplate(
        notification_type=NotificationType.NEW_ORDER_ADMIN,
        push_title="New Order Received!",
        push_body="Order #{short_id} for {currency} {total_price:.2f} has been placed.",
        email_subject="[{store_name}] New Order Received! #{short_id}",
        email_body="""<p>You've received a new order!</p>
<p><strong>Order ID:</strong> {order_id}</p>
<p><strong>Customer:</strong> {customer_name}</p>
<p><strong>Total:</strong> {currency} {total_price:.2f}</p>
<p>Please log in to the admin panel to view details and process the order.</p>
""",
    ),

    NotificationType.ORDER_CONFIRMATION: NotificationTemplate(
        notification_type=NotificationType.ORDER_CONFIRMATION,
        email_subject="Your {store_name} Order Confirmation #{short_id}",
        email_body="""<h1>Thanks for your order!</h1>
<p>Hi {customer_name},</p>
<p>We're getting your order ready to be shipped. We will notify you when it has been sent.</p>
<p><strong>Order ID:</strong> {order_id}</p>
<p><strong>Total:</strong> {currency} {total_price:.2f}</p>
""",
        in_app_message="Your order #{short_id} has been received!",
    ),
}


def get_template(notification_type: NotificationType) -> Optional[NotificationTemplate]:
    """Get a template by notification type."""
    return TEMPLATES.get(notification_type)


def render_notification(
    notification_type: NotificationType,
    channel: str,
    **context
) -> tuple[Optional[str], str]:
    """
    Render a notification for a specific channel.

    Args:
        notification_type: The type of notification
        channel: "push", "email" or "in_app"
        **context: Variables to substitute in the template

    Returns:
        For push: (title, body)
        For email: (subject, body)
        For in_app: (None, message)

    Raises:
        ValueError: If template not found, channel invalid, or the
            template has no variant for the channel
    """
    template = get_template(notification_type)
    if not template:
        raise ValueError(f"No template found for notification type: {notification_type}")

    if channel == "push":
        return template.render_push(**context)
    elif channel == "email":
        return template.render_email(**context)
    elif channel == "in_app":
        return (None, template.render_in_app(**context))
    else:
        raise ValueError(f"Unknown channel: {channel}")


def order_context(order, currency: str, store_name: str = "") -> dict:
    """Template variables for an order."""
    return {
        "order_id": order.id or "",
        "short_id": order.short_id,
        "currency": currency,
        "total_price": order.total_price,
        "customer_name": order.customer_name or "Customer",
        "store_name": store_name,
    }
