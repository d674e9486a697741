"""
Order notification dispatcher.

Turns "an order was just created" into "the administrator's devices are
notified, and the token registry stays clean".

Flow for each OrderCreated event:
1. Resolve the configured administrator email to a user id
2. Read the administrator's profile document
3. Stop unless notifications are enabled
4. Stop unless at least one device token is registered
5. Build one notification: a fixed title and a body naming the order
6. Send it to all tokens in a single multicast call
7. Collect tokens the provider reports as permanently dead
8. Remove exactly those tokens from the profile, in one write

Every stop in steps 1-4 is an expected outcome, logged at INFO. Any exception
is logged with the order id and swallowed: the handler never fails the
trigger, and there is no internal retry. Running it twice for the same order
is safe: it sends again, and re-removing an already removed token is a no-op.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from notifier.event_bus import Event, EventBus, get_event_bus
from notifier.events import EventTypes
from notifier.token_registry import collect_dead_tokens
from shared.channels import PushChannel, PushMessage
from shared.config import Settings, get_settings
from shared.data_store import DataStore, get_data_store
from shared.models import OrderNotice
from shared.templates import NotificationType, order_context, render_notification

logger = logging.getLogger("order_notifications")


class DispatchStatus(str, Enum):
    """How a dispatch ended."""
    SENT = "sent"
    ADMIN_NOT_FOUND = "admin_not_found"
    PROFILE_NOT_FOUND = "profile_not_found"
    NOTIFICATIONS_DISABLED = "notifications_disabled"
    NO_TOKENS = "no_tokens"
    FAILED = "failed"


@dataclass
class DispatchOutcome:
    """What one invocation did. Returned for callers and tests; never raised."""
    order_id: str
    status: DispatchStatus
    success_count: int = 0
    failure_count: int = 0
    pruned_tokens: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == DispatchStatus.SENT


class OrderNotificationDispatcher:
    """
    Push-notifies the store administrator about every new order.

    Example:
        dispatcher = OrderNotificationDispatcher(settings=Settings(admin_email="owner@shop.example"))
        dispatcher.start()

        # From now on every OrderCreated event reaches the admin's devices
        get_event_bus().publish(order_created(order))
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        data_store: Optional[DataStore] = None,
        push_channel: Optional[PushChannel] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            event_bus: Bus delivering OrderCreated events (defaults to singleton)
            data_store: Identity and profile lookups (defaults to singleton)
            push_channel: Multicast push provider (defaults to the mock)
            settings: Administrator email, currency, link (defaults to env)
        """
        self.event_bus = event_bus or get_event_bus()
        self.data_store = data_store or get_data_store()
        self.push_channel = push_channel or PushChannel()
        self.settings = settings or get_settings()

        self._started = False

    def start(self) -> None:
        """Subscribe to OrderCreated events."""
        if self._started:
            logger.warning("OrderNotificationDispatcher already started")
            return
        self.event_bus.subscribe(EventTypes.ORDER_CREATED, self._handle_order_created)
        self._started = True
        logger.info("OrderNotificationDispatcher started")

    def stop(self) -> None:
        if not self._started:
            return
        self.event_bus.unsubscribe(EventTypes.ORDER_CREATED, self._handle_order_created)
        self._started = False
        logger.info("OrderNotificationDispatcher stopped")

    def _handle_order_created(self, event: Event) -> None:
        order_id = event.payload.get("order_id", "")
        self.dispatch(order_id, event.payload.get("order") or {})

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, order_id: str, order_data: dict[str, Any]) -> DispatchOutcome:
        """
        Notify the administrator about one new order.

        Args:
            order_id: The store-assigned order id
            order_data: The order's stored field data

        Returns:
            DispatchOutcome describing what happened. Never raises.
        """
        try:
            outcome = self._dispatch(order_id, order_data)
        except Exception as e:
            logger.exception(f"Error while processing notification for order {order_id}: {e}")
            return DispatchOutcome(order_id=order_id, status=DispatchStatus.FAILED, error=str(e))

        logger.info(f"Order {order_id}: notification dispatch finished ({outcome.status.value})")
        return outcome

    def _dispatch(self, order_id: str, order_data: dict[str, Any]) -> DispatchOutcome:
        order = OrderNotice.model_validate({**order_data, "id": order_id})

        admin = self.data_store.get_user_by_email(self.settings.admin_email)
        if admin is None:
            logger.info(
                f"Admin user with email {self.settings.admin_email} not found. "
                f"Skipping notification for order {order_id}."
            )
            return DispatchOutcome(order_id=order_id, status=DispatchStatus.ADMIN_NOT_FOUND)

        profile = self.data_store.get_profile(admin.uid)
        if profile is None:
            logger.info(f"Admin settings for user {admin.uid} not found. Skipping order {order_id}.")
            return DispatchOutcome(order_id=order_id, status=DispatchStatus.PROFILE_NOT_FOUND)

        fcm = profile.fcm_settings
        if not fcm.notifications_enabled:
            logger.info(f"Notifications are disabled for admin {admin.uid}. Skipping order {order_id}.")
            return DispatchOutcome(order_id=order_id, status=DispatchStatus.NOTIFICATIONS_DISABLED)

        tokens = list(fcm.tokens)
        if not tokens:
            logger.info(f"No device tokens for admin {admin.uid}. Skipping order {order_id}.")
            return DispatchOutcome(order_id=order_id, status=DispatchStatus.NO_TOKENS)

        message = self.build_message(order)
        result = self.push_channel.send_multicast(tokens, message)
        logger.info(
            f"Sent notification for order {order_id} to "
            f"{result.success_count}/{len(tokens)} device(s)"
        )

        dead_tokens = collect_dead_tokens(result)
        if dead_tokens:
            logger.info(f"Cleaning up {len(dead_tokens)} invalid token(s) for admin {admin.uid}")
            self.data_store.remove_tokens(admin.uid, dead_tokens)

        return DispatchOutcome(
            order_id=order_id,
            status=DispatchStatus.SENT,
            success_count=result.success_count,
            failure_count=result.failure_count,
            pruned_tokens=dead_tokens,
        )

    def build_message(self, order: OrderNotice) -> PushMessage:
        """The admin-facing push notification for an order."""
        title, body = render_notification(
            NotificationType.NEW_ORDER_ADMIN,
            channel="push",
            **order_context(order, currency=self.settings.currency),
        )
        return PushMessage(
            title=title,
            body=body,
            data={"orderId": order.id or ""},
            link=self.settings.notification_link,
            icon=self.settings.notification_icon,
        )
