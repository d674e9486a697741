"""
In-memory event bus standing in for the document store's change triggers.

When a document is created, the store's change-notification mechanism
invokes every function registered for that collection. This bus gives the
same contract in-process: publishers emit an event, subscribers are invoked
with it, and neither knows about the other.

Design decisions:
- Synchronous delivery, handlers called in registration order
- One handler list per event type, the way a trigger is bound to a collection
- At-least-once delivery: a handler that raises is invoked again, up to
  `max_deliveries` times in total. Handlers must therefore be idempotent.
- A handler that keeps failing is logged and dropped; it never stops
  delivery to the other handlers or reaches the publisher
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import uuid4

logger = logging.getLogger("event_bus")


@dataclass
class Event:
    """
    A change in the store that subscribers react to.

    Attributes:
        event_type: Routing key, e.g. "OrderCreated"
        payload: What the subscriber needs (ids and document data)
        source: Component that made the change
        event_id: Unique per event; the same on every redelivery
        timestamp: When the change happened
    """
    event_type: str
    payload: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Simple in-memory event bus implementing pub/sub with redelivery.

    Example usage:
        bus = EventBus(max_deliveries=3)

        def on_order(event):
            print(f"New order: {event.payload['order_id']}")
        bus.subscribe("OrderCreated", on_order)

        bus.publish(Event(
            event_type="OrderCreated",
            source="checkout",
            payload={"order_id": "abc123", "order": {...}},
        ))
    """

    def __init__(self, max_deliveries: int = 1):
        """
        Initialize the event bus.

        Args:
            max_deliveries: How many times a failing handler is invoked
                before the event is given up on for that handler
        """
        if max_deliveries < 1:
            raise ValueError("max_deliveries must be at least 1")
        self.max_deliveries = max_deliveries

        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._published: list[Event] = []
        self._dead_letters: list[tuple[Event, str]] = []

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register `handler` for every future event of `event_type`."""
        self._handlers[event_type].append(handler)
        logger.debug(f"Handler registered for '{event_type}'")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Remove one registration of `handler`.

        Returns:
            True if the handler was registered, False otherwise
        """
        handlers = self._handlers.get(event_type, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        logger.debug(f"Handler removed from '{event_type}'")
        return True

    def _deliver(self, handler: EventHandler, event: Event) -> bool:
        """Invoke one handler until it succeeds or deliveries run out."""
        for attempt in range(1, self.max_deliveries + 1):
            try:
                handler(event)
                return True
            except Exception as e:
                if attempt < self.max_deliveries:
                    logger.warning(
                        f"Handler failed for {event} (attempt {attempt}/{self.max_deliveries}), "
                        f"redelivering: {e}"
                    )
                else:
                    logger.error(
                        f"Handler failed for {event} after {attempt} attempt(s), giving up: {e}"
                    )
                    self._dead_letters.append((event, str(e)))
        return False

    def publish(self, event: Event) -> int:
        """
        Deliver an event to every handler registered for its type.

        Handlers run synchronously, in registration order.

        Returns:
            Number of handlers the event was delivered to
        """
        self._published.append(event)
        logger.info(f"Publishing: {event}")

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.warning(f"No handlers for event type '{event.event_type}'")
        for handler in handlers:
            self._deliver(handler, event)
        return len(handlers)

    def get_subscriber_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    def get_event_log(self) -> list[Event]:
        """Every event published so far, oldest first."""
        return self._published.copy()

    def get_dead_letters(self) -> list[tuple[Event, str]]:
        """Events a handler never managed to process, with the last error."""
        return self._dead_letters.copy()

    def clear_event_log(self) -> None:
        self._published.clear()
        self._dead_letters.clear()


_default_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


def reset_event_bus(max_deliveries: int = 1) -> EventBus:
    """Replace the process-wide event bus (useful for testing)."""
    global _default_bus
    _default_bus = EventBus(max_deliveries=max_deliveries)
    return _default_bus
