"""
FastAPI application for the storefront order-notification service.

This application provides:
1. Checkout (/orders), whose writes fire the OrderCreated trigger
2. In-app notifications (/users/{uid}/notifications)
3. Push-notification settings (/users/{uid}/notification-settings)

The dispatcher that notifies the administrator is subscribed to the event bus
for the application's lifetime. It has no endpoint of its own.

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from notifier.event_bus import EventBus
from notifier.order_notifications import OrderNotificationDispatcher
from notifier.services.checkout import CheckoutService, EmptyCartError
from notifier.services.notification_settings import (
    InvalidTokenError,
    NotificationSettingsService,
)
from shared.backends import create_data_store, create_push_channel
from shared.config import Settings, configure_logging, get_settings
from shared.models import FcmSettings, Order, OrderItem, ShippingInfo, UserNotification

logger = logging.getLogger("api")


# =============================================================================
# Request models
# =============================================================================

class PlaceOrderRequest(BaseModel):
    """Checkout submission."""
    user_id: str = Field(..., alias="userId")
    shipping_info: ShippingInfo = Field(..., alias="shippingInfo")
    items: list[OrderItem]
    payment_method: str = Field(default="card", alias="paymentMethod")

    model_config = ConfigDict(populate_by_name=True)


class TokenRequest(BaseModel):
    token: str


# =============================================================================
# Application state
# =============================================================================

class Runtime:
    """Everything one running application shares: store, bus, services."""

    def __init__(
        self,
        settings: Settings,
        data_store=None,
        push_channel=None,
    ):
        self.settings = settings
        self.data_store = data_store if data_store is not None else create_data_store(settings)
        self.push_channel = push_channel if push_channel is not None else create_push_channel(settings)
        self.event_bus = EventBus(max_deliveries=settings.max_deliveries)
        self.dispatcher = OrderNotificationDispatcher(
            event_bus=self.event_bus,
            data_store=self.data_store,
            push_channel=self.push_channel,
            settings=settings,
        )
        self.checkout = CheckoutService(
            event_bus=self.event_bus,
            data_store=self.data_store,
            settings=settings,
        )
        self.notification_settings = NotificationSettingsService(data_store=self.data_store)
        self.dispatcher.start()

    def close(self) -> None:
        self.dispatcher.stop()


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    """Get the application runtime, building it from settings on first use."""
    global _runtime
    if _runtime is None:
        _runtime = Runtime(get_settings())
    return _runtime


def reset_api_state(
    settings: Optional[Settings] = None,
    data_store=None,
    push_channel=None,
) -> Optional[Runtime]:
    """
    Replace the application runtime (for testing).

    With no settings the runtime is cleared and rebuilt lazily on next use.
    """
    global _runtime
    if _runtime is not None:
        _runtime.close()
    _runtime = None
    if settings is not None:
        _runtime = Runtime(settings, data_store=data_store, push_channel=push_channel)
    return _runtime


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    configure_logging(get_settings().log_level)
    logging.info("Starting storefront order-notification API")
    get_runtime()
    yield
    logging.info("Shutting down")
    reset_api_state()


app = FastAPI(
    title="Storefront Order Notifications",
    description="""
    Checkout and notification settings for the storefront.

    Placing an order writes it to the document store and fires the
    OrderCreated trigger; the administrator's registered devices receive a
    push notification and dead device tokens are pruned.
    """,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "storefront-order-notifications"}


# =============================================================================
# Orders
# =============================================================================

@app.post("/orders", response_model=Order, status_code=201, tags=["Orders"])
def place_order(request: PlaceOrderRequest, runtime: Runtime = Depends(get_runtime)) -> Order:
    """Place an order. The admin is notified through the order-created trigger."""
    try:
        return runtime.checkout.place_order(
            user_id=request.user_id,
            shipping_info=request.shipping_info,
            items=request.items,
            payment_method=request.payment_method,
        )
    except EmptyCartError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/orders/{order_id}", response_model=Order, tags=["Orders"])
def get_order(order_id: str, runtime: Runtime = Depends(get_runtime)) -> Order:
    order = runtime.data_store.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order not found: {order_id}")
    return order


# =============================================================================
# In-app notifications
# =============================================================================

@app.get("/users/{uid}/notifications", response_model=list[UserNotification], tags=["Notifications"])
def list_notifications(uid: str, runtime: Runtime = Depends(get_runtime)) -> list[UserNotification]:
    return runtime.data_store.get_user_notifications(uid)


# =============================================================================
# Push-notification settings
# =============================================================================

@app.get("/users/{uid}/notification-settings", response_model=FcmSettings, tags=["Notification Settings"])
def get_notification_settings(uid: str, runtime: Runtime = Depends(get_runtime)) -> FcmSettings:
    return runtime.notification_settings.get(uid)


@app.post(
    "/users/{uid}/notification-settings/enable",
    response_model=FcmSettings,
    tags=["Notification Settings"],
)
def enable_notifications(
    uid: str,
    request: TokenRequest,
    runtime: Runtime = Depends(get_runtime),
) -> FcmSettings:
    """Register the calling device and turn notifications on."""
    try:
        return runtime.notification_settings.enable(uid, request.token)
    except InvalidTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post(
    "/users/{uid}/notification-settings/disable",
    response_model=FcmSettings,
    tags=["Notification Settings"],
)
def disable_notifications(uid: str, runtime: Runtime = Depends(get_runtime)) -> FcmSettings:
    return runtime.notification_settings.disable(uid)


@app.delete(
    "/users/{uid}/notification-settings/tokens/{token}",
    response_model=FcmSettings,
    tags=["Notification Settings"],
)
def unregister_token(uid: str, token: str, runtime: Runtime = Depends(get_runtime)) -> FcmSettings:
    try:
        return runtime.notification_settings.unregister_token(uid, token)
    except InvalidTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
