"""
Document models for the storefront order-notification service.

These models mirror the documents kept in the managed document store:
orders written by checkout, identity-provider user records, and the per-user
profile document that holds push-notification settings.

Design decisions:
- Using Pydantic for validation and serialization
- Attributes are snake_case in code, camelCase on the wire (stored documents)
- Only the fields the notification flow and checkout touch are modelled;
  everything else on a stored document is ignored on read
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


# =============================================================================
# Enums
# =============================================================================

class OrderStatus(str, Enum):
    """Order lifecycle states as shown in the admin back-office."""
    PROCESSING = "Processing"     # Placed, awaiting fulfilment
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# =============================================================================
# Orders
# =============================================================================

class ShippingInfo(BaseModel):
    """Where the order goes and who to address it to."""
    name: str = Field(..., description="Customer display name")
    email: str = Field(..., description="Address for the confirmation email")
    address: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    zip: str = Field(default="")
    country: str = Field(default="")


class OrderItem(BaseModel):
    """A cart line captured at checkout time."""
    product_id: str = Field(..., alias="productId")
    name: str = Field(..., description="Product name at time of order")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at time of order")

    model_config = ConfigDict(populate_by_name=True)


class Order(BaseModel):
    """
    Order document, created once by checkout.

    The id is assigned by the document store when the order is written.
    The notification flow reads only `total_price` and the shipping name.
    """
    id: Optional[str] = Field(default=None, description="Assigned by the store")
    user_id: Optional[str] = Field(default=None, alias="userId")
    items: list[OrderItem] = Field(default_factory=list)
    total_price: float = Field(..., ge=0, alias="totalPrice")
    shipping_info: Optional[ShippingInfo] = Field(default=None, alias="shippingInfo")
    payment_method: str = Field(default="card", alias="paymentMethod")
    status: OrderStatus = Field(default=OrderStatus.PROCESSING)
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @property
    def short_id(self) -> str:
        """First 8 characters of the id, as shown to people."""
        return (self.id or "")[:8]

    @property
    def customer_name(self) -> Optional[str]:
        if self.shipping_info is None:
            return None
        return self.shipping_info.name or None

    def to_document(self) -> dict:
        """Field data as stored (camelCase, JSON-safe, without the id)."""
        return self.model_dump(by_alias=True, mode="json", exclude={"id"})


class ShippingName(BaseModel):
    name: Optional[str] = None


class OrderNotice(BaseModel):
    """
    The slice of a new order document the admin notification reads.

    Only the total is required. The rest of the document (items, address,
    email) may be incomplete without keeping the admin from being notified.
    """
    id: str
    total_price: float = Field(..., alias="totalPrice")
    shipping_info: Optional[ShippingName] = Field(default=None, alias="shippingInfo")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def customer_name(self) -> Optional[str]:
        if self.shipping_info is None:
            return None
        return self.shipping_info.name or None


# =============================================================================
# Users and notification settings
# =============================================================================

class UserRecord(BaseModel):
    """An account as known to the identity provider."""
    uid: str
    email: str
    display_name: Optional[str] = Field(default=None, alias="displayName")

    model_config = ConfigDict(populate_by_name=True)


class FcmSettings(BaseModel):
    """
    Push-notification settings kept on a user's profile document.

    `tokens` is a set in meaning: order is irrelevant and duplicates are
    not expected, though the data layer does not enforce it.
    """
    notifications_enabled: bool = Field(default=False, alias="notificationsEnabled")
    tokens: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("tokens", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        # Older documents store `tokens: null`
        return value or []


class UserProfile(BaseModel):
    """The `users/{uid}` document."""
    uid: str
    fcm_settings: FcmSettings = Field(default_factory=FcmSettings, alias="fcmSettings")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Outbound messages recorded in the store
# =============================================================================

class UserNotification(BaseModel):
    """In-app notification shown in the storefront's notification bell."""
    id: str
    user_id: str = Field(..., alias="userId")
    message: str
    link: str = Field(default="/account")
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class MailMessage(BaseModel):
    """
    A queued email.

    Emails are written to a `mail` collection and picked up by the
    backend's email-sending extension.
    """
    id: str
    to: list[str]
    subject: str
    html: str
    text: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)
