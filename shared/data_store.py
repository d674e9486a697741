"""
JSON-backed in-memory document store.

This module provides the data access layer used in development and tests.
It loads JSON fixtures and keeps all writes in memory. `shared.firebase`
provides the same operations against the managed document store.

Design decisions:
- Fixtures are loaded lazily, per collection
- Reads return detached copies, like a point-read snapshot: mutating a
  returned model never changes the store
- Token removal is a set difference against the tokens stored *now*, not an
  overwrite with a list computed from an earlier read, so concurrent
  removals commute
- Mutations are serialized with a lock
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

from shared.models import (
    FcmSettings,
    MailMessage,
    Order,
    UserNotification,
    UserProfile,
    UserRecord,
)

logger = logging.getLogger("data_store")


def new_document_id() -> str:
    """A 20-character document id."""
    return uuid4().hex[:20]


class DataStore:
    """
    Central data store that loads and manages JSON fixtures.

    Collections:
    - users: identity-provider accounts (uid, email)
    - profiles: `users/{uid}` documents holding push settings
    - orders
    - mail: queued outbound email
    - notifications: in-app notifications, per user
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """
        Initialize the data store.

        Args:
            data_dir: Directory containing the JSON fixtures.
                      Defaults to ./data relative to project root.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"

        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

        # In-memory caches - loaded lazily
        self._users: Optional[dict[str, UserRecord]] = None
        self._profiles: Optional[dict[str, UserProfile]] = None
        self._orders: Optional[dict[str, Order]] = None
        self._mail: list[MailMessage] = []
        self._notifications: dict[str, list[UserNotification]] = {}

    # =========================================================================
    # Data Loading (lazy)
    # =========================================================================

    def _load_json(self, filename: str) -> list[dict]:
        """Load a JSON fixture file."""
        filepath = self.data_dir / filename
        if not filepath.exists():
            return []
        with open(filepath, "r") as f:
            return json.load(f)

    def _ensure_users_loaded(self):
        with self._lock:
            if self._users is None:
                data = self._load_json("users.json")
                self._users = {u["uid"]: UserRecord.model_validate(u) for u in data}

    def _ensure_profiles_loaded(self):
        with self._lock:
            if self._profiles is None:
                data = self._load_json("profiles.json")
                self._profiles = {p["uid"]: UserProfile.model_validate(p) for p in data}

    def _ensure_orders_loaded(self):
        with self._lock:
            if self._orders is None:
                data = self._load_json("orders.json")
                self._orders = {o["id"]: Order.model_validate(o) for o in data}

    # =========================================================================
    # Identity
    # =========================================================================

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Resolve an account by email. Matching is case-insensitive."""
        self._ensure_users_loaded()
        wanted = email.strip().lower()
        with self._lock:
            for user in self._users.values():
                if user.email.lower() == wanted:
                    return user.model_copy()
        return None

    def get_user(self, uid: str) -> Optional[UserRecord]:
        self._ensure_users_loaded()
        with self._lock:
            user = self._users.get(uid)
        return user.model_copy() if user else None

    def add_user(self, user: UserRecord) -> UserRecord:
        """Register an account (fixtures and tests)."""
        self._ensure_users_loaded()
        with self._lock:
            self._users[user.uid] = user.model_copy()
        return user

    # =========================================================================
    # Profiles / push settings
    # =========================================================================

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        """
        Point-read a user's profile document.

        Returns a detached snapshot, or None if the document does not exist.
        """
        self._ensure_profiles_loaded()
        with self._lock:
            profile = self._profiles.get(uid)
            return profile.model_copy(deep=True) if profile else None

    def put_profile(self, profile: UserProfile) -> None:
        """Replace a whole profile document (fixtures and tests)."""
        self._ensure_profiles_loaded()
        with self._lock:
            self._profiles[profile.uid] = profile.model_copy(deep=True)

    def _profile_for_update(self, uid: str) -> UserProfile:
        # Merge-writes create the document when it is missing
        profile = self._profiles.get(uid)
        if profile is None:
            profile = UserProfile(uid=uid, fcm_settings=FcmSettings())
            self._profiles[uid] = profile
        return profile

    def add_token(self, uid: str, token: str) -> FcmSettings:
        """Add a device token to the user's set (array-union)."""
        self._ensure_profiles_loaded()
        with self._lock:
            settings = self._profile_for_update(uid).fcm_settings
            if token not in settings.tokens:
                settings.tokens.append(token)
            return settings.model_copy(deep=True)

    def set_notifications_enabled(self, uid: str, enabled: bool) -> FcmSettings:
        """Set the notifications flag, leaving tokens untouched (field merge)."""
        self._ensure_profiles_loaded()
        with self._lock:
            settings = self._profile_for_update(uid).fcm_settings
            settings.notifications_enabled = enabled
            return settings.model_copy(deep=True)

    def remove_tokens(self, uid: str, tokens: Iterable[str]) -> None:
        """
        Remove tokens from the user's set (array-remove).

        The difference is taken against the currently stored tokens; any
        other token is left untouched. Removing an absent token is a no-op.
        """
        self._ensure_profiles_loaded()
        doomed = set(tokens)
        with self._lock:
            profile = self._profiles.get(uid)
            if profile is None:
                logger.warning(f"Cannot remove tokens, no profile for user {uid}")
                return
            settings = profile.fcm_settings
            before = len(settings.tokens)
            settings.tokens = [t for t in settings.tokens if t not in doomed]
            removed = before - len(settings.tokens)
        logger.debug(f"Removed {removed} of {len(doomed)} requested token(s) from user {uid}")

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(self, order: Order) -> Order:
        """
        Write a new order document.

        The store assigns the id and creation time. Returns the stored order.
        """
        self._ensure_orders_loaded()
        stored = order.model_copy(update={
            "id": new_document_id(),
            "created_at": datetime.utcnow(),
        })
        with self._lock:
            self._orders[stored.id] = stored
        logger.info(f"Order {stored.id} created for user {stored.user_id}")
        return stored.model_copy()

    def get_order(self, order_id: str) -> Optional[Order]:
        self._ensure_orders_loaded()
        with self._lock:
            order = self._orders.get(order_id)
        return order.model_copy() if order else None

    def get_orders(self) -> list[Order]:
        self._ensure_orders_loaded()
        with self._lock:
            return [o.model_copy() for o in self._orders.values()]

    def get_orders_by_user(self, user_id: str) -> list[Order]:
        self._ensure_orders_loaded()
        with self._lock:
            return [o.model_copy() for o in self._orders.values() if o.user_id == user_id]

    # =========================================================================
    # Mail and in-app notifications
    # =========================================================================

    def queue_mail(
        self,
        to: list[str],
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> MailMessage:
        """Queue an email for the mail sender."""
        message = MailMessage(
            id=new_document_id(),
            to=list(to),
            subject=subject,
            html=html,
            text=text,
        )
        with self._lock:
            self._mail.append(message)
        logger.info(f"[MAIL] To: {', '.join(to)} | Subject: {subject}")
        return message

    def get_mail(self) -> list[MailMessage]:
        with self._lock:
            return list(self._mail)

    def add_user_notification(
        self,
        uid: str,
        message: str,
        link: str = "/account",
    ) -> UserNotification:
        """Add an in-app notification to a user's list."""
        notification = UserNotification(
            id=new_document_id(),
            user_id=uid,
            message=message,
            link=link,
        )
        with self._lock:
            self._notifications.setdefault(uid, []).append(notification)
        return notification

    def get_user_notifications(self, uid: str) -> list[UserNotification]:
        with self._lock:
            return list(self._notifications.get(uid, []))

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def reload(self):
        """
        Drop all in-memory state and reload from the JSON files.

        Useful for tests that modify fixture files.
        """
        with self._lock:
            self._users = None
            self._profiles = None
            self._orders = None
            self._mail = []
            self._notifications = {}


# Module-level singleton for convenience
# In tests, create a new DataStore instance with test fixtures
_default_store: Optional[DataStore] = None


def get_data_store() -> DataStore:
    """Get the default data store singleton."""
    global _default_store
    if _default_store is None:
        _default_store = DataStore()
    return _default_store
