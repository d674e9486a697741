"""
Notification settings service.

Backs the admin settings page's "enable notifications" toggle. Enabling
registers the device's token and then turns the flag on; disabling only turns
the flag off, so the tokens are still there when notifications come back on.
"""

import logging
from typing import Optional

from shared.data_store import DataStore, get_data_store
from shared.models import FcmSettings

logger = logging.getLogger("notification_settings")


class InvalidTokenError(ValueError):
    """Raised for an empty or blank device token."""


class NotificationSettingsService:
    """Reads and changes a user's push-notification settings."""

    def __init__(self, data_store: Optional[DataStore] = None):
        self.data_store = data_store or get_data_store()

    @staticmethod
    def _clean(token: str) -> str:
        token = (token or "").strip()
        if not token:
            raise InvalidTokenError("Device token must not be empty")
        return token

    def get(self, uid: str) -> FcmSettings:
        """Current settings; a user without a profile has notifications off."""
        profile = self.data_store.get_profile(uid)
        return profile.fcm_settings if profile else FcmSettings()

    def register_token(self, uid: str, token: str) -> FcmSettings:
        """Add a device token without touching the enabled flag."""
        settings = self.data_store.add_token(uid, self._clean(token))
        logger.info(f"Registered device token for user {uid} ({len(settings.tokens)} total)")
        return settings

    def enable(self, uid: str, token: str) -> FcmSettings:
        """Register this device and turn notifications on."""
        self.register_token(uid, token)
        settings = self.data_store.set_notifications_enabled(uid, True)
        logger.info(f"Notifications enabled for user {uid}")
        return settings

    def disable(self, uid: str) -> FcmSettings:
        settings = self.data_store.set_notifications_enabled(uid, False)
        logger.info(f"Notifications disabled for user {uid}")
        return settings

    def unregister_token(self, uid: str, token: str) -> FcmSettings:
        """Forget one device, e.g. on sign-out."""
        self.data_store.remove_tokens(uid, [self._clean(token)])
        return self.get(uid)
