"""
Runtime configuration.

All services receive a `Settings` instance at construction time. The store
has exactly one administrator; their account is named here by email rather
than baked into the notification code, so tests can point it anywhere.

Environment variables (all optional):
    STOREFRONT_ADMIN_EMAIL          Administrator account to notify
    STOREFRONT_CURRENCY             Currency label used in messages
    STOREFRONT_STORE_NAME           Shown in email subjects
    STOREFRONT_ADMIN_EMAIL_ALERTS   Also email the admin on new orders (true/false)
    STOREFRONT_BACKEND              "memory" (JSON fixtures) or "firebase"
    STOREFRONT_DATA_DIR             Fixture directory for the memory backend
    STOREFRONT_FIREBASE_CREDENTIALS Service-account JSON for the firebase backend
    STOREFRONT_MAX_DELIVERIES       Trigger redelivery attempts per handler
    STOREFRONT_LOG_LEVEL            Root log level
"""

import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"


class Settings(BaseSettings):
    """
    Configuration shared by the dispatcher, checkout and the API.

    Values passed to the constructor win over `STOREFRONT_*` environment
    variables, which win over the defaults. Unset or empty variables keep
    their defaults; a bad value raises `ValidationError`.
    """
    admin_email: str = Field(default="admin@storefront.example")
    currency: str = Field(default="PKR")
    store_name: str = Field(default="Storefront")
    notification_icon: str = Field(default="/logo.png")
    notification_link: str = Field(
        default="/admin/orders",
        description="Page opened when the admin taps the push notification",
    )
    admin_email_alerts: bool = Field(default=True)
    backend: Literal["memory", "firebase"] = Field(default="memory")
    data_dir: Optional[Path] = Field(default=None)
    firebase_credentials: Optional[str] = Field(default=None)
    max_deliveries: int = Field(default=3, ge=1)
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_ignore_empty=True,
        extra="ignore",
    )


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings, read from the environment once."""
    global _default_settings
    if _default_settings is None:
        _default_settings = Settings()
    return _default_settings


def reset_settings(settings: Optional[Settings] = None) -> Optional[Settings]:
    """Replace the process-wide settings (useful for testing)."""
    global _default_settings
    _default_settings = settings
    return _default_settings


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the API server and the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
