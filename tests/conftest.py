"""
Shared pytest fixtures for the order-notification tests.

These fixtures provide consistent test data and fresh state for each test.
"""

import pytest
from pathlib import Path

from notifier.event_bus import EventBus
from shared.channels import PushChannel
from shared.config import Settings
from shared.data_store import DataStore


@pytest.fixture
def data_dir() -> Path:
    """Path to the JSON fixture directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def data_store(data_dir: Path) -> DataStore:
    """
    Fresh DataStore instance for each test.

    Uses the real JSON fixtures but creates a new instance
    so tests don't interfere with each other.
    """
    return DataStore(data_dir=data_dir)


@pytest.fixture
def empty_store(tmp_path: Path) -> DataStore:
    """DataStore with no fixtures at all."""
    return DataStore(data_dir=tmp_path)


@pytest.fixture
def settings(admin_email: str) -> Settings:
    """Settings pointing at the fixture administrator."""
    return Settings(admin_email=admin_email, currency="PKR", store_name="Talha Luxe")


@pytest.fixture
def push_channel() -> PushChannel:
    """Fresh mock push provider for each test."""
    return PushChannel()


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh event bus for each test."""
    return EventBus()


# =============================================================================
# Fixture identities
# =============================================================================

@pytest.fixture
def admin_email() -> str:
    return "admin@storefront.example"


@pytest.fixture
def admin_uid() -> str:
    """The administrator: notifications on, three registered devices."""
    return "admin-uid-001"


@pytest.fixture
def admin_tokens() -> list[str]:
    return ["token-admin-laptop", "token-admin-phone", "token-old-tablet"]


@pytest.fixture
def customer_uid() -> str:
    """Ayesha: customer with a profile, notifications off."""
    return "cust-uid-001"


@pytest.fixture
def profileless_uid() -> str:
    """Bilal: customer with an account but no profile document."""
    return "cust-uid-002"


@pytest.fixture
def shipped_order_id() -> str:
    """Ayesha's two-item shipped order."""
    return "Xk3fQ9aLm2Pz7RtY8wVb"
