"""
HTTP API for the storefront order-notification service.

This package provides a single FastAPI application that exposes:
- Checkout, whose order writes fire the OrderCreated trigger
- In-app notifications for customers
- Push-notification settings for the administrator's devices
"""

from api.main import app

__all__ = ["app"]
