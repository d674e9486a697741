"""
Backend selection.

The memory backend runs entirely on JSON fixtures and the mock push provider.
The firebase backend talks to the managed services; its adapters are imported
only when selected.
"""

import logging

from shared.channels import PushChannel
from shared.config import Settings
from shared.data_store import DataStore

logger = logging.getLogger("backends")


def create_data_store(settings: Settings):
    """Build the document store named by `settings.backend`."""
    if settings.backend == "firebase":
        from shared.firebase import FirestoreDataStore, init_firebase_app

        app = init_firebase_app(settings.firebase_credentials)
        return FirestoreDataStore(app=app)
    logger.info("Using in-memory data store")
    return DataStore(data_dir=settings.data_dir)


def create_push_channel(settings: Settings):
    """Build the push provider named by `settings.backend`."""
    if settings.backend == "firebase":
        from shared.firebase import FirebasePushChannel, init_firebase_app

        return FirebasePushChannel(app=init_firebase_app(settings.firebase_credentials))
    logger.info("Using mock push channel")
    return PushChannel()
