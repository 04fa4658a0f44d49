"""
BunnyCDN Edge Storage integration.

Implements the RemoteObjectClient protocol from core.storage.service over
Bunny's Storage HTTP API. Includes mock mode for local development
without credentials.
"""

from .client import (
    BunnyObject,
    BunnyStorageClient,
    BunnyStorageError,
    MockBunnyStorageClient,
    ObjectNotFoundError,
    RangeNotSatisfiableError,
    create_bunny_client,
    create_storage_service,
)

__all__ = [
    "BunnyObject",
    "BunnyStorageClient",
    "BunnyStorageError",
    "MockBunnyStorageClient",
    "ObjectNotFoundError",
    "RangeNotSatisfiableError",
    "create_bunny_client",
    "create_storage_service",
]
