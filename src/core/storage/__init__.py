"""
Object storage adapter.

Contains the generic storage contract, its BunnyCDN implementation,
and the value types both sides of the contract share.
"""

from .models import (
    BunnyStorageConfig,
    ByteRange,
    Capabilities,
    IntegrityError,
    UnsupportedCapabilityError,
)
from .service import (
    BunnyStorageService,
    RemoteObject,
    RemoteObjectClient,
    StorageService,
)

__all__ = [
    "BunnyStorageConfig",
    "ByteRange",
    "Capabilities",
    "IntegrityError",
    "UnsupportedCapabilityError",
    "BunnyStorageService",
    "RemoteObject",
    "RemoteObjectClient",
    "StorageService",
]
