"""Object storage abstraction layer.

Exports:
    ObjectStore and shared storage types
    Key layout and upload rules
    Error classes for storage error handling
    Factory functions for the store instance
"""

from hireflow.storage.base import FileAsset, ObjectStore, PresignedUpload
from hireflow.storage.errors import (
    ObjectNotFoundError,
    StorageAuthError,
    StorageError,
    TransientStorageError,
)
from hireflow.storage.factory import get_object_store, reset_object_store
from hireflow.storage.keys import StorageFolder, StorageKeyPolicy

__all__ = [
    # Types
    "FileAsset",
    "ObjectStore",
    "PresignedUpload",
    "StorageFolder",
    "StorageKeyPolicy",
    # Errors
    "StorageError",
    "ObjectNotFoundError",
    "StorageAuthError",
    "TransientStorageError",
    # Factory
    "get_object_store",
    "reset_object_store",
]
