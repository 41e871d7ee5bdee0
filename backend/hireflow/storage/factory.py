"""Object store factory.

Singleton pattern for the object store instance.
"""

from hireflow.core.config import Settings, settings
from hireflow.storage.base import ObjectStore
from hireflow.storage.keys import StorageKeyPolicy
from hireflow.storage.memory_adapter import InMemoryObjectStore
from hireflow.storage.s3_adapter import S3ObjectStore

_object_store: ObjectStore | None = None


def get_object_store(config: Settings | None = None) -> ObjectStore:
    """Get or create the object store singleton.

    WHY SINGLETON:
    - Reuses the boto3 client and its connection pool
    - The in-memory backend must be shared for objects to survive between
      requests in local development

    Args:
        config: Optional settings. If None, uses the application settings.

    Returns:
        ObjectStore instance.

    Raises:
        ValueError: If the configured backend is unknown.
    """
    global _object_store

    if _object_store is None:
        config = config or settings

        if config.storage_backend == "s3":
            _object_store = S3ObjectStore.from_settings(config)
        elif config.storage_backend == "memory":
            _object_store = InMemoryObjectStore(StorageKeyPolicy.from_settings(config))
        else:
            raise ValueError(f"Unknown storage backend: {config.storage_backend}")

    return _object_store


def reset_object_store() -> None:
    """Reset the object store singleton.

    Used in tests to ensure isolation between test cases.
    """
    global _object_store
    _object_store = None
