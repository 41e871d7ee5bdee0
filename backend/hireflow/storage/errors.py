"""Object storage error taxonomy.

Adapters translate backend-specific failures (botocore ClientError codes,
connection errors) into these classes so the finalization saga handles
every backend the same way.

WHY SEPARATE ERROR CLASSES:
- Clear distinction between retryable and non-retryable errors
- Backend-agnostic handling in the saga and in the retry helper
"""

__all__ = [
    "StorageError",
    "ObjectNotFoundError",
    "StorageAuthError",
    "TransientStorageError",
]


class StorageError(Exception):
    """Base class for all object storage errors.

    Args:
        message: Error description.
        key: Object key the failed call targeted, if any.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class ObjectNotFoundError(StorageError):
    """Source object does not exist.

    WHY NOT RETRYABLE:
    - A temporary upload that is gone (expired or never uploaded) will not
      reappear; the client has to upload again
    """

    pass


class StorageAuthError(StorageError):
    """Credentials rejected or access denied by the bucket policy."""

    pass


class TransientStorageError(StorageError):
    """Temporary failure (network, throttling, 5xx).

    Safe to retry with exponential backoff.
    """

    pass
