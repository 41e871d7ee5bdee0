"""Abstract object store and shared storage types.

The store is an external collaborator with no transaction shared with the
database. Correctness of the finalization saga rests on the guarantees of
these four calls, so every adapter must honour them:

- stage(): writes into the temporary namespace only.
- move(): either returns a permanent asset whose content equals the
  temporary object, or raises leaving the temporary object intact.
- delete(): best-effort; a missing key is not an error.
- exists(): plain existence check.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from hireflow.storage.keys import StorageFolder, StorageKeyPolicy


class FileAsset(BaseModel):
    """Reference to a stored document as carried in step records.

    Temporary and finalized assets have the same shape; only the key
    prefix tells them apart (see StorageKeyPolicy.is_temp_key).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str = Field(min_length=1, max_length=1024)
    url: str = Field(min_length=1, max_length=2048)
    mime_type: str = Field(min_length=1, max_length=255)
    original_name: str | None = Field(default=None, max_length=255)
    size_bytes: int | None = Field(default=None, ge=0)


@dataclass(frozen=True)
class PresignedUpload:
    """A one-shot PUT target in the temporary namespace.

    Attributes:
        key: Temporary key the object will be stored under.
        upload_url: Presigned URL the client PUTs the bytes to.
        public_url: URL recorded in the FileAsset once uploaded.
        mime_type: Canonical Content-Type the URL was signed with.
        expires_in: Seconds until upload_url stops working.
        headers: Headers the client must send with the PUT.
    """

    key: str
    upload_url: str
    public_url: str
    mime_type: str
    expires_in: int
    headers: dict[str, str] = field(default_factory=dict)


class ObjectStore(ABC):
    """Abstract blob store used by uploads and the finalization saga.

    Args:
        key_policy: Key layout shared with the saga.
    """

    def __init__(self, key_policy: StorageKeyPolicy) -> None:
        self.key_policy = key_policy

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short backend identifier for logs (e.g., "s3")."""
        ...

    @abstractmethod
    async def stage(
        self,
        data: bytes,
        mime_type: str,
        folder: StorageFolder,
        session_id: str | None = None,
        original_name: str | None = None,
    ) -> FileAsset:
        """Store bytes in the temporary namespace.

        Returns:
            Temporary FileAsset.
        """
        ...

    @abstractmethod
    async def presign_upload(
        self,
        folder: StorageFolder,
        mime_type: str,
        session_id: str | None = None,
        expires_in: int = 300,
    ) -> PresignedUpload:
        """Issue a presigned PUT for a new temporary object."""
        ...

    @abstractmethod
    async def move(self, temp_key: str, destination_prefix: str) -> FileAsset:
        """Finalize a temporary object under a permanent prefix.

        The permanent key is StorageKeyPolicy.final_key(temp_key, prefix).

        Returns:
            FileAsset for the permanent copy (key, url, mime_type, size).

        Raises:
            ObjectNotFoundError: If the temporary object does not exist.
            StorageError: On any other failure. The temporary object is
                left intact.
        """
        ...

    @abstractmethod
    async def delete(self, keys: Sequence[str]) -> None:
        """Delete objects. Missing keys are ignored.

        Raises:
            StorageError: If the backend rejects the request.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True if an object is stored under the key."""
        ...
