"""In-memory object store.

Used for local development (STORAGE_BACKEND=memory) and as the test double
for the finalization saga.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from hireflow.storage.base import FileAsset, ObjectStore, PresignedUpload
from hireflow.storage.errors import ObjectNotFoundError, StorageError, TransientStorageError
from hireflow.storage.keys import StorageFolder, StorageKeyPolicy


@dataclass(frozen=True)
class StoredObject:
    """Bytes plus the metadata S3 would keep alongside them."""

    data: bytes
    mime_type: str


class InMemoryObjectStore(ObjectStore):
    """Dict-backed object store with failure injection.

    WHY FAILURE INJECTION:
    - The saga's compensation paths only run when the store fails
    - Lets tests fail one specific move while its siblings succeed

    Attributes:
        objects: Stored objects keyed by object key.
        calls: Record of every store call for test assertions.
    """

    def __init__(
        self,
        key_policy: StorageKeyPolicy | None = None,
        base_url: str = "memory://hireflow",
    ) -> None:
        super().__init__(key_policy or StorageKeyPolicy())
        self.base_url = base_url.rstrip("/")
        self.objects: dict[str, StoredObject] = {}
        self.calls: list[dict[str, Any]] = []
        self._move_failures: dict[str, StorageError] = {}
        self._delete_failure: StorageError | None = None

    @property
    def backend_name(self) -> str:
        """Return 'memory'."""
        return "memory"

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail_move(self, temp_key: str, error: StorageError | None = None) -> None:
        """Make every move of temp_key raise until cleared."""
        self._move_failures[temp_key] = error or TransientStorageError(
            "Injected move failure", key=temp_key
        )

    def fail_deletes(self, error: StorageError | None = None) -> None:
        """Make every delete call raise until cleared."""
        self._delete_failure = error or TransientStorageError("Injected delete failure")

    def clear_failures(self) -> None:
        """Remove all injected failures."""
        self._move_failures.clear()
        self._delete_failure = None

    def put(self, key: str, data: bytes, mime_type: str) -> FileAsset:
        """Store an object directly under any key (seeding finalized objects)."""
        self.objects[key] = StoredObject(data=data, mime_type=mime_type)
        return FileAsset(
            key=key, url=self.url_for(key), mime_type=mime_type, size_bytes=len(data)
        )

    def url_for(self, key: str) -> str:
        """Public URL of a key."""
        return f"{self.base_url}/{key}"

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        """Recorded calls of one operation ("stage", "move", "delete", ...)."""
        return [call for call in self.calls if call["op"] == operation]

    @property
    def deleted_keys(self) -> list[str]:
        """Every key passed to delete(), in call order."""
        return [key for call in self.calls_to("delete") for key in call["keys"]]

    # -------------------------------------------------------------------------
    # ObjectStore
    # -------------------------------------------------------------------------

    async def stage(
        self,
        data: bytes,
        mime_type: str,
        folder: StorageFolder,
        session_id: str | None = None,
        original_name: str | None = None,
    ) -> FileAsset:
        """Store bytes under a fresh temporary key."""
        key = self.key_policy.temp_key(folder, mime_type, session_id)
        self.calls.append({"op": "stage", "key": key})
        self.objects[key] = StoredObject(data=data, mime_type=mime_type)
        return FileAsset(
            key=key,
            url=self.url_for(key),
            mime_type=mime_type,
            original_name=original_name,
            size_bytes=len(data),
        )

    async def presign_upload(
        self,
        folder: StorageFolder,
        mime_type: str,
        session_id: str | None = None,
        expires_in: int = 300,
    ) -> PresignedUpload:
        """Issue a fake presigned PUT target."""
        key = self.key_policy.temp_key(folder, mime_type, session_id)
        self.calls.append({"op": "presign", "key": key})
        return PresignedUpload(
            key=key,
            upload_url=f"{self.url_for(key)}?presigned=put",
            public_url=self.url_for(key),
            mime_type=mime_type,
            expires_in=expires_in,
            headers={"Content-Type": mime_type},
        )

    async def move(self, temp_key: str, destination_prefix: str) -> FileAsset:
        """Copy a temporary object to its permanent key."""
        self.calls.append(
            {"op": "move", "key": temp_key, "destination_prefix": destination_prefix}
        )
        # Yield so concurrent moves interleave like real network calls
        await asyncio.sleep(0)

        failure = self._move_failures.get(temp_key)
        if failure is not None:
            raise failure

        source = self.objects.get(temp_key)
        if source is None:
            raise ObjectNotFoundError(f"Temporary object not found: {temp_key}", key=temp_key)

        final_key = self.key_policy.final_key(temp_key, destination_prefix)
        self.objects[final_key] = source
        return FileAsset(
            key=final_key,
            url=self.url_for(final_key),
            mime_type=source.mime_type,
            size_bytes=len(source.data),
        )

    async def delete(self, keys: Sequence[str]) -> None:
        """Remove objects; missing keys are ignored."""
        self.calls.append({"op": "delete", "keys": list(keys)})
        await asyncio.sleep(0)
        if self._delete_failure is not None:
            raise self._delete_failure
        for key in keys:
            self.objects.pop(key, None)

    async def exists(self, key: str) -> bool:
        """Return True if the key is stored."""
        return key in self.objects
