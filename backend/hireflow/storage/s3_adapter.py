"""Amazon S3 object store adapter.

boto3 is synchronous, so every call runs in a worker thread via
asyncio.to_thread. botocore's own retries are disabled; transient failures
go through with_retries so backoff and logging match the rest of the app.

Finalize is a server-side CopyObject. The temporary source is not deleted:
the bucket lifecycle rule on the temp prefix expires it, and keeping it
means a client retry of the same request can finalize it again.
"""

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from hireflow.core.config import Settings
from hireflow.storage.base import FileAsset, ObjectStore, PresignedUpload
from hireflow.storage.errors import (
    ObjectNotFoundError,
    StorageAuthError,
    StorageError,
    TransientStorageError,
)
from hireflow.storage.keys import StorageFolder, StorageKeyPolicy
from hireflow.storage.retry import RetryPolicy, with_retries

logger = structlog.get_logger()

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_AUTH_CODES = frozenset(
    {"403", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "ExpiredToken"}
)
_TRANSIENT_CODES = frozenset(
    {"SlowDown", "RequestTimeout", "Throttling", "InternalError", "ServiceUnavailable"}
)

# DeleteObjects accepts at most 1000 keys per request
_DELETE_BATCH_SIZE = 1000


def _translate_error(exc: Exception, key: str | None) -> StorageError:
    """Map a botocore exception onto the storage error taxonomy."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        message = error.get("Message") or str(exc)
        if code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(message, key=key)
        if code in _AUTH_CODES:
            return StorageAuthError(message, key=key)
        if code in _TRANSIENT_CODES or status >= 500:
            return TransientStorageError(message, key=key)
        return StorageError(message, key=key)
    # BotoCoreError: connection resets, timeouts, endpoint resolution
    return TransientStorageError(str(exc), key=key)


class S3ObjectStore(ObjectStore):
    """Object store backed by a single S3 bucket.

    Args:
        bucket: Bucket name.
        region: AWS region of the bucket.
        key_policy: Key layout.
        retry_policy: Backoff settings for transient errors.
        endpoint_url: Optional S3-compatible endpoint (MinIO, LocalStack).
        client: Pre-built boto3 S3 client (tests inject a stub here).
    """

    def __init__(
        self,
        bucket: str,
        region: str,
        key_policy: StorageKeyPolicy,
        retry_policy: RetryPolicy | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        super().__init__(key_policy)
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url or None
        self._retry_policy = retry_policy or RetryPolicy()
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=self.endpoint_url,
            config=Config(retries={"max_attempts": 1, "mode": "standard"}),
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "S3ObjectStore":
        """Build the adapter from application settings."""
        return cls(
            bucket=config.s3_bucket,
            region=config.s3_region,
            key_policy=StorageKeyPolicy.from_settings(config),
            retry_policy=RetryPolicy.from_settings(config),
            endpoint_url=config.s3_endpoint_url or None,
        )

    @property
    def backend_name(self) -> str:
        """Return 's3'."""
        return "s3"

    def url_for(self, key: str) -> str:
        """Public (non-signed) URL of a key."""
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def _call(
        self, method: Callable[..., Any], key: str | None = None, **kwargs: Any
    ) -> Any:
        """Run one boto3 call in a thread with retries and error mapping."""

        async def attempt() -> Any:
            try:
                return await asyncio.to_thread(method, **kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise _translate_error(exc, key) from exc

        return await with_retries(attempt, self._retry_policy)

    async def stage(
        self,
        data: bytes,
        mime_type: str,
        folder: StorageFolder,
        session_id: str | None = None,
        original_name: str | None = None,
    ) -> FileAsset:
        """Upload bytes under a fresh temporary key."""
        key = self.key_policy.temp_key(folder, mime_type, session_id)
        await self._call(
            self._client.put_object,
            key=key,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=mime_type,
        )
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
        """Sign a PUT for a new temporary key (signed with Content-Type)."""
        key = self.key_policy.temp_key(folder, mime_type, session_id)
        upload_url = await self._call(
            self._client.generate_presigned_url,
            key=key,
            ClientMethod="put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": mime_type},
            ExpiresIn=expires_in,
        )
        return PresignedUpload(
            key=key,
            upload_url=upload_url,
            public_url=self.url_for(key),
            mime_type=mime_type,
            expires_in=expires_in,
            headers={"Content-Type": mime_type},
        )

    async def move(self, temp_key: str, destination_prefix: str) -> FileAsset:
        """Server-side copy of a temporary object to its permanent key."""
        head = await self._call(
            self._client.head_object, key=temp_key, Bucket=self.bucket, Key=temp_key
        )
        final_key = self.key_policy.final_key(temp_key, destination_prefix)
        await self._call(
            self._client.copy_object,
            key=temp_key,
            Bucket=self.bucket,
            Key=final_key,
            CopySource={"Bucket": self.bucket, "Key": temp_key},
            MetadataDirective="COPY",
        )
        logger.info("object_finalized", temp_key=temp_key, final_key=final_key)
        return FileAsset(
            key=final_key,
            url=self.url_for(final_key),
            mime_type=head.get("ContentType") or "application/octet-stream",
            size_bytes=head.get("ContentLength"),
        )

    async def delete(self, keys: Sequence[str]) -> None:
        """Batch delete. S3 reports missing keys as deleted."""
        unique = list(dict.fromkeys(keys))
        for start in range(0, len(unique), _DELETE_BATCH_SIZE):
            batch = unique[start : start + _DELETE_BATCH_SIZE]
            response = await self._call(
                self._client.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors = response.get("Errors") or []
            if errors:
                failed = [error.get("Key", "") for error in errors]
                raise StorageError(
                    f"Failed to delete {len(failed)} object(s)", key=failed[0]
                )

    async def exists(self, key: str) -> bool:
        """HEAD the key; a 404 means it does not exist."""
        try:
            await self._call(self._client.head_object, key=key, Bucket=self.bucket, Key=key)
        except ObjectNotFoundError:
            return False
        return True
