"""Object key layout and upload rules.

Two namespaces share one bucket:

    temp-files/{folder}/{session_id}/{epoch_ms}-{uuid}.{ext}
        Written by the browser through a presigned PUT. Unauthenticated,
        expired by a bucket lifecycle rule, safe to delete at any time.

    submissions/{folder}/{session_id}/{record_id}/{section}/{epoch_ms}-{uuid}.{ext}
        Written only by finalization. Referenced by committed records.

A key is temporary iff it starts with the temp prefix. The basename is kept
when an object is finalized, so the permanent key of a given upload is
deterministic per record section and re-finalizing it lands on the same key.
"""

import posixpath
import time
import uuid
from dataclasses import dataclass
from enum import Enum

from hireflow.core.config import Settings
from hireflow.core.errors import ValidationError


class StorageFolder(str, Enum):
    """Upload folders. One per kind of document."""

    SIGNATURES = "signatures"
    LICENSES = "licenses"
    SIN_PHOTOS = "sin-photos"
    HEALTH_CARD_PHOTOS = "health-card-photos"
    MEDICAL_CERT_PHOTOS = "medical-cert-photos"
    PASSPORT_PHOTOS = "passport-photos"
    PR_CITIZENSHIP_PHOTOS = "pr-citizenship-photos"
    US_VISA_PHOTOS = "us-visa-photos"
    FAST_CARD_PHOTOS = "fast-card-photos"
    INCORPORATION_PHOTOS = "incorporation-photos"
    HST_PHOTOS = "hst-photos"
    BANKING_INFO_PHOTOS = "banking-info-photos"
    DRIVE_TEST = "drive-test"
    CARRIERS_EDGE_CERTIFICATES = "carriers-edge-certificates"
    DRUG_TEST_DOCS = "drug-test-docs"
    FLATBED_TRAINING_CERTIFICATES = "flatbed-training-certificates"


MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png"})
_IMAGES_AND_DOCS = frozenset(MIME_EXTENSIONS)
_PDF_ONLY = frozenset({"application/pdf"})

_FOLDER_MIME_OVERRIDES: dict[StorageFolder, frozenset[str]] = {
    StorageFolder.SIGNATURES: IMAGE_MIME_TYPES,
    StorageFolder.CARRIERS_EDGE_CERTIFICATES: _IMAGES_AND_DOCS,
    StorageFolder.DRUG_TEST_DOCS: _IMAGES_AND_DOCS,
    StorageFolder.FLATBED_TRAINING_CERTIFICATES: _IMAGES_AND_DOCS,
}


def allowed_mime_types(folder: StorageFolder) -> frozenset[str]:
    """Return the MIME types a folder accepts.

    Signatures are images; training certificates and drug test documents
    accept images and office documents; everything else is PDF only.
    """
    return _FOLDER_MIME_OVERRIDES.get(folder, _PDF_ONLY)


def check_upload(
    folder: StorageFolder,
    mime_type: str,
    size_bytes: int | None,
    max_bytes: int,
) -> str:
    """Validate an upload request before a presigned URL is issued.

    Args:
        folder: Destination folder.
        mime_type: Declared Content-Type.
        size_bytes: Declared size, if the client sent one.
        max_bytes: Upload size limit.

    Returns:
        The canonical (lower-cased) MIME type.

    Raises:
        ValidationError: If the type is not allowed in the folder or the
            file is too large.
    """
    normalized = mime_type.strip().lower()
    allowed = allowed_mime_types(folder)
    if normalized not in allowed:
        raise ValidationError(
            message=f"Invalid file type for {folder.value}. Allowed: "
            + ", ".join(sorted(allowed)),
            details=[{"field": "mime_type", "error": "MIME_NOT_ALLOWED"}],
        )
    if size_bytes is not None and size_bytes > max_bytes:
        raise ValidationError(
            message=f"File exceeds {max_bytes // (1024 * 1024)}MB limit",
            details=[{"field": "size_bytes", "error": "FILE_TOO_LARGE"}],
        )
    return normalized


@dataclass(frozen=True)
class StorageKeyPolicy:
    """Builds and classifies object keys.

    Attributes:
        temp_prefix: Namespace for unauthenticated uploads.
        submissions_prefix: Namespace for finalized documents.
    """

    temp_prefix: str = "temp-files"
    submissions_prefix: str = "submissions"

    @classmethod
    def from_settings(cls, config: Settings) -> "StorageKeyPolicy":
        """Build the policy from application settings."""
        return cls(
            temp_prefix=config.storage_temp_prefix.strip("/"),
            submissions_prefix=config.storage_submissions_prefix.strip("/"),
        )

    def is_temp_key(self, key: str) -> bool:
        """True iff the key lives in the temporary namespace."""
        return key.startswith(f"{self.temp_prefix}/")

    def temp_key(
        self,
        folder: StorageFolder,
        mime_type: str,
        session_id: uuid.UUID | str | None = None,
    ) -> str:
        """Build a fresh, collision-free temporary key."""
        extension = MIME_EXTENSIONS.get(mime_type, "bin")
        owner = str(session_id) if session_id else "unknown"
        filename = f"{int(time.time() * 1000)}-{uuid.uuid4()}.{extension}"
        return f"{self.temp_prefix}/{folder.value}/{owner}/{filename}"

    def final_prefix(
        self,
        folder: StorageFolder,
        session_id: uuid.UUID | str,
        record_id: uuid.UUID | str | None = None,
        section: str | None = None,
    ) -> str:
        """Permanent destination prefix for a folder.

        Scoped to the session, and further to one record section when
        given. One temporary upload submitted to two sections then lands on
        two distinct permanent objects, so neither section can delete the
        other's copy.
        """
        prefix = f"{self.submissions_prefix}/{folder.value}/{session_id}"
        if record_id is not None:
            prefix = f"{prefix}/{record_id}"
            if section:
                prefix = f"{prefix}/{section}"
        return prefix

    @staticmethod
    def final_key(temp_key: str, destination_prefix: str) -> str:
        """Permanent key a temporary key finalizes to under a prefix."""
        return f"{destination_prefix.rstrip('/')}/{posixpath.basename(temp_key)}"
