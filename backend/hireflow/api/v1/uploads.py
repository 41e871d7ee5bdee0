"""Temporary upload API router.

Browsers upload documents straight to the object store with a presigned
PUT. Objects land in the temporary namespace; they only become permanent
when a step that references them is submitted.
"""

import structlog
from fastapi import APIRouter

from hireflow.api.deps import Objects
from hireflow.core.config import settings
from hireflow.core.responses import DataResponse
from hireflow.schemas.onboarding import PresignUploadRequest, PresignUploadResponse
from hireflow.storage.keys import check_upload

logger = structlog.get_logger()

router = APIRouter()


@router.post("/presign")
async def presign_upload(
    request: PresignUploadRequest,
    objects: Objects,
) -> DataResponse[PresignUploadResponse]:
    """Issue a presigned PUT for one temporary upload.

    Args:
        request: Folder, MIME type, optional size and session id.
        objects: Object store (injected).

    Returns:
        DataResponse with the upload URL and the key to reference.

    Raises:
        ValidationError: MIME type not allowed in the folder, or too large.
    """
    mime_type = check_upload(
        request.folder,
        request.mime_type,
        request.size_bytes,
        settings.max_upload_bytes,
    )
    upload = await objects.presign_upload(
        request.folder,
        mime_type,
        session_id=str(request.session_id) if request.session_id else None,
        expires_in=settings.presign_expiry_seconds,
    )
    logger.info(
        "upload_presigned",
        folder=request.folder.value,
        key=upload.key,
        backend=objects.backend_name,
    )
    return DataResponse(data=PresignUploadResponse.from_presigned(upload))
