"""Admin onboarding API router.

Termination, cascade delete, and expired-session cleanup. Authentication
of admin callers is handled outside this service.
"""

import uuid
from typing import Annotated

import structlog
from fastapi import APIRouter, Body, Query

from hireflow.api.deps import Lifecycle, Orchestrator, Records, Sessions
from hireflow.core.config import MAX_CLEANUP_BATCH_LIMIT, settings
from hireflow.core.responses import DataResponse
from hireflow.schemas.onboarding import (
    CleanupResponse,
    DeleteSessionResponse,
    SessionResponse,
    TerminateSessionRequest,
)
from hireflow.services.session_cleanup import cleanup_expired_sessions

logger = structlog.get_logger()

router = APIRouter()


@router.post("/onboarding/{session_id}/terminate")
async def terminate_session(
    session_id: uuid.UUID,
    orchestrator: Orchestrator,
    request: Annotated[TerminateSessionRequest | None, Body()] = None,
) -> DataResponse[SessionResponse]:
    """Terminate a session. Terminating twice is a no-op.

    Raises:
        NotFoundError: Unknown session.
    """
    reason = (request or TerminateSessionRequest()).reason
    session = await orchestrator.terminate(session_id, reason)
    logger.info(
        "onboarding_terminated",
        session_id=str(session_id),
        reason=session.termination_reason,
    )
    return DataResponse(data=SessionResponse.from_session(session))


@router.delete("/onboarding/{session_id}")
async def delete_session(
    session_id: uuid.UUID,
    orchestrator: Orchestrator,
) -> DataResponse[DeleteSessionResponse]:
    """Hard delete a session and every linked record.

    Raises:
        NotFoundError: Unknown session.
    """
    deleted = await orchestrator.delete(session_id)
    logger.info("onboarding_deleted", session_id=str(session_id), records=deleted)
    return DataResponse(
        data=DeleteSessionResponse(session_id=session_id, deleted_records=deleted)
    )


@router.post("/onboarding/cleanup-expired")
async def cleanup_expired(
    sessions: Sessions,
    records: Records,
    lifecycle: Lifecycle,
    limit: Annotated[int | None, Query(ge=1, le=MAX_CLEANUP_BATCH_LIMIT)] = None,
) -> DataResponse[CleanupResponse]:
    """Delete one batch of expired, incomplete sessions.

    Args:
        limit: Batch size; defaults to CLEANUP_BATCH_LIMIT.
    """
    result = await cleanup_expired_sessions(
        sessions,
        records,
        now=lifecycle.now(),
        limit=limit or settings.cleanup_batch_limit,
    )
    logger.info(
        "expired_sessions_cleaned",
        scanned=result.scanned,
        deleted=result.deleted_sessions,
    )
    return DataResponse(data=CleanupResponse.from_result(result))
