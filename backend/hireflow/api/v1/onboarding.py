"""Applicant-facing onboarding API router.

Every endpoint is a thin wrapper over OnboardingOrchestrator; gating,
expiry, validation, and document finalization all happen there.
"""

import uuid
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, status

from hireflow.api.deps import Orchestrator
from hireflow.core.responses import DataResponse
from hireflow.schemas.onboarding import (
    ResumeOnboardingRequest,
    StartOnboardingRequest,
    StepResponse,
)
from hireflow.services.progress_gate import StepId

logger = structlog.get_logger()

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_onboarding(
    request: StartOnboardingRequest,
    orchestrator: Orchestrator,
) -> DataResponse[StepResponse]:
    """Start an application from the prequalification answers and page 1.

    Args:
        request: Company, answers, and page 1 data (identity number required).
        orchestrator: Onboarding orchestrator (injected).

    Returns:
        DataResponse with the page 1 data and the new session's context.

    Raises:
        ValidationError: Invalid answers, page 1, or company.
        DuplicateIdentityError: An application already exists for the identity.
        StorageFinalizeError: Page 1 uploads could not be finalized.
    """
    result = await orchestrator.start(
        company_id=request.company_id,
        prequalifications=request.prequalifications,
        page1=request.page1,
        application_type=request.application_type.value
        if request.application_type
        else None,
    )
    logger.info(
        "onboarding_started",
        session_id=str(result.session.id),
        company_id=result.session.company_id,
    )
    return DataResponse(data=StepResponse.from_result(result))


@router.post("/resume")
async def resume_onboarding(
    request: ResumeOnboardingRequest,
    orchestrator: Orchestrator,
) -> DataResponse[StepResponse]:
    """Find an in-progress application by identity number.

    Raises:
        NotFoundError: No application for the identity number.
        SessionTerminatedError: The application was terminated.
        ExpiredSessionError: The resume window has elapsed.
    """
    result = await orchestrator.resume(request.identity_number)
    return DataResponse(data=StepResponse.from_result(result))


@router.get("/{session_id}/steps/{step}")
async def get_step(
    session_id: uuid.UUID,
    step: StepId,
    orchestrator: Orchestrator,
) -> DataResponse[StepResponse]:
    """View a step the session has reached.

    Raises:
        GateError: The step has not been reached yet.
    """
    result = await orchestrator.get_step(session_id, step)
    return DataResponse(data=StepResponse.from_result(result))


@router.patch("/{session_id}/steps/{step}")
async def submit_step(
    session_id: uuid.UUID,
    step: StepId,
    payload: Annotated[dict[str, Any], Body()],
    orchestrator: Orchestrator,
) -> DataResponse[StepResponse]:
    """Submit a step.

    The body is the step's patch; unknown fields are rejected. File fields
    carry FileAsset objects returned by /uploads/presign. Temporary uploads
    are finalized before the response is sent.

    Raises:
        GateError: Step not reached or no longer editable.
        ExpiredSessionError: The resume window has elapsed.
        ValidationError: Invalid patch or business rule failure.
        StorageFinalizeError: Uploads could not be finalized (retryable).
        VersionConflictError: Concurrent update (retryable).
    """
    result = await orchestrator.handle_step(session_id, step, payload)
    finalization = result.finalization
    logger.info(
        "onboarding_step_submitted",
        session_id=str(session_id),
        step=step.value,
        current_step=result.session.progress.current_step.value,
        terminated=result.session.terminated,
        finalized=len(finalization.finalized_keys) if finalization else 0,
        superseded=len(finalization.superseded_keys) if finalization else 0,
    )
    if finalization and finalization.gc_failed_keys:
        logger.warning(
            "superseded_files_not_deleted",
            session_id=str(session_id),
            keys=list(finalization.gc_failed_keys),
        )
    return DataResponse(data=StepResponse.from_result(result))
