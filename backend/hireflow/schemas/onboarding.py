"""Onboarding API request/response schemas.

Step bodies themselves are parsed by the orchestrator against the step's
patch model (see schemas/steps.py), so request models here carry them as
plain objects.

All request schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hireflow.services.companies import ApplicationType
from hireflow.services.onboarding_orchestrator import StepContext, StepResult
from hireflow.services.onboarding_types import OnboardingSession, TerminationReason
from hireflow.services.progress_gate import StepId
from hireflow.services.session_cleanup import CleanupResult
from hireflow.storage.base import PresignedUpload
from hireflow.storage.keys import StorageFolder

# =============================================================================
# Requests
# =============================================================================


class StartOnboardingRequest(BaseModel):
    """Body of POST /onboarding."""

    model_config = ConfigDict(extra="forbid")

    company_id: str = Field(min_length=1, max_length=50)
    application_type: ApplicationType | None = None
    prequalifications: dict[str, Any]
    page1: dict[str, Any]


class ResumeOnboardingRequest(BaseModel):
    """Body of POST /onboarding/resume."""

    model_config = ConfigDict(extra="forbid")

    identity_number: str = Field(min_length=9, max_length=20)


class PresignUploadRequest(BaseModel):
    """Body of POST /uploads/presign."""

    model_config = ConfigDict(extra="forbid")

    folder: StorageFolder
    mime_type: str = Field(min_length=1, max_length=255)
    size_bytes: int | None = Field(default=None, ge=0)
    session_id: uuid.UUID | None = None


class TerminateSessionRequest(BaseModel):
    """Body of POST /admin/onboarding/{id}/terminate."""

    model_config = ConfigDict(extra="forbid")

    reason: TerminationReason = TerminationReason.TERMINATED


# =============================================================================
# Responses
# =============================================================================


class SessionResponse(BaseModel):
    """Public view of a session. Identity fields are never included."""

    id: uuid.UUID
    company_id: str
    application_type: str | None
    current_step: StepId
    completed: bool
    completed_at: datetime | None
    resume_expires_at: datetime
    terminated: bool
    termination_reason: str | None
    needs_flatbed_training: bool

    @classmethod
    def from_session(cls, session: OnboardingSession) -> "SessionResponse":
        return cls(
            id=session.id,
            company_id=session.company_id,
            application_type=session.application_type,
            current_step=session.progress.current_step,
            completed=session.progress.completed,
            completed_at=session.completed_at,
            resume_expires_at=session.resume_expires_at,
            terminated=session.terminated,
            termination_reason=session.termination_reason,
            needs_flatbed_training=session.needs_flatbed_training,
        )


class StepContextResponse(BaseModel):
    """Navigation context returned with every step response."""

    session_id: uuid.UUID
    company_id: str
    step: StepId
    current_step: StepId
    completed: bool
    prev_step: StepId | None
    next_step: StepId | None
    terminated: bool
    resume_expires_at: datetime

    @classmethod
    def from_context(cls, context: StepContext) -> "StepContextResponse":
        return cls(
            session_id=context.session_id,
            company_id=context.company_id,
            step=context.step,
            current_step=context.current_step,
            completed=context.completed,
            prev_step=context.prev_step,
            next_step=context.next_step,
            terminated=context.terminated,
            resume_expires_at=context.resume_expires_at,
        )


class StepResponse(BaseModel):
    """A step's stored data plus navigation context."""

    context: StepContextResponse
    data: dict[str, Any] | None = None
    record_version: int | None = None

    @classmethod
    def from_result(cls, result: StepResult) -> "StepResponse":
        return cls(
            context=StepContextResponse.from_context(result.context),
            data=result.section,
            record_version=result.record.version if result.record is not None else None,
        )


class PresignUploadResponse(BaseModel):
    """Presigned temporary upload target."""

    key: str
    upload_url: str
    public_url: str
    mime_type: str
    expires_in: int
    headers: dict[str, str]

    @classmethod
    def from_presigned(cls, upload: PresignedUpload) -> "PresignUploadResponse":
        return cls(
            key=upload.key,
            upload_url=upload.upload_url,
            public_url=upload.public_url,
            mime_type=upload.mime_type,
            expires_in=upload.expires_in,
            headers=upload.headers,
        )


class DeleteSessionResponse(BaseModel):
    """Outcome of an admin cascade delete."""

    session_id: uuid.UUID
    deleted_records: int


class CleanupResponse(BaseModel):
    """Outcome of one expired-session cleanup batch."""

    scanned: int
    deleted_sessions: int
    deleted_records: dict[str, int]
    remaining_hint: str
    session_ids: list[str]

    @classmethod
    def from_result(cls, result: CleanupResult) -> "CleanupResponse":
        return cls(
            scanned=result.scanned,
            deleted_sessions=result.deleted_sessions,
            deleted_records=result.deleted_records,
            remaining_hint=result.remaining_hint,
            session_ids=result.session_ids,
        )
