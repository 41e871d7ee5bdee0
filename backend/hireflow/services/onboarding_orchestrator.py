"""Onboarding orchestrator.

Composition root used by every step endpoint. One call of handle_step()
is one unit of work:

    load session -> terminated? -> expired? -> gate -> parse patch
    -> business pre-checks -> lazily create record -> finalization saga
    -> business outcome -> advance -> touch -> save session

Everything that can reject the request runs before the first write.
After the saga commits, the only remaining write is the session save. If
that loses an optimistic concurrency race, the identical request can be
resent: the saga re-run finds its permanent keys already in place and
advance() is idempotent.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, cast

from pydantic import ValidationError as PydanticValidationError

from hireflow.core.errors import (
    ExpiredSessionError,
    GateError,
    NotFoundError,
    SessionTerminatedError,
    ValidationError,
)
from hireflow.core.identity import DerivedIdentity
from hireflow.repositories.base import RecordStore, SessionStore
from hireflow.schemas.steps import (
    ApplicationPage1Patch,
    DriveTestPatch,
    OverallAssessment,
    StepPatch,
)
from hireflow.services.companies import can_have_flatbed_training, get_company
from hireflow.services.document_finalization import (
    DocumentFinalizationSaga,
    FinalizationResult,
)
from hireflow.services.file_fields import collect_assets
from hireflow.services.onboarding_types import (
    OnboardingSession,
    StepRecord,
    TerminationReason,
)
from hireflow.services.progress_gate import ProgressGate, StepId
from hireflow.services.session_lifecycle import SessionLifecycle
from hireflow.services.step_rules import StepRule, StepRules, check_file_types
from hireflow.storage.base import ObjectStore

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class StepContext:
    """What a client needs to render navigation after a call.

    Attributes:
        session_id: Session id.
        company_id: Hiring company.
        step: Step the call was about.
        current_step: Furthest step reached.
        completed: Whether the final step is completed.
        prev_step: Step before `step` (None for the first).
        next_step: Step after `step` (None for the last).
        terminated: Termination latch.
        resume_expires_at: End of the resume window.
    """

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
    def build(
        cls, session: OnboardingSession, gate: ProgressGate, step: StepId
    ) -> "StepContext":
        prev_step, next_step = gate.navigation(step)
        return cls(
            session_id=session.id,
            company_id=session.company_id,
            step=step,
            current_step=session.progress.current_step,
            completed=session.progress.completed,
            prev_step=prev_step,
            next_step=next_step,
            terminated=session.terminated,
            resume_expires_at=session.resume_expires_at,
        )


@dataclass(frozen=True)
class StepResult:
    """Post-state of an orchestrator call.

    Attributes:
        session: Session after the call.
        record: Record the step wrote or read (None if never created).
        section: The step's section of the record, if present.
        context: Navigation context.
        finalization: Saga outcome, for mutating calls.
    """

    session: OnboardingSession
    record: StepRecord | None
    section: dict | None
    context: StepContext
    finalization: FinalizationResult | None = None


def parse_patch(model: type[StepPatch], payload: Any) -> StepPatch:
    """Parse a request payload into a step patch.

    Raises:
        ValidationError: With one detail per field error. Unknown fields
            are reported as errors, not dropped.
    """
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            message="Invalid step data",
            details=[
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ],
        ) from exc


# =============================================================================
# Orchestrator
# =============================================================================


class OnboardingOrchestrator:
    """Runs onboarding steps end to end.

    Args:
        sessions: Session persistence.
        records: Step record persistence.
        objects: Object store used to finalize uploads.
        lifecycle: Session state transitions.
        gate: Step order and advancement.
        rules: Per-step rules.
    """

    def __init__(
        self,
        sessions: SessionStore,
        records: RecordStore,
        objects: ObjectStore,
        lifecycle: SessionLifecycle,
        gate: ProgressGate | None = None,
        rules: StepRules | None = None,
    ) -> None:
        self._sessions = sessions
        self._records = records
        self._lifecycle = lifecycle
        self._gate = gate or ProgressGate()
        self._rules = rules or StepRules()
        self._saga = DocumentFinalizationSaga(records, objects)

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _ensure_active(self, session: OnboardingSession) -> None:
        if session.terminated:
            raise SessionTerminatedError()
        if self._lifecycle.is_expired(session):
            raise ExpiredSessionError()

    def _ensure_editable(self, session: OnboardingSession, rule: StepRule) -> None:
        progress = session.progress
        if not self._gate.has_reached(progress, rule.step):
            raise GateError(
                f"Step '{rule.step.value}' has not been reached yet "
                f"(current step: '{progress.current_step.value}')"
            )
        if progress.completed:
            raise GateError("Onboarding is already complete", code="STEP_LOCKED")
        if rule.locked_at is not None and self._gate.has_reached(progress, rule.locked_at):
            raise GateError(
                f"Step '{rule.step.value}' can no longer be edited", code="STEP_LOCKED"
            )

    # -------------------------------------------------------------------------
    # Step preparation (no writes)
    # -------------------------------------------------------------------------

    def _prepare(self, rule: StepRule, payload: Any) -> tuple[StepPatch, dict]:
        """Parse, run business checks, and build the section content."""
        patch = parse_patch(rule.patch_model, payload)
        for check in rule.checks:
            check(patch)

        content = patch.model_dump(mode="json")
        if isinstance(patch, ApplicationPage1Patch):
            # Never stored in the record; derived onto the session instead
            content.pop("identity_number", None)

        check_file_types(collect_assets(content, rule.file_fields))
        return patch, content

    def _check_drive_test(self, session: OnboardingSession, patch: DriveTestPatch) -> None:
        if patch.needs_flatbed_training and not can_have_flatbed_training(
            session.company_id, session.application_type
        ):
            raise ValidationError(
                message="Flatbed training is not applicable for this applicant/company",
                details=[{"field": "needs_flatbed_training", "error": "NOT_APPLICABLE"}],
            )

    async def _ensure_record(
        self, session: OnboardingSession, rule: StepRule
    ) -> tuple[OnboardingSession, StepRecord]:
        """Load the step's record, creating and linking it on first use.

        A new link is saved right away so a failed saga never leaves an
        unlinked record behind.
        """
        record_id = session.record_id(rule.kind)
        if record_id is not None:
            return session, await self._records.load(record_id)

        record = await self._records.create(session.id, rule.kind)
        linked = replace(
            session, linked_records={**session.linked_records, rule.kind.value: record.id}
        )
        session = await self._sessions.save(linked, expected_version=session.version)
        logger.debug("Linked %s record %s to session %s", rule.kind.value, record.id, session.id)
        return session, record

    # -------------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------------

    def _advance(self, session: OnboardingSession, step: StepId) -> OnboardingSession:
        progress = self._gate.advance(session.progress, step)
        if (
            step == StepId.DRUG_TEST
            and not session.needs_flatbed_training
            and not progress.completed
        ):
            # No flatbed training: the final step completes with the drug test
            progress = self._gate.advance(progress, StepId.FLATBED_TRAINING)

        completed_at = session.completed_at
        if progress.completed and completed_at is None:
            completed_at = self._lifecycle.now()
        return replace(session, progress=progress, completed_at=completed_at)

    def _apply_drive_test(
        self, session: OnboardingSession, patch: DriveTestPatch
    ) -> tuple[OnboardingSession, bool]:
        """Apply the assessment outcome. Returns (session, terminated)."""
        failed = OverallAssessment.FAIL in (
            patch.pre_trip.overall_assessment,
            patch.on_road.overall_assessment,
        )
        if failed:
            return self._lifecycle.mark_terminated(
                session, TerminationReason.DRIVE_TEST_FAILED
            ), True
        possible = can_have_flatbed_training(session.company_id, session.application_type)
        return replace(
            session, needs_flatbed_training=possible and patch.needs_flatbed_training
        ), False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def start(
        self,
        company_id: str,
        prequalifications: Any,
        page1: Any,
        application_type: str | None = None,
    ) -> StepResult:
        """Create a session from the prequalification answers and page 1.

        The applicant enters the flow with both steps completed, so the
        returned session is at application-page-2.

        Raises:
            ValidationError: Unknown company, invalid answers or page 1, or
                missing identity number. Nothing is written.
            DuplicateIdentityError: The identity already has a session.
                Nothing is written.
            StorageFinalizeError: Page 1 uploads could not be finalized.
                The new session is removed again.
        """
        if get_company(company_id) is None:
            raise ValidationError(
                message=f"Unknown company '{company_id}'",
                details=[{"field": "company_id", "error": "UNKNOWN_COMPANY"}],
            )

        prequal_rule = self._rules[StepId.PREQUALIFICATIONS]
        page1_rule = self._rules[StepId.APPLICATION_PAGE_1]
        _, prequal_content = self._prepare(prequal_rule, prequalifications)
        page1_patch, page1_content = self._prepare(page1_rule, page1)

        identity = cast(ApplicationPage1Patch, page1_patch).identity_number
        if not identity:
            raise ValidationError(
                message="Identity number is required",
                details=[{"field": "identity_number", "error": "REQUIRED"}],
            )

        session = await self._lifecycle.create(identity, company_id, application_type)
        try:
            session, prequal_record = await self._ensure_record(session, prequal_rule)
            await self._saga.run(
                prequal_record,
                prequal_rule.section,
                prequal_content,
                prequal_rule.file_fields,
                session.id,
            )
            session, page1_record = await self._ensure_record(session, page1_rule)
            finalization = await self._saga.run(
                page1_record,
                page1_rule.section,
                page1_content,
                page1_rule.file_fields,
                session.id,
            )
        except Exception:
            logger.warning("Start of onboarding session %s failed; removing it", session.id)
            await self._lifecycle.delete(session, self._records)
            raise

        advanced = self._advance(session, StepId.PREQUALIFICATIONS)
        advanced = self._advance(advanced, StepId.APPLICATION_PAGE_1)
        self._lifecycle.touch(advanced)
        session = await self._sessions.save(advanced, expected_version=session.version)

        return StepResult(
            session=session,
            record=finalization.record,
            section=finalization.record.data.get(page1_rule.section),
            context=StepContext.build(session, self._gate, StepId.APPLICATION_PAGE_1),
            finalization=finalization,
        )

    async def handle_step(
        self, session_id: uuid.UUID, step: StepId, payload: Any
    ) -> StepResult:
        """Submit one step.

        Raises:
            NotFoundError: Unknown session.
            SessionTerminatedError: Session is terminated.
            ExpiredSessionError: Resume window elapsed. Progress unchanged.
            GateError: Step not reached yet, or no longer editable.
            ValidationError: Invalid patch or a business rule failed.
            DuplicateIdentityError: New identity number belongs to another
                session.
            StorageFinalizeError: Upload finalization failed (retryable).
            VersionConflictError: Concurrent write (retryable).
        """
        rule = self._rules[step]
        session = await self._sessions.get(session_id)
        self._ensure_active(session)
        self._ensure_editable(session, rule)

        patch, content = self._prepare(rule, payload)

        new_identity: DerivedIdentity | None = None
        if isinstance(patch, ApplicationPage1Patch) and patch.identity_number:
            new_identity = await self._lifecycle.prepare_identity_change(
                session, patch.identity_number
            )
        if isinstance(patch, DriveTestPatch):
            self._check_drive_test(session, patch)

        session, record = await self._ensure_record(session, rule)
        finalization = await self._saga.run(
            record, rule.section, content, rule.file_fields, session.id
        )

        updated = replace(session)
        if new_identity is not None:
            # Checked before the saga; the unique index guards the save below
            updated = self._lifecycle.apply_identity(updated, new_identity)

        terminated = False
        if isinstance(patch, DriveTestPatch):
            updated, terminated = self._apply_drive_test(updated, patch)
        if not terminated:
            updated = self._advance(updated, step)
        self._lifecycle.touch(updated)

        session = await self._sessions.save(updated, expected_version=session.version)
        if new_identity is not None:
            logger.info("Changed identity of onboarding session %s", session.id)
        if terminated:
            logger.info("Session %s terminated by failed drive test", session.id)

        return StepResult(
            session=session,
            record=finalization.record,
            section=finalization.record.data.get(rule.section),
            context=StepContext.build(session, self._gate, step),
            finalization=finalization,
        )

    async def get_step(self, session_id: uuid.UUID, step: StepId) -> StepResult:
        """Read a step's stored data.

        Completed steps stay viewable; steps not yet reached are not.

        Raises:
            NotFoundError: Unknown session.
            SessionTerminatedError: Session is terminated.
            ExpiredSessionError: Resume window elapsed.
            GateError: Step not reached yet.
        """
        rule = self._rules[step]
        session = await self._sessions.get(session_id)
        self._ensure_active(session)
        if not self._gate.has_reached(session.progress, step):
            raise GateError(f"Step '{step.value}' has not been reached yet")

        record_id = session.record_id(rule.kind)
        record = await self._records.load(record_id) if record_id is not None else None
        return StepResult(
            session=session,
            record=record,
            section=record.data.get(rule.section) if record is not None else None,
            context=StepContext.build(session, self._gate, step),
        )

    async def resume(self, identity: str) -> StepResult:
        """Find an applicant's session by identity number.

        Raises:
            ValidationError: Malformed identity number.
            NotFoundError: No session for the identity.
            SessionTerminatedError: Session is terminated.
            ExpiredSessionError: Resume window elapsed.
        """
        session = await self._lifecycle.find_by_identity(identity)
        if session is None:
            raise NotFoundError("OnboardingSession")
        self._ensure_active(session)
        step = session.progress.current_step
        return StepResult(
            session=session,
            record=None,
            section=None,
            context=StepContext.build(session, self._gate, step),
        )

    async def terminate(
        self, session_id: uuid.UUID, reason: TerminationReason
    ) -> OnboardingSession:
        """Admin termination. Idempotent."""
        session = await self._sessions.get(session_id)
        return await self._lifecycle.terminate(session, reason)

    async def delete(self, session_id: uuid.UUID) -> int:
        """Admin cascade delete. Returns the number of records deleted."""
        session = await self._sessions.get(session_id)
        return await self._lifecycle.delete(session, self._records)
