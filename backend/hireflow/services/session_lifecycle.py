"""Session lifecycle: creation, resume window, expiry, termination, identity.

Owns every state transition of an OnboardingSession that is not a step
advance. Progress advancement itself is computed by ProgressGate and
applied by the orchestrator.

The clock is injected so expiry is testable without sleeping.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from hireflow.core.errors import DuplicateIdentityError
from hireflow.core.identity import DerivedIdentity, IdentityCodec
from hireflow.repositories.base import RecordStore, SessionStore
from hireflow.services.onboarding_types import OnboardingSession, TerminationReason
from hireflow.services.progress_gate import ProgressGate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC (default clock)."""
    return datetime.now(UTC)


class SessionLifecycle:
    """Session state transitions outside step advancement.

    Args:
        sessions: Session persistence.
        identity: Identity hashing and encryption.
        gate: Step order (for the initial progress).
        resume_ttl: How long a session stays resumable after a write.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        sessions: SessionStore,
        identity: IdentityCodec,
        gate: ProgressGate,
        resume_ttl: timedelta,
        clock: Clock = utc_now,
    ) -> None:
        if resume_ttl <= timedelta(0):
            raise ValueError("resume_ttl must be positive")
        self._sessions = sessions
        self._identity = identity
        self._gate = gate
        self._resume_ttl = resume_ttl
        self._clock = clock

    def now(self) -> datetime:
        """Current time from the injected clock."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Creation and lookup
    # -------------------------------------------------------------------------

    async def create(
        self,
        identity: str,
        company_id: str,
        application_type: str | None = None,
    ) -> OnboardingSession:
        """Create a session for a new applicant.

        Args:
            identity: Raw identity number.
            company_id: Hiring company.
            application_type: Optional application flavour.

        Returns:
            The stored session (version 1).

        Raises:
            ValidationError: If the identity number is malformed.
            DuplicateIdentityError: If a session already owns the identity.
                Nothing is written.
        """
        derived = self._identity.derive(identity)
        if await self._sessions.identity_taken(derived.identity_hash):
            raise DuplicateIdentityError()

        session = OnboardingSession(
            id=uuid.uuid4(),
            identity_hash=derived.identity_hash,
            identity_encrypted=derived.identity_encrypted,
            company_id=company_id,
            application_type=application_type,
            progress=self._gate.initial_progress(),
            resume_expires_at=self.now() + self._resume_ttl,
        )
        # add() enforces the unique hash too, for a racing create
        stored = await self._sessions.add(session)
        logger.info("Created onboarding session %s for company %s", stored.id, company_id)
        return stored

    async def find_by_identity(self, identity: str) -> OnboardingSession | None:
        """Find the session owning a raw identity number."""
        return await self._sessions.get_by_identity_hash(self._identity.hash(identity))

    def reveal_identity(self, session: OnboardingSession) -> str:
        """Decrypt the session's identity number."""
        return self._identity.reveal(session.identity_encrypted)

    # -------------------------------------------------------------------------
    # Resume window
    # -------------------------------------------------------------------------

    def touch(self, session: OnboardingSession) -> datetime:
        """Extend the resume window from now (in place, not persisted).

        Returns:
            The new resume_expires_at.
        """
        session.resume_expires_at = self.now() + self._resume_ttl
        return session.resume_expires_at

    def is_expired(self, session: OnboardingSession) -> bool:
        """True once now is past the resume window."""
        return self.now() > session.resume_expires_at

    # -------------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------------

    async def terminate(
        self,
        session: OnboardingSession,
        reason: TerminationReason,
        expected_version: int | None = None,
    ) -> OnboardingSession:
        """Set the termination latch and persist it.

        Terminating an already terminated session is a no-op that keeps the
        original reason and date.

        Raises:
            VersionConflictError: If expected_version is stale.
        """
        if session.terminated:
            return session
        terminated = self.mark_terminated(session, reason)
        stored = await self._sessions.save(
            terminated,
            expected_version=session.version if expected_version is None else expected_version,
        )
        logger.info("Terminated onboarding session %s (%s)", stored.id, reason.value)
        return stored

    def mark_terminated(
        self, session: OnboardingSession, reason: TerminationReason
    ) -> OnboardingSession:
        """Return a copy of the session with the latch set (not persisted)."""
        if session.terminated:
            return session
        return replace(
            session,
            terminated=True,
            termination_reason=reason.value,
            terminated_at=self.now(),
        )

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    async def ensure_identity_available(
        self, session: OnboardingSession, identity: str
    ) -> bool:
        """Check an identity change before any write of the same operation.

        Returns:
            True if the identity differs from the session's current one.

        Raises:
            ValidationError: If the identity number is malformed.
            DuplicateIdentityError: If another session owns it.
        """
        identity_hash = self._identity.hash(identity)
        if identity_hash == session.identity_hash:
            return False
        if await self._sessions.identity_taken(identity_hash, exclude_session_id=session.id):
            raise DuplicateIdentityError()
        return True

    async def prepare_identity_change(
        self, session: OnboardingSession, identity: str
    ) -> DerivedIdentity | None:
        """Check and derive an identity change before any write.

        The derived values are applied later with apply_identity(), which
        does no further lookup.

        Returns:
            The derived identity, or None if it matches the current one.

        Raises:
            ValidationError: If the identity number is malformed.
            DuplicateIdentityError: If another session owns it.
        """
        if not await self.ensure_identity_available(session, identity):
            return None
        return self._identity.derive(identity)

    @staticmethod
    def apply_identity(
        session: OnboardingSession, derived: DerivedIdentity
    ) -> OnboardingSession:
        """Copy of the session carrying a pre-derived identity (not persisted).

        If another session claims the identity after the check, the unique
        index on identity_hash rejects the session save with
        DuplicateIdentityError.
        """
        return replace(
            session,
            identity_hash=derived.identity_hash,
            identity_encrypted=derived.identity_encrypted,
        )

    # -------------------------------------------------------------------------
    # Admin cascade
    # -------------------------------------------------------------------------

    async def delete(self, session: OnboardingSession, records: RecordStore) -> int:
        """Hard delete a session and every linked record.

        Records go first so a failure part-way leaves a session that can be
        deleted again, never records without a session.

        Returns:
            Number of records deleted.
        """
        deleted = await records.delete_many(list(session.linked_records.values()))
        await self._sessions.delete(session.id)
        logger.info(
            "Deleted onboarding session %s and %d linked record(s)", session.id, deleted
        )
        return deleted
