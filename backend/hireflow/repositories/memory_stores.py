"""In-memory session and record stores.

Process-local dicts with the same contract as the SQL stores, including
version checks and the unique identity hash. Values are deep-copied on
the way in and out, so a caller mutating a loaded object never changes
what is stored until it calls save().
"""

import copy
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from hireflow.core.errors import DuplicateIdentityError, NotFoundError, VersionConflictError
from hireflow.repositories.base import RecordStore, SectionSchemas, SessionStore
from hireflow.services.onboarding_types import OnboardingSession, RecordKind, StepRecord


class InMemorySessionStore(SessionStore):
    """Dict-backed SessionStore."""

    def __init__(self) -> None:
        self._sessions: dict[uuid.UUID, OnboardingSession] = {}
        self.save_calls = 0

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, session_id: uuid.UUID) -> OnboardingSession:
        stored = self._sessions.get(session_id)
        if stored is None:
            raise NotFoundError("OnboardingSession", str(session_id))
        return copy.deepcopy(stored)

    async def get_by_identity_hash(self, identity_hash: str) -> OnboardingSession | None:
        for stored in self._sessions.values():
            if stored.identity_hash == identity_hash:
                return copy.deepcopy(stored)
        return None

    def _hash_owner(self, identity_hash: str) -> uuid.UUID | None:
        for stored in self._sessions.values():
            if stored.identity_hash == identity_hash:
                return stored.id
        return None

    async def add(self, session: OnboardingSession) -> OnboardingSession:
        if self._hash_owner(session.identity_hash) is not None:
            raise DuplicateIdentityError()
        now = datetime.now(UTC)
        stored = copy.deepcopy(session)
        stored.version = 1
        stored.created_at = stored.created_at or now
        stored.updated_at = now
        self._sessions[stored.id] = stored
        return copy.deepcopy(stored)

    async def save(
        self, session: OnboardingSession, expected_version: int | None = None
    ) -> OnboardingSession:
        self.save_calls += 1
        current = self._sessions.get(session.id)
        if current is None:
            raise NotFoundError("OnboardingSession", str(session.id))
        if expected_version is not None and current.version != expected_version:
            raise VersionConflictError(
                "OnboardingSession", str(session.id), expected_version
            )
        owner = self._hash_owner(session.identity_hash)
        if owner is not None and owner != session.id:
            raise DuplicateIdentityError()

        stored = copy.deepcopy(session)
        stored.version = current.version + 1
        stored.created_at = current.created_at
        stored.updated_at = datetime.now(UTC)
        self._sessions[stored.id] = stored
        return copy.deepcopy(stored)

    async def delete(self, session_id: uuid.UUID) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def list_expired_incomplete(
        self, now: datetime, limit: int
    ) -> list[OnboardingSession]:
        expired = [
            stored
            for stored in self._sessions.values()
            if not stored.progress.completed and stored.resume_expires_at < now
        ]
        expired.sort(key=lambda stored: stored.resume_expires_at)
        return [copy.deepcopy(stored) for stored in expired[:limit]]


class InMemoryRecordStore(RecordStore):
    """Dict-backed RecordStore."""

    def __init__(self, section_schemas: SectionSchemas | None = None) -> None:
        super().__init__(section_schemas)
        self._records: dict[uuid.UUID, StepRecord] = {}
        self.save_calls = 0
        self._save_failures: dict[int, Exception] = {}

    def __len__(self) -> int:
        return len(self._records)

    def fail_next_save(self, error: Exception, skip: int = 0) -> None:
        """Make a future save() raise `error` once, after `skip` other saves."""
        self._save_failures[self.save_calls + skip + 1] = error

    def peek(self, record_id: uuid.UUID) -> StepRecord | None:
        """Stored value without copying (test assertions only)."""
        return self._records.get(record_id)

    async def load(self, record_id: uuid.UUID) -> StepRecord:
        stored = self._records.get(record_id)
        if stored is None:
            raise NotFoundError("StepRecord", str(record_id))
        return copy.deepcopy(stored)

    async def create(self, session_id: uuid.UUID, kind: RecordKind) -> StepRecord:
        now = datetime.now(UTC)
        record = StepRecord(
            id=uuid.uuid4(),
            session_id=session_id,
            kind=kind,
            data={},
            version=1,
            created_at=now,
            updated_at=now,
        )
        self._records[record.id] = record
        return copy.deepcopy(record)

    async def save(
        self, record: StepRecord, expected_version: int | None = None
    ) -> StepRecord:
        self.save_calls += 1
        failure = self._save_failures.pop(self.save_calls, None)
        if failure is not None:
            raise failure
        current = self._records.get(record.id)
        if current is None:
            raise NotFoundError("StepRecord", str(record.id))
        if expected_version is not None and current.version != expected_version:
            raise VersionConflictError("StepRecord", str(record.id), expected_version)

        stored = copy.deepcopy(record)
        stored.version = current.version + 1
        stored.created_at = current.created_at
        stored.updated_at = datetime.now(UTC)
        self._records[stored.id] = stored
        return copy.deepcopy(stored)

    async def delete_many(self, record_ids: Sequence[uuid.UUID]) -> int:
        deleted = 0
        for record_id in record_ids:
            if self._records.pop(record_id, None) is not None:
                deleted += 1
        return deleted
