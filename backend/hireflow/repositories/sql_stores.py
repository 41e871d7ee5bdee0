"""PostgreSQL session and record stores.

Each call opens its own short transaction from the injected session
factory and commits before returning. A saga phase therefore commits
independently of the phases around it, which is what lets a crash between
phases leave a consistent, resumable state.

Optimistic concurrency is a compare-on-write:

    UPDATE ... SET ..., version = version + 1
    WHERE id = :id AND version = :expected
    RETURNING *

Zero rows back means either the row is gone (NotFoundError) or another
writer won (VersionConflictError).
"""

import uuid
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hireflow.core.errors import DuplicateIdentityError, NotFoundError, VersionConflictError
from hireflow.models.onboarding import OnboardingSessionRow, StepRecordRow
from hireflow.repositories.base import RecordStore, SectionSchemas, SessionStore
from hireflow.services.onboarding_types import OnboardingSession, RecordKind, StepRecord
from hireflow.services.progress_gate import Progress, StepId

_SESSION = "OnboardingSession"
_RECORD = "StepRecord"


# =============================================================================
# Row <-> domain conversion
# =============================================================================


def _to_session(row: OnboardingSessionRow) -> OnboardingSession:
    return OnboardingSession(
        id=row.id,
        identity_hash=row.identity_hash,
        identity_encrypted=row.identity_encrypted,
        company_id=row.company_id,
        application_type=row.application_type,
        progress=Progress(current_step=StepId(row.current_step), completed=row.completed),
        resume_expires_at=row.resume_expires_at,
        terminated=row.terminated,
        termination_reason=row.termination_reason,
        terminated_at=row.terminated_at,
        completed_at=row.completed_at,
        needs_flatbed_training=row.needs_flatbed_training,
        linked_records={
            kind: uuid.UUID(record_id) for kind, record_id in (row.linked_records or {}).items()
        },
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _session_values(session: OnboardingSession) -> dict:
    """Mutable column values of a session (no id, version, or timestamps)."""
    return {
        "identity_hash": session.identity_hash,
        "identity_encrypted": session.identity_encrypted,
        "company_id": session.company_id,
        "application_type": session.application_type,
        "current_step": session.progress.current_step.value,
        "completed": session.progress.completed,
        "completed_at": session.completed_at,
        "resume_expires_at": session.resume_expires_at,
        "terminated": session.terminated,
        "termination_reason": session.termination_reason,
        "terminated_at": session.terminated_at,
        "needs_flatbed_training": session.needs_flatbed_training,
        "linked_records": {
            kind: str(record_id) for kind, record_id in session.linked_records.items()
        },
    }


def _to_record(row: StepRecordRow) -> StepRecord:
    return StepRecord(
        id=row.id,
        session_id=row.session_id,
        kind=RecordKind(row.kind),
        data=dict(row.data or {}),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# =============================================================================
# Stores
# =============================================================================


class SqlSessionStore(SessionStore):
    """SessionStore backed by the onboarding_sessions table.

    Args:
        session_factory: Async session factory (one transaction per call).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, session_id: uuid.UUID) -> OnboardingSession:
        async with self._session_factory() as db:
            row = await db.get(OnboardingSessionRow, session_id)
        if row is None:
            raise NotFoundError(_SESSION, str(session_id))
        return _to_session(row)

    async def get_by_identity_hash(self, identity_hash: str) -> OnboardingSession | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(OnboardingSessionRow).where(
                    OnboardingSessionRow.identity_hash == identity_hash
                )
            )
            row = result.scalar_one_or_none()
        return _to_session(row) if row is not None else None

    async def add(self, session: OnboardingSession) -> OnboardingSession:
        row = OnboardingSessionRow(id=session.id, version=1, **_session_values(session))
        async with self._session_factory() as db:
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise DuplicateIdentityError() from exc
            await db.refresh(row)
        return _to_session(row)

    async def save(
        self, session: OnboardingSession, expected_version: int | None = None
    ) -> OnboardingSession:
        stmt = (
            update(OnboardingSessionRow)
            .where(OnboardingSessionRow.id == session.id)
            .values(
                **_session_values(session),
                version=OnboardingSessionRow.version + 1,
            )
            .returning(OnboardingSessionRow)
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(OnboardingSessionRow.version == expected_version)

        async with self._session_factory() as db:
            try:
                result = await db.execute(stmt)
                row = result.scalar_one_or_none()
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise DuplicateIdentityError() from exc

            if row is None:
                exists = await db.get(OnboardingSessionRow, session.id)
                if exists is None:
                    raise NotFoundError(_SESSION, str(session.id))
                raise VersionConflictError(_SESSION, str(session.id), expected_version)
        return _to_session(row)

    async def delete(self, session_id: uuid.UUID) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                delete(OnboardingSessionRow).where(OnboardingSessionRow.id == session_id)
            )
            await db.commit()
        return result.rowcount > 0

    async def list_expired_incomplete(
        self, now: datetime, limit: int
    ) -> list[OnboardingSession]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(OnboardingSessionRow)
                .where(
                    OnboardingSessionRow.completed.is_(False),
                    OnboardingSessionRow.resume_expires_at < now,
                )
                .order_by(OnboardingSessionRow.resume_expires_at)
                .limit(limit)
            )
            rows = result.scalars().all()
        return [_to_session(row) for row in rows]


class SqlRecordStore(RecordStore):
    """RecordStore backed by the step_records table.

    Args:
        session_factory: Async session factory (one transaction per call).
        section_schemas: Models used by validate().
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        section_schemas: SectionSchemas | None = None,
    ) -> None:
        super().__init__(section_schemas)
        self._session_factory = session_factory

    async def load(self, record_id: uuid.UUID) -> StepRecord:
        async with self._session_factory() as db:
            row = await db.get(StepRecordRow, record_id)
        if row is None:
            raise NotFoundError(_RECORD, str(record_id))
        return _to_record(row)

    async def create(self, session_id: uuid.UUID, kind: RecordKind) -> StepRecord:
        row = StepRecordRow(
            id=uuid.uuid4(), session_id=session_id, kind=kind.value, data={}, version=1
        )
        async with self._session_factory() as db:
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as exc:
                # Another request created the same (session, kind) record first
                await db.rollback()
                raise VersionConflictError(_RECORD, f"{session_id}/{kind.value}") from exc
            await db.refresh(row)
        return _to_record(row)

    async def save(
        self, record: StepRecord, expected_version: int | None = None
    ) -> StepRecord:
        stmt = (
            update(StepRecordRow)
            .where(StepRecordRow.id == record.id)
            .values(data=record.data, version=StepRecordRow.version + 1)
            .returning(StepRecordRow)
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(StepRecordRow.version == expected_version)

        async with self._session_factory() as db:
            result = await db.execute(stmt)
            row = result.scalar_one_or_none()
            await db.commit()

            if row is None:
                exists = await db.get(StepRecordRow, record.id)
                if exists is None:
                    raise NotFoundError(_RECORD, str(record.id))
                raise VersionConflictError(_RECORD, str(record.id), expected_version)
        return _to_record(row)

    async def delete_many(self, record_ids: Sequence[uuid.UUID]) -> int:
        if not record_ids:
            return 0
        async with self._session_factory() as db:
            result = await db.execute(
                delete(StepRecordRow).where(StepRecordRow.id.in_(list(record_ids)))
            )
            await db.commit()
        return result.rowcount
