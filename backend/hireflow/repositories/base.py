"""Persistence contracts for sessions and step records.

Two independent stores, one per aggregate. Both use optimistic
concurrency: save() takes the version the caller read and raises
VersionConflictError if the stored version moved on. Nothing here takes
locks; last-write-wins plus retry is the resolution strategy.

Implementations:
- sql_stores.py: PostgreSQL via async SQLAlchemy, one transaction per call
- memory_stores.py: process-local dicts (tests, local development)
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from hireflow.services.onboarding_types import OnboardingSession, RecordKind, StepRecord

SectionSchemas = Mapping[tuple[RecordKind, str], type[BaseModel]]
"""(record kind, section name) -> model the section must satisfy."""


class SessionStore(ABC):
    """Load and save onboarding sessions."""

    @abstractmethod
    async def get(self, session_id: uuid.UUID) -> OnboardingSession:
        """Load a session.

        Raises:
            NotFoundError: If no session has this id.
        """
        ...

    @abstractmethod
    async def get_by_identity_hash(self, identity_hash: str) -> OnboardingSession | None:
        """Find the session owning an identity hash."""
        ...

    @abstractmethod
    async def add(self, session: OnboardingSession) -> OnboardingSession:
        """Insert a new session (version 1).

        Raises:
            DuplicateIdentityError: If the identity hash is already taken.
        """
        ...

    @abstractmethod
    async def save(
        self, session: OnboardingSession, expected_version: int | None = None
    ) -> OnboardingSession:
        """Write a session back.

        Args:
            session: Session to persist.
            expected_version: Version the caller loaded. None skips the check.

        Returns:
            The stored session with its new version.

        Raises:
            NotFoundError: If the session no longer exists.
            VersionConflictError: If the stored version differs.
            DuplicateIdentityError: If a changed identity hash is taken.
        """
        ...

    @abstractmethod
    async def delete(self, session_id: uuid.UUID) -> bool:
        """Hard delete a session. Returns False if it did not exist."""
        ...

    @abstractmethod
    async def list_expired_incomplete(
        self, now: datetime, limit: int
    ) -> list[OnboardingSession]:
        """Incomplete sessions whose resume window closed before `now`.

        Oldest expiry first, at most `limit`.
        """
        ...

    async def identity_taken(
        self, identity_hash: str, exclude_session_id: uuid.UUID | None = None
    ) -> bool:
        """True if a session other than `exclude_session_id` owns the hash."""
        owner = await self.get_by_identity_hash(identity_hash)
        return owner is not None and owner.id != exclude_session_id


class RecordStore(ABC):
    """Load, save, and validate per-step records.

    Args:
        section_schemas: Models used by validate(), keyed by
            (record kind, section name).
    """

    def __init__(self, section_schemas: SectionSchemas | None = None) -> None:
        self._section_schemas = dict(section_schemas or {})

    @abstractmethod
    async def load(self, record_id: uuid.UUID) -> StepRecord:
        """Load a record.

        Raises:
            NotFoundError: If no record has this id.
        """
        ...

    @abstractmethod
    async def create(self, session_id: uuid.UUID, kind: RecordKind) -> StepRecord:
        """Insert an empty record (version 1)."""
        ...

    @abstractmethod
    async def save(
        self, record: StepRecord, expected_version: int | None = None
    ) -> StepRecord:
        """Write a record back.

        Returns:
            The stored record with its new version.

        Raises:
            NotFoundError: If the record no longer exists.
            VersionConflictError: If the stored version differs.
        """
        ...

    @abstractmethod
    async def delete_many(self, record_ids: Sequence[uuid.UUID]) -> int:
        """Hard delete records. Returns the number deleted."""
        ...

    def validate(self, record: StepRecord, field_paths: Sequence[str]) -> list[dict]:
        """Schema-check only the named sections of a record.

        A path is a section name, optionally followed by a dotted sub-path
        that is ignored for schema lookup (the whole section is checked).

        Returns:
            Error dicts ({"loc", "msg", "type"}); empty when valid.
        """
        errors: list[dict] = []
        for path in field_paths:
            section = path.split(".", 1)[0]
            value = record.data.get(section)
            if value is None:
                errors.append(
                    {"loc": [section], "msg": "Section is missing", "type": "missing"}
                )
                continue
            schema = self._section_schemas.get((record.kind, section))
            if schema is None:
                continue
            try:
                schema.model_validate(value)
            except PydanticValidationError as exc:
                errors.extend(
                    {
                        "loc": [section, *error["loc"]],
                        "msg": error["msg"],
                        "type": error["type"],
                    }
                    for error in exc.errors()
                )
        return errors
