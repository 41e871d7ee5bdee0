"""Shared dependencies for API endpoints.

WHY DEPENDENCY INJECTION:
- Route handlers never construct stores, the object store, or the clock
- Tests swap the SQL stores for in-memory ones via dependency_overrides
- One place decides how the orchestrator is composed
"""

from datetime import timedelta
from typing import Annotated

from fastapi import Depends

from hireflow.core.config import settings
from hireflow.core.database import async_session_factory
from hireflow.core.identity import IdentityCodec
from hireflow.repositories.base import RecordStore, SessionStore
from hireflow.repositories.sql_stores import SqlRecordStore, SqlSessionStore
from hireflow.services.onboarding_orchestrator import OnboardingOrchestrator
from hireflow.services.progress_gate import ProgressGate
from hireflow.services.session_lifecycle import SessionLifecycle
from hireflow.services.step_rules import StepRules
from hireflow.storage.base import ObjectStore
from hireflow.storage.factory import get_object_store

_step_rules = StepRules()
_gate = ProgressGate()
_identity_codec: IdentityCodec | None = None


def get_step_rules() -> StepRules:
    """Return the process-wide step rule table."""
    return _step_rules


def get_identity_codec() -> IdentityCodec:
    """Get or create the identity codec singleton."""
    global _identity_codec
    if _identity_codec is None:
        _identity_codec = IdentityCodec.from_settings(settings)
    return _identity_codec


def get_session_store() -> SessionStore:
    """Session store backed by PostgreSQL."""
    return SqlSessionStore(async_session_factory)


def get_record_store(
    rules: Annotated[StepRules, Depends(get_step_rules)],
) -> RecordStore:
    """Record store backed by PostgreSQL, validating with the step schemas."""
    return SqlRecordStore(async_session_factory, rules.section_schemas())


def get_objects() -> ObjectStore:
    """Configured object store (singleton)."""
    return get_object_store()


def get_lifecycle(
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    identity: Annotated[IdentityCodec, Depends(get_identity_codec)],
) -> SessionLifecycle:
    """Session lifecycle with the configured resume window."""
    return SessionLifecycle(
        sessions=sessions,
        identity=identity,
        gate=_gate,
        resume_ttl=timedelta(hours=settings.resume_ttl_hours),
    )


def get_orchestrator(
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    records: Annotated[RecordStore, Depends(get_record_store)],
    objects: Annotated[ObjectStore, Depends(get_objects)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_lifecycle)],
    rules: Annotated[StepRules, Depends(get_step_rules)],
) -> OnboardingOrchestrator:
    """Compose the orchestrator for one request."""
    return OnboardingOrchestrator(
        sessions=sessions,
        records=records,
        objects=objects,
        lifecycle=lifecycle,
        gate=_gate,
        rules=rules,
    )


Sessions = Annotated[SessionStore, Depends(get_session_store)]
Records = Annotated[RecordStore, Depends(get_record_store)]
Objects = Annotated[ObjectStore, Depends(get_objects)]
Lifecycle = Annotated[SessionLifecycle, Depends(get_lifecycle)]
Orchestrator = Annotated[OnboardingOrchestrator, Depends(get_orchestrator)]
