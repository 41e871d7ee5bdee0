"""Domain values shared by the onboarding services and stores.

OnboardingSession and StepRecord are independent aggregates. A session
references its records by id only (linked_records), so a record can be
validated and saved without loading or locking its session, and the
reverse.

Both carry a `version` used for optimistic concurrency: every save names
the version it read, and the store rejects the write if another writer got
there first.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from hireflow.services.progress_gate import Progress


class RecordKind(str, Enum):
    """Kinds of per-step records linked from a session."""

    PRE_QUALIFICATION = "pre_qualification"
    APPLICATION_FORM = "application_form"
    POLICIES_CONSENTS = "policies_consents"
    DRIVE_TEST = "drive_test"
    CARRIERS_EDGE_TRAINING = "carriers_edge_training"
    DRUG_TEST = "drug_test"
    FLATBED_TRAINING = "flatbed_training"


class TerminationReason(str, Enum):
    """Why a session was terminated."""

    DRIVE_TEST_FAILED = "drive_test_failed"
    RESIGNED = "resigned"
    TERMINATED = "terminated"


@dataclass
class OnboardingSession:
    """One applicant's onboarding session (aggregate root).

    Attributes:
        id: Session id.
        identity_hash: Lookup hash of the identity number (globally unique).
        identity_encrypted: Reversible encrypted identity number.
        company_id: Hiring company.
        progress: Furthest step reached.
        resume_expires_at: Writes are rejected once now is past this.
        application_type: Optional company-specific application flavour.
        terminated: One-way latch.
        termination_reason: Set with the latch.
        terminated_at: Set with the latch.
        completed_at: When the final step was completed.
        needs_flatbed_training: Decided by the drive test.
        linked_records: Record kind value -> record id.
        version: Optimistic concurrency counter.
        created_at: Creation time.
        updated_at: Last save time.
    """

    id: uuid.UUID
    identity_hash: str
    identity_encrypted: str
    company_id: str
    progress: Progress
    resume_expires_at: datetime
    application_type: str | None = None
    terminated: bool = False
    termination_reason: str | None = None
    terminated_at: datetime | None = None
    completed_at: datetime | None = None
    needs_flatbed_training: bool = False
    linked_records: dict[str, uuid.UUID] = field(default_factory=dict)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def record_id(self, kind: RecordKind) -> uuid.UUID | None:
        """Id of the linked record of a kind, if created yet."""
        return self.linked_records.get(kind.value)


@dataclass
class StepRecord:
    """Per-step submission data.

    `data` holds one section per step (e.g. the application form record
    keeps "page1" .. "page5").

    Attributes:
        id: Record id.
        session_id: Owning session (reference only).
        kind: Record kind.
        data: Section name -> submitted content (JSON-compatible).
        version: Optimistic concurrency counter.
    """

    id: uuid.UUID
    session_id: uuid.UUID
    kind: RecordKind
    data: dict = field(default_factory=dict)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
