"""Onboarding models - sessions and per-step records.

Sessions and step records are separate aggregates. step_records carries a
session_id column with an ON DELETE CASCADE foreign key so an admin delete
of a session cannot leave records behind, but neither row embeds the
other and neither is loaded through a relationship.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hireflow.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class OnboardingSessionRow(Base, TimestampMixin):
    """Table row for an applicant's onboarding session."""

    __tablename__ = "onboarding_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )

    # Identity (never stored in plaintext)
    identity_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    identity_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    company_id: Mapped[str] = mapped_column(String(50), nullable=False)
    application_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Progress
    current_step: Mapped[str] = mapped_column(String(40), nullable=False)
    completed: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    resume_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Termination latch
    terminated: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), nullable=False
    )
    termination_reason: Mapped[str | None] = mapped_column(String(40), nullable=True)
    terminated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    needs_flatbed_training: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), nullable=False
    )

    # Record kind -> record id (string form)
    linked_records: Mapped[dict] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )

    version: Mapped[int] = mapped_column(
        Integer, server_default=text("1"), nullable=False
    )

    __table_args__ = (
        Index("idx_onboarding_sessions_identity_hash", "identity_hash", unique=True),
        Index(
            "idx_onboarding_sessions_expiry_incomplete",
            "resume_expires_at",
            postgresql_where=text("completed = false"),
        ),
        CheckConstraint("version >= 1", name="ck_onboarding_sessions_version"),
    )


class StepRecordRow(Base, TimestampMixin):
    """Table row for one per-step record."""

    __tablename__ = "step_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("onboarding_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    data: Mapped[dict] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )
    version: Mapped[int] = mapped_column(
        Integer, server_default=text("1"), nullable=False
    )

    __table_args__ = (
        Index("idx_step_records_session_kind", "session_id", "kind", unique=True),
        CheckConstraint(
            "kind IN ('pre_qualification', 'application_form', 'policies_consents', "
            "'drive_test', 'carriers_edge_training', 'drug_test', 'flatbed_training')",
            name="ck_step_records_kind",
        ),
        CheckConstraint("version >= 1", name="ck_step_records_version"),
    )
