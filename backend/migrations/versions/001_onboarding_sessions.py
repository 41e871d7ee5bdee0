"""Create onboarding_sessions and step_records tables.

Revision ID: 001_onboarding_sessions
Revises:
Create Date: 2026-10-19

Sessions hold progress, the resume window, the termination latch, and the
protected identity number. Step records hold per-step data as JSONB
sections and cascade with their session.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001_onboarding_sessions"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # =========================================================================
    # onboarding_sessions
    # =========================================================================
    op.create_table(
        "onboarding_sessions",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("identity_hash", sa.String(64), nullable=False),
        sa.Column("identity_encrypted", sa.Text(), nullable=False),
        sa.Column("company_id", sa.String(50), nullable=False),
        sa.Column("application_type", sa.String(50), nullable=True),
        sa.Column("current_step", sa.String(40), nullable=False),
        sa.Column(
            "completed",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resume_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "terminated",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("termination_reason", sa.String(40), nullable=True),
        sa.Column("terminated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "needs_flatbed_training",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "linked_records",
            JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "version", sa.Integer(), server_default=sa.text("1"), nullable=False
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("version >= 1", name="ck_onboarding_sessions_version"),
    )
    op.create_index(
        "idx_onboarding_sessions_identity_hash",
        "onboarding_sessions",
        ["identity_hash"],
        unique=True,
    )
    # Cleanup scans only incomplete sessions ordered by expiry
    op.create_index(
        "idx_onboarding_sessions_expiry_incomplete",
        "onboarding_sessions",
        ["resume_expires_at"],
        postgresql_where=sa.text("completed = false"),
    )

    # =========================================================================
    # step_records
    # =========================================================================
    op.create_table(
        "step_records",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column(
            "session_id",
            UUID(as_uuid=True),
            sa.ForeignKey("onboarding_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column(
            "data",
            JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "version", sa.Integer(), server_default=sa.text("1"), nullable=False
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "kind IN ('pre_qualification', 'application_form', 'policies_consents', "
            "'drive_test', 'carriers_edge_training', 'drug_test', 'flatbed_training')",
            name="ck_step_records_kind",
        ),
        sa.CheckConstraint("version >= 1", name="ck_step_records_version"),
    )
    op.create_index(
        "idx_step_records_session_kind",
        "step_records",
        ["session_id", "kind"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("idx_step_records_session_kind", table_name="step_records")
    op.drop_table("step_records")
    op.drop_index(
        "idx_onboarding_sessions_expiry_incomplete",
        table_name="onboarding_sessions",
    )
    op.drop_index(
        "idx_onboarding_sessions_identity_hash", table_name="onboarding_sessions"
    )
    op.drop_table("onboarding_sessions")
