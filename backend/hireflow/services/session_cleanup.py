"""Bulk cascade delete of abandoned onboarding sessions.

A session is abandoned when it is incomplete and its resume window has
closed. Each run handles at most one batch; leftovers are picked up by the
next run (the endpoint is called on a schedule).
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from hireflow.core.config import MAX_CLEANUP_BATCH_LIMIT
from hireflow.repositories.base import RecordStore, SessionStore
from hireflow.services.onboarding_types import RecordKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of one cleanup batch.

    Attributes:
        scanned: Expired sessions found in this batch.
        deleted_sessions: Sessions removed.
        deleted_records: Records removed, per record kind value.
        remaining_hint: Whether another batch may be needed.
        session_ids: Ids of the removed sessions.
    """

    scanned: int
    deleted_sessions: int
    deleted_records: dict[str, int] = field(default_factory=dict)
    remaining_hint: str = ""
    session_ids: list[str] = field(default_factory=list)


def clamp_batch_limit(limit: int) -> int:
    """Clamp a requested batch size to 1..MAX_CLEANUP_BATCH_LIMIT."""
    return min(max(1, limit), MAX_CLEANUP_BATCH_LIMIT)


async def cleanup_expired_sessions(
    sessions: SessionStore,
    records: RecordStore,
    now: datetime,
    limit: int = 500,
) -> CleanupResult:
    """Delete one batch of expired, incomplete sessions and their records.

    Records of a session are deleted before the session itself, so an
    interrupted run never leaves records without their session.

    Args:
        sessions: Session persistence.
        records: Step record persistence.
        now: Sessions whose window closed before this are expired.
        limit: Requested batch size (clamped).

    Returns:
        CleanupResult with per-kind counts.
    """
    batch = clamp_batch_limit(limit)
    expired = await sessions.list_expired_incomplete(now, batch)

    per_kind: Counter[str] = Counter({kind.value: 0 for kind in RecordKind})
    deleted_ids: list[str] = []
    for session in expired:
        for kind, record_id in session.linked_records.items():
            per_kind[kind] += await records.delete_many([record_id])
        if await sessions.delete(session.id):
            deleted_ids.append(str(session.id))

    if len(expired) == batch:
        hint = "More may remain (processed up to limit)"
    else:
        hint = "Likely none beyond this batch"

    if expired:
        logger.info(
            "Expired-session cleanup removed %d of %d session(s)",
            len(deleted_ids),
            len(expired),
        )

    return CleanupResult(
        scanned=len(expired),
        deleted_sessions=len(deleted_ids),
        deleted_records=dict(per_kind),
        remaining_hint=hint,
        session_ids=deleted_ids,
    )
