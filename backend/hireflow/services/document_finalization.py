"""Document finalization saga.

Coordinates a step record write with the object store, which shares no
transaction with the database. Uploads arrive as temporary FileAssets; the
saga makes them permanent and swaps the references in, in this order:

1. Shape-validate the candidate section (temporary keys in place).
   Nothing has been written yet.
2. Phase 1: save the record with the temporary keys (provisional write).
   A crash after this point still has the applicant's submission.
3. Phase 2: finalize every temporary slot concurrently and join all of
   them. If any fails, delete the permanent objects this call created
   (compensation) and raise StorageFinalizeError. The record stays in
   its Phase 1 state.
4. Phase 3: re-validate and save the record with permanent keys. A
   definite save failure gets the same compensation.
5. Phase 4: delete permanent objects the record referenced before this
   call and no longer does. Best-effort; failures are logged and reported
   on the result, never raised.

Invariants:
- A committed record never references a deleted object. Phase 4 only runs
  after Phase 3 commits, and compensation never touches a key the record
  referenced before the call. Permanent keys are scoped to one record
  section, so no other record or section can reference an object this
  call created or supersedes.
- Re-running an identical request is safe. Permanent keys are
  deterministic (destination prefix + temp basename) and a temp slot whose
  permanent key is already referenced is reused without a move, so a retry
  finalizes nothing twice and supersedes nothing.
- Replaced originals survive a failed attempt. Phase 1 parks the
  permanent assets it drops from the section under SUPERSEDED_KEY; the
  next run treats them as still owned and Phase 3 clears the entry once
  Phase 4 is about to collect them.
"""

import asyncio
import copy
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from hireflow.core.errors import (
    NotFoundError,
    StorageFinalizeError,
    ValidationError,
    VersionConflictError,
)
from hireflow.repositories.base import RecordStore
from hireflow.services.file_fields import AssetSlot, FileFieldMap, collect_assets, set_at
from hireflow.services.onboarding_types import StepRecord
from hireflow.storage.base import FileAsset, ObjectStore
from hireflow.storage.errors import StorageError

logger = logging.getLogger(__name__)

# Save failures after which the write definitely did not commit
_DEFINITE_SAVE_FAILURES = (VersionConflictError, NotFoundError)

# record.data entry holding, per section, permanent assets awaiting Phase 4
SUPERSEDED_KEY = "_superseded"


# =============================================================================
# Result Dataclasses
# =============================================================================


@dataclass(frozen=True)
class CompensationResult:
    """Outcome of a compensating delete.

    Attributes:
        deleted_keys: Keys removed from the object store.
        failed_keys: Keys that could not be removed (left as leaks).
        error: The storage error, when the delete failed.
    """

    deleted_keys: tuple[str, ...] = ()
    failed_keys: tuple[str, ...] = ()
    error: StorageError | None = None

    @property
    def succeeded(self) -> bool:
        """True when nothing was left behind."""
        return self.error is None


@dataclass(frozen=True)
class FinalizationResult:
    """Outcome of a successful saga run.

    Attributes:
        record: The committed record.
        finalized_keys: Permanent keys created by this call.
        reused_keys: Temp slots whose permanent copy was already referenced.
        superseded_keys: Previously referenced keys dropped by this call.
        gc_failed_keys: Superseded keys whose delete failed (leaked).
    """

    record: StepRecord
    finalized_keys: tuple[str, ...] = ()
    reused_keys: tuple[str, ...] = ()
    superseded_keys: tuple[str, ...] = ()
    gc_failed_keys: tuple[str, ...] = ()


async def compensate(objects: ObjectStore, keys: Sequence[str]) -> CompensationResult:
    """Delete permanent objects created by a failed saga call.

    Never raises: a failed compensation leaves orphaned objects (a storage
    cost), which is reported on the result for the caller to log.
    """
    if not keys:
        return CompensationResult()
    try:
        await objects.delete(list(keys))
    except StorageError as exc:
        return CompensationResult(failed_keys=tuple(keys), error=exc)
    return CompensationResult(deleted_keys=tuple(keys))


# =============================================================================
# Saga
# =============================================================================


class DocumentFinalizationSaga:
    """Runs the finalize protocol for one section of one record.

    Args:
        records: Record persistence.
        objects: Object store (its key policy decides temp vs permanent).
    """

    def __init__(self, records: RecordStore, objects: ObjectStore) -> None:
        self._records = records
        self._objects = objects
        self._keys = objects.key_policy

    def _permanent_keys(self, section: dict | None, file_fields: FileFieldMap) -> dict[str, FileAsset]:
        return {
            slot.asset.key: slot.asset
            for slot in collect_assets(section, file_fields)
            if not self._keys.is_temp_key(slot.asset.key)
        }

    @staticmethod
    def _parked(record: StepRecord, section: str) -> dict[str, FileAsset]:
        """Permanent assets dropped by an earlier attempt that never committed."""
        parked = record.data.get(SUPERSEDED_KEY, {}).get(section, [])
        return {item["key"]: FileAsset.model_validate(item) for item in parked}

    @staticmethod
    def _set_parked(record: StepRecord, section: str, assets: Sequence[FileAsset]) -> None:
        parked = dict(record.data.get(SUPERSEDED_KEY, {}))
        if assets:
            parked[section] = [asset.model_dump(mode="json") for asset in assets]
        else:
            parked.pop(section, None)
        if parked:
            record.data[SUPERSEDED_KEY] = parked
        else:
            record.data.pop(SUPERSEDED_KEY, None)

    async def run(
        self,
        record: StepRecord,
        section: str,
        content: dict,
        file_fields: FileFieldMap,
        session_id: uuid.UUID,
    ) -> FinalizationResult:
        """Replace one section of a record, finalizing any uploads in it.

        Args:
            record: Record as loaded by the caller (its version is the
                optimistic concurrency baseline).
            section: Section name inside record.data (e.g. "page4").
            content: New section content (JSON-compatible).
            file_fields: Path expressions of file fields in the section.
            session_id: Owning session (scopes permanent keys).

        Returns:
            FinalizationResult with the committed record.

        Raises:
            ValidationError: Shape check failed (nothing written) or a
                permanent key not owned by this record was submitted.
            VersionConflictError: Another writer saved the record first.
            StorageFinalizeError: A finalize failed; compensated.
        """
        previous = {
            **self._parked(record, section),
            **self._permanent_keys(record.data.get(section), file_fields),
        }

        # ---- Shape validation (no writes yet) -------------------------------
        candidate = copy.deepcopy(record)
        candidate.data[section] = copy.deepcopy(content)
        slots = collect_assets(candidate.data[section], file_fields)
        temp_slots = [slot for slot in slots if self._keys.is_temp_key(slot.asset.key)]

        foreign = [
            slot
            for slot in slots
            if not self._keys.is_temp_key(slot.asset.key) and slot.asset.key not in previous
        ]
        if foreign:
            raise ValidationError(
                message="File reference does not belong to this record",
                details=[{"field": slot.path, "key": slot.asset.key} for slot in foreign],
            )

        errors = self._records.validate(candidate, [section])
        if errors:
            raise ValidationError(message="Record validation failed", details=errors)

        # ---- Phase 1: provisional write with temporary keys -----------------
        if temp_slots:
            kept = {slot.asset.key for slot in slots}
            self._set_parked(
                candidate,
                section,
                [asset for key, asset in previous.items() if key not in kept],
            )
        else:
            # This write is the commit; Phase 4 takes over the parked assets
            self._set_parked(candidate, section, [])
        provisional = await self._records.save(candidate, expected_version=record.version)

        if not temp_slots:
            committed = provisional
            finalized_keys: tuple[str, ...] = ()
            reused_keys: tuple[str, ...] = ()
        else:
            committed, finalized_keys, reused_keys = await self._finalize_and_commit(
                provisional, section, temp_slots, previous, session_id
            )

        # ---- Phase 4: garbage-collect superseded originals ------------------
        current = self._permanent_keys(committed.data.get(section), file_fields)
        superseded = tuple(sorted(set(previous) - set(current)))
        gc_failed = await self._collect_garbage(superseded, record.id)

        return FinalizationResult(
            record=committed,
            finalized_keys=finalized_keys,
            reused_keys=reused_keys,
            superseded_keys=superseded,
            gc_failed_keys=gc_failed,
        )

    async def _finalize_slot(
        self,
        slot: AssetSlot,
        previous: dict[str, FileAsset],
        session_id: uuid.UUID,
        record_id: uuid.UUID,
        section: str,
    ) -> tuple[FileAsset, bool]:
        """Finalize one temporary slot. Returns (asset, moved)."""
        prefix = self._keys.final_prefix(slot.folder, session_id, record_id, section)
        target_key = self._keys.final_key(slot.asset.key, prefix)
        if target_key in previous:
            # Already finalized by an earlier run of this request
            return previous[target_key], False

        moved = await self._objects.move(slot.asset.key, prefix)
        return (
            slot.asset.model_copy(
                update={
                    "key": moved.key,
                    "url": moved.url,
                    "size_bytes": moved.size_bytes
                    if moved.size_bytes is not None
                    else slot.asset.size_bytes,
                }
            ),
            True,
        )

    async def _finalize_and_commit(
        self,
        provisional: StepRecord,
        section: str,
        temp_slots: list[AssetSlot],
        previous: dict[str, FileAsset],
        session_id: uuid.UUID,
    ) -> tuple[StepRecord, tuple[str, ...], tuple[str, ...]]:
        """Phases 2 and 3."""
        # ---- Phase 2: finalize concurrently, join all ----------------------
        outcomes = await asyncio.gather(
            *(
                self._finalize_slot(slot, previous, session_id, provisional.id, section)
                for slot in temp_slots
            ),
            return_exceptions=True,
        )

        finalized: list[tuple[AssetSlot, FileAsset]] = []
        created: list[str] = []
        reused: list[str] = []
        failures: list[tuple[AssetSlot, BaseException]] = []
        for slot, outcome in zip(temp_slots, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                failures.append((slot, outcome))
                continue
            asset, moved = outcome
            finalized.append((slot, asset))
            if moved:
                created.append(asset.key)
            else:
                reused.append(asset.key)

        if failures:
            for slot, error in failures:
                logger.warning(
                    "Finalize failed for %s (%s) on record %s: %s",
                    slot.asset.key,
                    slot.path,
                    provisional.id,
                    error,
                )
            await self._compensate(created, provisional.id)
            first_error = failures[0][1]
            if not isinstance(first_error, Exception):
                raise first_error
            raise StorageFinalizeError(
                failed_keys=[slot.asset.key for slot, _ in failures]
            ) from first_error

        # ---- Phase 3: commit permanent keys ---------------------------------
        final_record = copy.deepcopy(provisional)
        self._set_parked(final_record, section, [])
        for slot, asset in finalized:
            set_at(final_record.data[section], slot.location, asset.model_dump(mode="json"))

        errors = self._records.validate(final_record, [section])
        if errors:
            await self._compensate(created, provisional.id)
            raise ValidationError(message="Record validation failed", details=errors)

        try:
            committed = await self._records.save(
                final_record, expected_version=provisional.version
            )
        except _DEFINITE_SAVE_FAILURES:
            await self._compensate(created, provisional.id)
            raise
        except Exception:
            # Outcome unknown: the write may have committed, so the new
            # objects may be referenced. Leak rather than risk a dangling key.
            logger.error(
                "Phase 3 save of record %s failed with unknown outcome; "
                "leaving %d finalized object(s) in place",
                provisional.id,
                len(created),
            )
            raise

        logger.info(
            "Finalized %d file(s) on record %s (%d reused)",
            len(created),
            committed.id,
            len(reused),
        )
        return committed, tuple(created), tuple(reused)

    async def _compensate(self, keys: list[str], record_id: uuid.UUID) -> CompensationResult:
        result = await compensate(self._objects, keys)
        if not result.succeeded:
            logger.error(
                "Compensation failed for record %s; orphaned keys %s: %s",
                record_id,
                list(result.failed_keys),
                result.error,
            )
        elif result.deleted_keys:
            logger.info(
                "Compensated %d finalized object(s) for record %s",
                len(result.deleted_keys),
                record_id,
            )
        return result

    async def _collect_garbage(
        self, superseded: tuple[str, ...], record_id: uuid.UUID
    ) -> tuple[str, ...]:
        """Phase 4. Returns keys whose delete failed."""
        if not superseded:
            return ()
        try:
            await self._objects.delete(list(superseded))
        except StorageError as exc:
            logger.warning(
                "Failed to delete %d superseded object(s) for record %s: %s",
                len(superseded),
                record_id,
                exc,
            )
            return superseded
        return ()
