"""Tests for the in-memory session and record stores."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from hireflow.core.errors import DuplicateIdentityError, NotFoundError, VersionConflictError
from hireflow.repositories.memory_stores import InMemoryRecordStore, InMemorySessionStore
from hireflow.schemas.steps import DrugTestPatch
from hireflow.services.onboarding_types import OnboardingSession, RecordKind
from hireflow.services.progress_gate import Progress, StepId

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


def _session(identity_hash: str = "hash-1", expires_in_hours: int = 72, **kwargs):
    return OnboardingSession(
        id=uuid.uuid4(),
        identity_hash=identity_hash,
        identity_encrypted="token",
        company_id="ssp-ca",
        progress=Progress(current_step=StepId.PREQUALIFICATIONS),
        resume_expires_at=NOW + timedelta(hours=expires_in_hours),
        **kwargs,
    )


class TestInMemorySessionStore:
    """Tests for InMemorySessionStore."""

    @pytest.fixture
    def store(self) -> InMemorySessionStore:
        return InMemorySessionStore()

    async def test_add_starts_at_version_one(self, store):
        stored = await store.add(_session())
        assert stored.version == 1
        assert stored.created_at is not None

    async def test_add_rejects_taken_identity(self, store):
        await store.add(_session("same"))
        with pytest.raises(DuplicateIdentityError):
            await store.add(_session("same"))
        assert len(store) == 1

    async def test_save_bumps_version(self, store):
        stored = await store.add(_session())
        saved = await store.save(stored, expected_version=1)
        assert saved.version == 2

    async def test_stale_save_conflicts(self, store):
        stored = await store.add(_session())
        await store.save(stored, expected_version=1)
        with pytest.raises(VersionConflictError) as exc_info:
            await store.save(stored, expected_version=1)
        assert exc_info.value.retryable is True

    async def test_save_without_expected_version_skips_check(self, store):
        stored = await store.add(_session())
        await store.save(stored)
        saved = await store.save(stored)
        assert saved.version == 3

    async def test_save_rejects_identity_of_other_session(self, store):
        await store.add(_session("first"))
        second = await store.add(_session("second"))
        second.identity_hash = "first"
        with pytest.raises(DuplicateIdentityError):
            await store.save(second, expected_version=1)

    async def test_loaded_copies_are_isolated(self, store):
        stored = await store.add(_session())
        loaded = await store.get(stored.id)
        loaded.linked_records["drug_test"] = uuid.uuid4()
        assert (await store.get(stored.id)).linked_records == {}

    async def test_missing_session_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.get(uuid.uuid4())
        assert await store.delete(uuid.uuid4()) is False

    async def test_identity_taken_excludes_owner(self, store):
        stored = await store.add(_session("mine"))
        assert not await store.identity_taken("mine", exclude_session_id=stored.id)
        assert await store.identity_taken("mine")
        assert not await store.identity_taken("nobody")

    async def test_list_expired_incomplete(self, store):
        old = await store.add(_session("old", expires_in_hours=-48))
        recent = await store.add(_session("recent", expires_in_hours=-1))
        await store.add(_session("live", expires_in_hours=1))
        await store.add(
            _session(
                "done",
                expires_in_hours=-100,
            )
        )
        done = await store.get_by_identity_hash("done")
        assert done is not None
        done.progress = Progress(current_step=StepId.FLATBED_TRAINING, completed=True)
        await store.save(done)

        expired = await store.list_expired_incomplete(NOW, limit=10)
        assert [s.id for s in expired] == [old.id, recent.id]
        assert len(await store.list_expired_incomplete(NOW, limit=1)) == 1


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore."""

    @pytest.fixture
    def store(self) -> InMemoryRecordStore:
        return InMemoryRecordStore({(RecordKind.DRUG_TEST, "results"): DrugTestPatch})

    async def test_create_and_save(self, store):
        session_id = uuid.uuid4()
        record = await store.create(session_id, RecordKind.DRUG_TEST)
        assert record.version == 1
        assert record.data == {}

        record.data["results"] = {"documents": []}
        saved = await store.save(record, expected_version=1)
        assert saved.version == 2
        assert (await store.load(record.id)).data == {"results": {"documents": []}}

    async def test_stale_save_conflicts(self, store):
        record = await store.create(uuid.uuid4(), RecordKind.DRUG_TEST)
        await store.save(record, expected_version=1)
        with pytest.raises(VersionConflictError):
            await store.save(record, expected_version=1)

    async def test_fail_next_save_can_skip(self, store):
        record = await store.create(uuid.uuid4(), RecordKind.DRUG_TEST)
        store.fail_next_save(RuntimeError("boom"), skip=1)

        record = await store.save(record)
        with pytest.raises(RuntimeError, match="boom"):
            await store.save(record)
        assert (await store.save(record)).version == 3

    async def test_delete_many_counts_existing(self, store):
        first = await store.create(uuid.uuid4(), RecordKind.DRUG_TEST)
        second = await store.create(uuid.uuid4(), RecordKind.DRIVE_TEST)
        assert await store.delete_many([first.id, second.id, uuid.uuid4()]) == 2
        assert len(store) == 0

    async def test_validate_reports_missing_section(self, store):
        record = await store.create(uuid.uuid4(), RecordKind.DRUG_TEST)
        errors = store.validate(record, ["results"])
        assert errors == [{"loc": ["results"], "msg": "Section is missing", "type": "missing"}]

    async def test_validate_runs_section_schema(self, store):
        record = await store.create(uuid.uuid4(), RecordKind.DRUG_TEST)
        record.data["results"] = {"documents": "not-a-list"}
        errors = store.validate(record, ["results.documents"])
        assert errors
        assert all(error["loc"][0] == "results" for error in errors)

    async def test_validate_without_schema_only_checks_presence(self):
        store = InMemoryRecordStore()
        record = await store.create(uuid.uuid4(), RecordKind.DRUG_TEST)
        record.data["results"] = {"anything": True}
        assert store.validate(record, ["results"]) == []
