import socket
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient

from hireflow.core.identity import IdentityCodec
from hireflow.repositories.memory_stores import InMemoryRecordStore, InMemorySessionStore
from hireflow.services.onboarding_orchestrator import OnboardingOrchestrator, StepResult
from hireflow.services.progress_gate import ProgressGate, StepId
from hireflow.services.session_lifecycle import SessionLifecycle
from hireflow.services.step_rules import StepRules
from hireflow.storage.factory import reset_object_store
from hireflow.storage.keys import StorageFolder
from hireflow.storage.memory_adapter import InMemoryObjectStore

# Nine-digit identity numbers with valid check digits
VALID_SIN = "046454286"
OTHER_SIN = "130692544"
THIRD_SIN = "193456787"

TEST_RESUME_TTL = timedelta(hours=72)
TEST_START_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

# Security: test-only HMAC key
TEST_IDENTITY_SECRET = b"test-identity-secret-that-is-at-least-32-chars"  # nosec B105


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Settable clock injected into SessionLifecycle."""

    def __init__(self, start: datetime = TEST_START_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Core Collaborators
# =============================================================================


@pytest.fixture
def identity_codec() -> IdentityCodec:
    return IdentityCodec(
        hash_secret=TEST_IDENTITY_SECRET, encryption_key=Fernet.generate_key()
    )


@pytest.fixture
def gate() -> ProgressGate:
    return ProgressGate()


@pytest.fixture
def step_rules() -> StepRules:
    return StepRules()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def record_store(step_rules: StepRules) -> InMemoryRecordStore:
    return InMemoryRecordStore(step_rules.section_schemas())


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def lifecycle(
    session_store: InMemorySessionStore,
    identity_codec: IdentityCodec,
    gate: ProgressGate,
    clock: FakeClock,
) -> SessionLifecycle:
    return SessionLifecycle(
        sessions=session_store,
        identity=identity_codec,
        gate=gate,
        resume_ttl=TEST_RESUME_TTL,
        clock=clock,
    )


@pytest.fixture
def orchestrator(
    session_store: InMemorySessionStore,
    record_store: InMemoryRecordStore,
    object_store: InMemoryObjectStore,
    lifecycle: SessionLifecycle,
    gate: ProgressGate,
    step_rules: StepRules,
) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(
        sessions=session_store,
        records=record_store,
        objects=object_store,
        lifecycle=lifecycle,
        gate=gate,
        rules=step_rules,
    )


# =============================================================================
# Step Payloads
# =============================================================================


class StepPayloads:
    """Builds valid step payloads, staging every upload they reference.

    Args:
        objects: Store the temporary uploads are staged in.
    """

    def __init__(self, objects: InMemoryObjectStore) -> None:
        self.objects = objects

    async def upload(
        self, folder: StorageFolder, mime_type: str = "application/pdf"
    ) -> dict:
        asset = await self.objects.stage(
            b"%PDF-1.4 test document", mime_type, folder, original_name="scan"
        )
        return asset.model_dump(mode="json")

    def prequalifications(self) -> dict:
        return {
            "over_23_local": True,
            "over_25_cross_border": True,
            "can_drive_manual": True,
            "experience_driving_tractor_trailer": True,
            "fault_accident_in_3_years": False,
            "zero_points_on_abstract": True,
            "no_unpardoned_criminal_record": True,
            "legal_right_to_work_canada": True,
            "can_cross_border_usa": True,
            "has_fast_card": False,
            "status_in_canada": "PR",
            "driver_type": "Company",
            "haul_preference": "Long Haul",
            "team_status": "Single",
            "prefer_local_driving": False,
            "prefer_switching": False,
            "flatbed_experience": True,
        }

    async def license(self, license_type: str = "AZ") -> dict:
        return {
            "license_number": "A1234-56789-01234",
            "license_state_or_province": "ON",
            "license_type": license_type,
            "license_expiry": "2029-05-01",
            "front_photo": await self.upload(StorageFolder.LICENSES),
            "back_photo": await self.upload(StorageFolder.LICENSES),
        }

    async def page1(self, identity: str | None = VALID_SIN) -> dict:
        return {
            "first_name": "Jordan",
            "last_name": "Reyes",
            "identity_number": identity,
            "identity_issue_date": "2015-06-01",
            "sin_photo": await self.upload(StorageFolder.SIN_PHOTOS),
            "gender": "male",
            "dob": "1985-03-12",
            "phone_cell": "4165550100",
            "can_provide_proof_of_age": True,
            "email": "jordan.reyes@example.com",
            "emergency_contact_name": "Sam Reyes",
            "emergency_contact_phone": "4165550101",
            "birth_city": "Toronto",
            "birth_country": "Canada",
            "birth_state_or_province": "ON",
            "licenses": [await self.license()],
            "addresses": [
                {
                    "address": "12 King St W",
                    "city": "Toronto",
                    "state_or_province": "ON",
                    "postal_code": "M5H 1A1",
                    "from_date": "2018-01-01",
                    "to_date": "2026-01-01",
                }
            ],
        }

    def employment(
        self,
        employer: str,
        from_date: str,
        to_date: str,
        gap_explanation: str | None = None,
    ) -> dict:
        return {
            "employer_name": employer,
            "supervisor_name": "Chris Doe",
            "address": "100 Depot Rd",
            "postal_code": "L4T 1A1",
            "city": "Mississauga",
            "state_or_province": "ON",
            "phone1": "9055550100",
            "email": "dispatch@example.com",
            "position_held": "Driver",
            "from_date": from_date,
            "to_date": to_date,
            "salary": "60000",
            "reason_for_leaving": "Better route",
            "subject_to_fmcsr": True,
            "safety_sensitive_function": True,
            "gap_explanation_before": gap_explanation,
        }

    def page2(self) -> dict:
        # 366 + 365 = 731 covered days, one-day gap
        return {
            "employments": [
                self.employment("Acme Freight", "2022-01-01", "2023-01-01"),
                self.employment("Northline Haulage", "2023-01-02", "2024-01-01"),
            ],
            "currently_employed": False,
        }

    def page3(self) -> dict:
        return {
            "has_accident_history": False,
            "has_traffic_convictions": False,
            "education": {"grade_school": 12, "college": 0, "post_graduate": 0},
            "canadian_hours_of_service": {
                "day_one_date": "2026-01-01",
                "daily_hours": [{"day": day, "hours": 8} for day in range(1, 15)],
            },
        }

    def page4(self) -> dict:
        return {
            "denied_license_or_permit": False,
            "suspended_or_revoked": False,
            "tested_positive_or_refused": False,
            "completed_dot_requirements": True,
            "has_accidental_insurance": False,
        }

    def page5(self) -> dict:
        return {"answers": {"q1": "b", "q2": "a"}}

    async def policies(self) -> dict:
        return {
            "signature": await self.upload(StorageFolder.SIGNATURES, "image/png"),
            "send_policies_by_email": False,
        }

    async def assessment(self, overall: str = "pass") -> dict:
        return {
            "sections": {
                "cab": {
                    "key": "cab",
                    "title": "In cab",
                    "items": [{"key": "mirrors", "label": "Mirrors", "checked": True}],
                }
            },
            "supervisor_name": "Pat Lee",
            "expected_standard": "satisfactory",
            "overall_assessment": overall,
            "supervisor_signature": await self.upload(
                StorageFolder.SIGNATURES, "image/png"
            ),
        }

    async def drive_test(
        self,
        pre_trip: str = "pass",
        on_road: str = "pass",
        needs_flatbed_training: bool = False,
    ) -> dict:
        return {
            "pre_trip": await self.assessment(pre_trip),
            "on_road": await self.assessment(on_road),
            "needs_flatbed_training": needs_flatbed_training,
        }

    async def carriers_edge(self) -> dict:
        return {
            "certificates": [
                await self.upload(StorageFolder.CARRIERS_EDGE_CERTIFICATES)
            ],
            "completed": True,
        }

    async def drug_test(self) -> dict:
        return {"documents": [await self.upload(StorageFolder.DRUG_TEST_DOCS)]}

    async def flatbed(self) -> dict:
        return {
            "certificates": [
                await self.upload(StorageFolder.FLATBED_TRAINING_CERTIFICATES)
            ],
            "completed": True,
        }

    async def for_step(self, step: StepId) -> dict:
        """Default valid payload for any step."""
        if step == StepId.PREQUALIFICATIONS:
            return self.prequalifications()
        if step == StepId.APPLICATION_PAGE_1:
            return await self.page1()
        if step == StepId.APPLICATION_PAGE_2:
            return self.page2()
        if step == StepId.APPLICATION_PAGE_3:
            return self.page3()
        if step == StepId.APPLICATION_PAGE_4:
            return self.page4()
        if step == StepId.APPLICATION_PAGE_5:
            return self.page5()
        if step == StepId.POLICIES_CONSENTS:
            return await self.policies()
        if step == StepId.DRIVE_TEST:
            return await self.drive_test()
        if step == StepId.CARRIERS_EDGE_TRAINING:
            return await self.carriers_edge()
        if step == StepId.DRUG_TEST:
            return await self.drug_test()
        return await self.flatbed()


@pytest.fixture
def payloads(object_store: InMemoryObjectStore) -> StepPayloads:
    return StepPayloads(object_store)


@pytest_asyncio.fixture
async def started(
    orchestrator: OnboardingOrchestrator, payloads: StepPayloads
) -> StepResult:
    """A session for ssp-ca that has completed prequalifications and page 1."""
    return await orchestrator.start(
        company_id="ssp-ca",
        prequalifications=payloads.prequalifications(),
        page1=await payloads.page1(),
    )


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    session_store: InMemorySessionStore,
    record_store: InMemoryRecordStore,
    object_store: InMemoryObjectStore,
    lifecycle: SessionLifecycle,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the in-memory stores.

    Yields:
        AsyncClient for the ASGI app; dependency overrides are cleared after.
    """
    from hireflow.api.deps import (
        get_lifecycle,
        get_objects,
        get_record_store,
        get_session_store,
    )
    from hireflow.main import app

    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_record_store] = lambda: record_store
    app.dependency_overrides[get_objects] = lambda: object_store
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    reset_object_store()
