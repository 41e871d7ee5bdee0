"""Tests for the admin onboarding API."""

import uuid
from datetime import timedelta

import pytest

from tests.conftest import TEST_RESUME_TTL

ADMIN = "/api/v1/admin/onboarding"


@pytest.fixture
def session_id(started) -> str:
    return str(started.session.id)


class TestTerminate:
    """Tests for POST /admin/onboarding/{id}/terminate."""

    async def test_terminate_without_body(self, client, session_id):
        """Reason defaults to terminated."""
        response = await client.post(f"{ADMIN}/{session_id}/terminate")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["terminated"] is True
        assert data["termination_reason"] == "terminated"
        assert "identity" not in response.text

    async def test_terminate_is_idempotent(self, client, session_id):
        """The first reason sticks."""
        await client.post(f"{ADMIN}/{session_id}/terminate", json={"reason": "resigned"})
        response = await client.post(
            f"{ADMIN}/{session_id}/terminate", json={"reason": "terminated"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["termination_reason"] == "resigned"

    async def test_terminated_session_rejects_steps(self, client, payloads, session_id):
        """Applicant writes are blocked after termination."""
        await client.post(f"{ADMIN}/{session_id}/terminate")
        response = await client.patch(
            f"/api/v1/onboarding/{session_id}/steps/application-page-2",
            json=payloads.page2(),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "SESSION_TERMINATED"

    async def test_unknown_session_is_404(self, client):
        """Unknown ids are 404."""
        response = await client.post(f"{ADMIN}/{uuid.uuid4()}/terminate")
        assert response.status_code == 404


class TestDelete:
    """Tests for DELETE /admin/onboarding/{id}."""

    async def test_delete_cascades(self, client, session_id, session_store, record_store):
        """Session and linked records are removed."""
        response = await client.delete(f"{ADMIN}/{session_id}")

        assert response.status_code == 200
        assert response.json()["data"] == {"session_id": session_id, "deleted_records": 2}
        assert len(session_store) == 0
        assert len(record_store) == 0

    async def test_delete_twice_is_404(self, client, session_id):
        """A deleted session is gone."""
        await client.delete(f"{ADMIN}/{session_id}")
        response = await client.delete(f"{ADMIN}/{session_id}")
        assert response.status_code == 404


class TestCleanupExpired:
    """Tests for POST /admin/onboarding/cleanup-expired."""

    async def test_cleanup_removes_expired(self, client, session_id, clock, session_store):
        """Expired incomplete sessions are removed with their records."""
        clock.advance(TEST_RESUME_TTL + timedelta(minutes=5))

        response = await client.post(f"{ADMIN}/cleanup-expired")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["deleted_sessions"] == 1
        assert data["session_ids"] == [session_id]
        assert data["deleted_records"]["application_form"] == 1
        assert len(session_store) == 0

    async def test_cleanup_keeps_live_sessions(self, client, session_id, session_store):
        """Sessions inside their window are kept."""
        response = await client.post(f"{ADMIN}/cleanup-expired", params={"limit": 10})
        assert response.status_code == 200
        assert response.json()["data"]["scanned"] == 0
        assert len(session_store) == 1

    async def test_limit_is_validated(self, client):
        """Batch size must be at least 1."""
        response = await client.post(f"{ADMIN}/cleanup-expired", params={"limit": 0})
        assert response.status_code == 400
