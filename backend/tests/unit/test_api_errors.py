"""Tests for API error classes.

HTTP status codes, error codes, and the retryable flag.
"""

from hireflow.core.errors import (
    APIError,
    ConflictError,
    DuplicateIdentityError,
    ExpiredSessionError,
    ForbiddenError,
    GateError,
    InternalError,
    NotFoundError,
    SessionTerminatedError,
    StorageFinalizeError,
    ValidationError,
    VersionConflictError,
)


class TestAPIError:
    """Tests for base APIError class."""

    def test_api_error_has_required_attributes(self):
        """APIError should have code, message, status_code, details."""
        error = APIError(
            code="TEST_ERROR",
            message="Test message",
            status_code=418,
            details=[{"field": "test"}],
        )
        assert error.code == "TEST_ERROR"
        assert error.message == "Test message"
        assert error.status_code == 418
        assert error.details == [{"field": "test"}]

    def test_api_error_defaults(self):
        """APIError should default to 500, no details, not retryable."""
        error = APIError(code="TEST", message="Test")
        assert error.status_code == 500
        assert error.details is None
        assert error.retryable is False

    def test_api_error_is_exception(self):
        """APIError should be an Exception subclass."""
        error = APIError(code="TEST", message="Test")
        assert isinstance(error, Exception)
        assert str(error) == "Test"


class TestValidationError:
    """Tests for ValidationError (400)."""

    def test_validation_error_code_and_status(self):
        """ValidationError should be VALIDATION_ERROR / 400."""
        error = ValidationError("Validation failed", details=[{"field": "x"}])
        assert error.code == "VALIDATION_ERROR"
        assert error.status_code == 400
        assert error.details == [{"field": "x"}]


class TestGateErrors:
    """Tests for the 403 family."""

    def test_forbidden_error(self):
        """ForbiddenError should be FORBIDDEN / 403."""
        error = ForbiddenError()
        assert error.code == "FORBIDDEN"
        assert error.status_code == 403

    def test_gate_error_defaults_to_not_reached(self):
        """GateError defaults to STEP_NOT_REACHED."""
        error = GateError("Not yet")
        assert error.code == "STEP_NOT_REACHED"
        assert error.status_code == 403
        assert isinstance(error, ForbiddenError)

    def test_gate_error_custom_code(self):
        """GateError accepts STEP_LOCKED."""
        assert GateError("Locked", code="STEP_LOCKED").code == "STEP_LOCKED"

    def test_session_terminated_is_gate_error(self):
        """Terminated sessions are rejected by the gate."""
        error = SessionTerminatedError()
        assert error.code == "SESSION_TERMINATED"
        assert error.status_code == 403
        assert isinstance(error, GateError)
        assert error.retryable is False


class TestSessionErrors:
    """Tests for session state errors."""

    def test_expired_session_is_410(self):
        """Expired sessions are gone."""
        error = ExpiredSessionError()
        assert error.code == "SESSION_EXPIRED"
        assert error.status_code == 410

    def test_not_found_message_includes_id(self):
        """NotFoundError names the resource and id."""
        error = NotFoundError("OnboardingSession", "abc")
        assert error.status_code == 404
        assert error.message == "OnboardingSession with id 'abc' not found"

    def test_not_found_without_id(self):
        """NotFoundError without id."""
        assert NotFoundError("OnboardingSession").message == "OnboardingSession not found"


class TestConflictErrors:
    """Tests for the 409 family."""

    def test_conflict_error_custom_code(self):
        """ConflictError carries its own code."""
        error = ConflictError(code="SOMETHING", message="Conflict")
        assert error.status_code == 409
        assert error.code == "SOMETHING"

    def test_duplicate_identity(self):
        """Duplicate identity is terminal."""
        error = DuplicateIdentityError()
        assert error.code == "DUPLICATE_IDENTITY"
        assert error.status_code == 409
        assert error.retryable is False

    def test_version_conflict_is_retryable(self):
        """Losing a concurrency race can be retried."""
        error = VersionConflictError("StepRecord", "r1", expected_version=3)
        assert error.code == "VERSION_CONFLICT"
        assert error.retryable is True
        assert error.details == [{"expected_version": 3}]

    def test_version_conflict_without_version(self):
        """No details without an expected version."""
        assert VersionConflictError("StepRecord", "r1").details is None


class TestStorageFinalizeError:
    """Tests for StorageFinalizeError (503)."""

    def test_lists_failed_keys(self):
        """Each failed temporary key becomes a detail."""
        error = StorageFinalizeError(["temp-files/a.pdf", "temp-files/b.pdf"])
        assert error.status_code == 503
        assert error.code == "STORAGE_FINALIZE_FAILED"
        assert error.retryable is True
        assert error.details == [{"key": "temp-files/a.pdf"}, {"key": "temp-files/b.pdf"}]

    def test_without_keys(self):
        """No keys means no details."""
        assert StorageFinalizeError().details is None


class TestInternalError:
    """Tests for InternalError (500)."""

    def test_internal_error_defaults(self):
        """InternalError should hide details behind a generic message."""
        error = InternalError()
        assert error.code == "INTERNAL_ERROR"
        assert error.status_code == 500
        assert error.message == "An unexpected error occurred"
