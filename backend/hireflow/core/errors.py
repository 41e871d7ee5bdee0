"""API error classes.

Every failure the onboarding core surfaces to a caller is one of these.
Route handlers never build error bodies themselves; the exception handlers
in main.py translate an APIError into the {"error": {...}} envelope.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services/repositories
- The `retryable` flag tells clients whether resending the identical
  request can succeed without a state change elsewhere
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
        retryable: True when the identical request is safe to resend.
    """

    retryable: bool = False

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, shape checks on step records,
    and employment-history policy failures.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class ForbiddenError(APIError):
    """Not allowed to perform the operation (403)."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class GateError(ForbiddenError):
    """Session has not reached, or may no longer edit, a step (403).

    Terminal for the request: retrying cannot help until the session's
    progress changes.

    Args:
        message: Human-readable reason.
        code: STEP_NOT_REACHED (default), STEP_LOCKED, or a subclass code.
    """

    def __init__(self, message: str, code: str = "STEP_NOT_REACHED") -> None:
        APIError.__init__(
            self,
            code=code,
            message=message,
            status_code=403,
        )


class SessionTerminatedError(GateError):
    """Session was terminated; no further progression is permitted (403)."""

    def __init__(self, message: str = "Onboarding session has been terminated") -> None:
        super().__init__(message=message, code="SESSION_TERMINATED")


class ExpiredSessionError(APIError):
    """Resume window elapsed; the session is abandoned (410)."""

    def __init__(self, message: str = "Onboarding session expired") -> None:
        super().__init__(
            code="SESSION_EXPIRED",
            message=message,
            status_code=410,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    WHY NO "EXISTS BUT TERMINATED" VARIANT HERE:
    - Terminated sessions are a gate concern (SessionTerminatedError)
    - From the caller's perspective, a missing id simply doesn't exist
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class DuplicateIdentityError(ConflictError):
    """Another onboarding session already owns this identity (409).

    Raised before any write of the operation that detected it.
    """

    def __init__(self) -> None:
        super().__init__(
            code="DUPLICATE_IDENTITY",
            message="An application with this identity number already exists",
        )


class VersionConflictError(ConflictError):
    """Optimistic concurrency check lost (409).

    Another writer saved the same aggregate first. Safe to retry after
    reloading.

    Args:
        resource: Aggregate name (e.g., "OnboardingSession").
        resource_id: Aggregate id.
        expected_version: Version the caller expected.
    """

    retryable = True

    def __init__(
        self,
        resource: str,
        resource_id: str,
        expected_version: int | None = None,
    ) -> None:
        super().__init__(
            code="VERSION_CONFLICT",
            message=f"{resource} '{resource_id}' was modified concurrently",
            details=[{"expected_version": expected_version}]
            if expected_version is not None
            else None,
        )


class StorageFinalizeError(APIError):
    """Moving uploads to permanent storage failed mid-saga (503).

    Raised after compensation has removed every permanent object this call
    created. The record keeps its provisional (temporary-key) state, so the
    identical request is safe to resend.

    Args:
        failed_keys: Temporary keys whose finalize failed.
    """

    retryable = True

    def __init__(self, failed_keys: list[str] | None = None) -> None:
        super().__init__(
            code="STORAGE_FINALIZE_FAILED",
            message="Uploaded files could not be finalized. Please retry.",
            status_code=503,
            details=[{"key": key} for key in failed_keys] if failed_keys else None,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
