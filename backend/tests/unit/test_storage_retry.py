"""Tests for the storage retry helper."""

import pytest

from hireflow.storage.errors import StorageAuthError, TransientStorageError
from hireflow.storage.retry import RetryPolicy, with_retries

NO_WAIT = RetryPolicy(max_retries=3, base_delay_ms=0, max_delay_ms=0)


class Flaky:
    """Fails with the given errors, then returns "ok"."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


async def test_returns_first_success():
    func = Flaky()
    assert await with_retries(func, NO_WAIT) == "ok"
    assert func.attempts == 1


async def test_retries_transient_errors():
    func = Flaky(TransientStorageError("slow"), TransientStorageError("slow"))
    assert await with_retries(func, NO_WAIT) == "ok"
    assert func.attempts == 3


async def test_raises_last_error_when_exhausted():
    func = Flaky(*(TransientStorageError(f"try {i}") for i in range(4)))
    with pytest.raises(TransientStorageError, match="try 3"):
        await with_retries(func, NO_WAIT)
    assert func.attempts == 4


async def test_non_retryable_error_propagates_immediately():
    func = Flaky(StorageAuthError("denied"))
    with pytest.raises(StorageAuthError):
        await with_retries(func, NO_WAIT)
    assert func.attempts == 1


async def test_zero_retries_means_single_attempt():
    func = Flaky(TransientStorageError("slow"))
    with pytest.raises(TransientStorageError):
        await with_retries(func, RetryPolicy(max_retries=0))
    assert func.attempts == 1
