"""Retry strategy for object storage calls.

Exponential backoff with jitter for transient S3 errors (throttling,
5xx, dropped connections).

WHY JITTER:
- Several finalize calls from one request fan out concurrently; without
  jitter they would retry in lockstep
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from hireflow.core.config import Settings
from hireflow.storage.errors import TransientStorageError

__all__ = ["RetryPolicy", "with_retries"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for storage calls.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying).
        base_delay_ms: Delay before the first retry.
        max_delay_ms: Cap on any single delay.
    """

    max_retries: int = 3
    base_delay_ms: int = 200
    max_delay_ms: int = 5000

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryPolicy":
        """Build the policy from application settings."""
        return cls(
            max_retries=config.storage_max_retries,
            base_delay_ms=config.storage_retry_base_delay_ms,
            max_delay_ms=config.storage_retry_max_delay_ms,
        )


async def with_retries(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retryable_errors: tuple[type[Exception], ...] = (TransientStorageError,),
) -> T:
    """Execute function with exponential backoff retry.

    Args:
        func: Async function to execute (no arguments).
        policy: Retry settings.
        retryable_errors: Tuple of error types that should trigger retry.

    Returns:
        Result from successful function execution.

    Raises:
        TransientStorageError: If all retries exhausted.
        RuntimeError: If retry loop exits unexpectedly without error or result.
    """
    last_error: Exception | None = None

    for attempt in range(policy.max_retries + 1):
        try:
            return await func()
        except retryable_errors as e:
            last_error = e

            if attempt == policy.max_retries:
                break  # No more retries

            base_delay = policy.base_delay_ms * (2**attempt)
            jitter = random.uniform(0, base_delay * 0.1)
            delay = min(base_delay + jitter, policy.max_delay_ms) / 1000

            logger.warning(
                "Storage error (attempt %d/%d): %s. Retrying in %.2fs",
                attempt + 1,
                policy.max_retries + 1,
                e,
                delay,
            )

            await asyncio.sleep(delay)

    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry loop exited without error or result")
