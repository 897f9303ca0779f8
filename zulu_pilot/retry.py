"""
Caller-side retry helpers for Zulu Pilot.

The adapter never retries on its own. Hosts that want to retry transient
failures (ProviderConnectionError, RateLimitError) wrap their calls with
``with_retry`` and a ``RetryPolicy``:

    result = await with_retry(
        lambda: adapter.generate(prompt, context),
        policy=RETRY_TRANSIENT,
        operation_name="generate",
    )
    if result.success:
        text = result.result

ValidationError, ModelNotFoundError, InvalidApiKeyError and resolution
errors are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from .errors import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    get_retry_delay,
    is_retryable,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry ceiling and delay bounds for transient provider failures.

    Example:
        policy = RetryPolicy(max_attempts=4, base_delay_ms=500)
    """

    max_attempts: int = 1  # 1 = single attempt, no retry
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """
        Determine if another attempt should be made.

        Args:
            attempt: Attempts made so far (1-indexed)
            error: Error raised by the last attempt
        """
        if attempt >= self.max_attempts:
            return False
        return is_retryable(error)

    def get_delay_ms(self, attempt: int, error: BaseException) -> int:
        """Delay before the next attempt; ``attempt`` is 1-indexed."""
        delay = get_retry_delay(error, attempt - 1, self.base_delay_ms, self.max_delay_ms)
        return delay or 0


NO_RETRY = RetryPolicy(max_attempts=1)

RETRY_TRANSIENT = RetryPolicy(max_attempts=4)


# =============================================================================
# Retry Executor
# =============================================================================


@dataclass
class RetryResult:
    """Result of a retry-wrapped operation."""

    success: bool
    result: Any = None
    attempts: int = 0
    total_delay_ms: int = 0
    errors: list[BaseException] = field(default_factory=list)

    @property
    def final_error(self) -> BaseException | None:
        """Get the last error encountered."""
        return self.errors[-1] if self.errors else None

    def unwrap(self) -> Any:
        """Return the result or raise the last error."""
        if self.success:
            return self.result
        if self.final_error is not None:
            raise self.final_error
        raise RuntimeError("Retry failed without error")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str = "operation",
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryResult:
    """
    Execute an async operation, retrying transient provider failures.

    Args:
        operation: Async callable to execute
        policy: Retry policy to apply
        operation_name: Name for logging
        sleep: Sleep function (seconds), injectable for tests

    Returns:
        RetryResult with success status and result/errors
    """
    errors: list[BaseException] = []
    total_delay_ms = 0
    attempt = 0

    while True:
        attempt += 1

        try:
            result = await operation()
            return RetryResult(
                success=True,
                result=result,
                attempts=attempt,
                total_delay_ms=total_delay_ms,
                errors=errors,
            )

        except Exception as e:
            errors.append(e)

            if policy.should_retry(attempt, e):
                delay_ms = policy.get_delay_ms(attempt, e)
                total_delay_ms += delay_ms
                logger.warning(
                    f"{operation_name}: Attempt {attempt}/{policy.max_attempts} "
                    f"failed with {type(e).__name__}: {e}, "
                    f"retrying in {delay_ms}ms"
                )
                await sleep(delay_ms / 1000)
            else:
                logger.error(f"{operation_name}: Failed after {attempt} attempts, last error: {e}")
                return RetryResult(
                    success=False,
                    result=None,
                    attempts=attempt,
                    total_delay_ms=total_delay_ms,
                    errors=errors,
                )


__all__ = [
    "NO_RETRY",
    "RETRY_TRANSIENT",
    "RetryPolicy",
    "RetryResult",
    "with_retry",
]
