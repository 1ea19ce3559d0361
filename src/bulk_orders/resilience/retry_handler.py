"""Retry executor with exponential backoff, jitter and error classification."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from bulk_orders.errors import TransientError
from bulk_orders.models.config import RetryPolicy
from bulk_orders.models.data_models import RecoveryHint, RetryOutcome


RATE_LIMIT_STATUS_CODES = {429}
TEMPORARY_FAILURE_STATUS_CODES = {502, 503, 504}


def calculate_backoff_delay(
    attempt: int,
    initial_delay_ms: float = 1000.0,
    max_delay_ms: float = 10000.0,
    backoff_multiplier: float = 2.0,
    jitter_ratio: float = 0.1
) -> float:
    """
    Calculate the delay before an attempt.

    Formula for attempt n >= 2:
        min(initial * multiplier ** (n - 2), max) + uniform(0, jitter_ratio * base)

    Args:
        attempt: Attempt about to be made (1-indexed; attempt 1 has no delay)
        initial_delay_ms: Delay before the second attempt
        max_delay_ms: Cap applied before jitter
        backoff_multiplier: Growth factor between attempts
        jitter_ratio: Maximum jitter as a fraction of the capped delay

    Returns:
        Delay in milliseconds
    """
    if attempt < 2:
        return 0.0
    base = min(initial_delay_ms * (backoff_multiplier ** (attempt - 2)), max_delay_ms)
    return base + random.uniform(0, base * jitter_ratio)


def classify_error(error: BaseException) -> str:
    """
    Map an exception to a retry classification marker.

    Returns:
        ECONNRESET, ETIMEDOUT, ENOTFOUND, rate_limit, temporary_failure,
        the marker of a TransientError, or the exception type name.
    """
    if isinstance(error, TransientError):
        return error.marker
    if isinstance(error, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return "ETIMEDOUT"
    if isinstance(error, httpx.ConnectError):
        return "ENOTFOUND"
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        if status_code in RATE_LIMIT_STATUS_CODES:
            return "rate_limit"
        if status_code in TEMPORARY_FAILURE_STATUS_CODES:
            return "temporary_failure"
        return f"http_{status_code}"
    return type(error).__name__


def suggest_recovery(error: BaseException, attempts: int) -> RecoveryHint:
    """Suggest how a caller could recover from a failed dependency call."""
    text = f"{classify_error(error)} {error}".lower()

    if "rate_limit" in text:
        return RecoveryHint("retry_later", "Rate limit reached. Try again in a few minutes.")
    if "stock" in text or "availability" in text:
        return RecoveryHint("check_alternatives", "Product availability issue. Check for alternatives.")
    if "network" in text or "timeout" in text or "etimedout" in text or "econnreset" in text:
        return RecoveryHint("retry_batch", "Network issue. Retry this batch of items.")
    if attempts >= 3:
        return RecoveryHint("manual_review", "Multiple failures. This item needs manual review.")
    return RecoveryHint("contact_support", "Unexpected error. Contact support if issue persists.")


class RetryExecutor:
    """
    Runs a single fallible async operation under a RetryPolicy.

    Retries only errors whose classification or message matches one of the
    policy's retryable patterns. Never raises past its boundary, except for
    task cancellation; callers inspect `RetryOutcome.success`.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger=None
    ):
        """
        Initialize retry executor.

        Args:
            policy: Retry policy (defaults to RetryPolicy())
            sleeper: Async sleep function taking seconds (default: asyncio.sleep)
            logger: Optional structured logger for retry telemetry
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleeper
        self.logger = logger
        self._patterns = [p.lower() for p in self.policy.retryable_error_patterns]

    def is_retryable(self, error: BaseException) -> bool:
        """
        Check if error is retryable.

        Args:
            error: Exception raised by the operation

        Returns:
            True if its classification or message matches a retryable pattern
        """
        text = f"{classify_error(error)} {error}".lower()
        return any(pattern in text for pattern in self._patterns)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        context: Optional[Dict[str, str]] = None
    ) -> RetryOutcome:
        """
        Execute operation with retry logic.

        Args:
            operation: Zero-argument coroutine function to run
            context: Optional labels for logging (sku, operation)

        Returns:
            RetryOutcome with the result or the last error and attempt count
        """
        context = context or {}
        last_error: Optional[BaseException] = None
        delay_ms = 0.0

        for attempt in range(1, self.policy.max_attempts + 1):
            if attempt > 1:
                delay_ms = calculate_backoff_delay(
                    attempt,
                    self.policy.initial_delay_ms,
                    self.policy.max_delay_ms,
                    self.policy.backoff_multiplier
                )
                if self.logger:
                    self.logger.retry_attempt(
                        operation=context.get("operation", "operation"),
                        sku=context.get("sku"),
                        attempt=attempt,
                        delay_ms=round(delay_ms, 1),
                        error=str(last_error)
                    )
                await self._sleep(delay_ms / 1000.0)

            try:
                result = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if not self.is_retryable(e):
                    # Non-retryable error, fail immediately
                    return RetryOutcome(
                        success=False,
                        attempts=attempt,
                        final_delay_ms=delay_ms,
                        error=e,
                        classification=classify_error(e)
                    )
                continue

            return RetryOutcome(
                success=True,
                attempts=attempt,
                final_delay_ms=delay_ms,
                result=result
            )

        return RetryOutcome(
            success=False,
            attempts=self.policy.max_attempts,
            final_delay_ms=delay_ms,
            error=last_error,
            classification=classify_error(last_error) if last_error else None
        )


async def execute_with_retry(
    operation: Callable[[], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None
) -> RetryOutcome:
    """Run `operation` once under `policy` with a throwaway executor."""
    return await RetryExecutor(policy).execute_with_retry(operation)
