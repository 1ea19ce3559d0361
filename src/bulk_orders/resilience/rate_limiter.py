"""Call budget for one dependency using a token bucket."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional


class RateLimiter:
    """Token bucket rate limiter shared by all calls to one dependency.

    Holds up to `max_tokens` tokens, refilled continuously at `refill_rate`
    tokens per second. When the bucket is empty, callers sleep `retry_sleep`
    and try again, so concurrent tasks of a batch share the same budget.
    """

    def __init__(
        self,
        refill_rate: float,
        max_tokens: Optional[int] = None,
        retry_sleep: float = 0.05,
        now: Callable[[], float] = time.monotonic,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize rate limiter with token bucket parameters.

        Args:
            refill_rate: Tokens added per second
            max_tokens: Bucket capacity (default: refill_rate rounded up, at least 1)
            retry_sleep: Sleep duration when tokens unavailable (default: 0.05s)
            now: Clock function for time operations (default: time.monotonic)
            sleeper: Async sleep function (default: asyncio.sleep)
        """
        self.refill_rate = refill_rate
        self.max_tokens = max_tokens if max_tokens is not None else max(1, int(refill_rate + 0.999))
        self.retry_sleep = retry_sleep
        self._now = now
        self._sleep = sleeper
        self._tokens = float(self.max_tokens)
        self._last_refill = now()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        while True:
            async with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return

            # No tokens available, sleep and retry
            await self._sleep(self.retry_sleep)

    def tokens_available(self) -> int:
        """Number of whole tokens currently available."""
        self._refill()
        return int(self._tokens)

    def _refill(self) -> None:
        current_time = self._now()
        elapsed = current_time - self._last_refill
        self._tokens = min(float(self.max_tokens), self._tokens + elapsed * self.refill_rate)
        self._last_refill = current_time
