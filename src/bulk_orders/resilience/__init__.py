"""Resilience patterns guarding calls to external commerce services."""

from .circuit_breaker import CircuitBreaker, MonotonicClock
from .rate_limiter import RateLimiter
from .retry_handler import RetryExecutor, classify_error, execute_with_retry, suggest_recovery

__all__ = [
    "CircuitBreaker",
    "MonotonicClock",
    "RateLimiter",
    "RetryExecutor",
    "classify_error",
    "execute_with_retry",
    "suggest_recovery",
]
