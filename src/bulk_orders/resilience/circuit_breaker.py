"""Circuit breaker implementation with explicit state management."""

import time
from typing import Dict, Optional, Protocol

from bulk_orders.models.data_models import CircuitState


class Clock(Protocol):
    """Clock interface for testable time management."""

    def now(self) -> float:
        """Return current time in seconds."""
        ...


class MonotonicClock:
    """Default clock implementation using time.monotonic."""

    def now(self) -> float:
        """Return current monotonic time in seconds."""
        return time.monotonic()


class CircuitBreaker:
    """
    Circuit breaker with CLOSED/OPEN/HALF_OPEN states for one dependency.

    Prevents calls to a failing dependency with configurable thresholds:
    - Opens after `failure_threshold` consecutive failures
    - Stays open for `cooldown_seconds`
    - Transitions to half-open and grants a single trial call
    - Closes on a successful trial or opens again on failure

    All mutation happens on the event loop thread without awaiting, so
    concurrent tasks of one run observe a consistent state.
    """

    def __init__(
        self,
        name: str = "dependency",
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        clock: Optional[Clock] = None,
        logger=None
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Dependency guarded by this breaker (used in logs)
            failure_threshold: Number of failures before opening circuit
            cooldown_seconds: Time to wait before attempting half-open trial
            clock: Clock interface for time management (defaults to MonotonicClock)
            logger: Optional structured logger for state transitions
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock or MonotonicClock()
        self.logger = logger
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def opened_at(self) -> Optional[float]:
        return self._opened_at

    def can_proceed(self) -> bool:
        """
        Check if a call to the dependency may be made now.

        Returns:
            True while CLOSED, False while OPEN within the cooldown, and
            True exactly once per HALF_OPEN period for the trial call.
        """
        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            elapsed = self.clock.now() - (self._opened_at or 0.0)
            if elapsed < self.cooldown_seconds:
                return False
            self._transition(CircuitState.HALF_OPEN)

        # HALF_OPEN: only one trial at a time
        if self._trial_in_flight:
            return False
        self._trial_in_flight = True
        return True

    def record_success(self) -> None:
        """Record a successful call."""
        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED)
        self._failure_count = 0
        self._trial_in_flight = False

    def record_failure(self) -> None:
        """Record a failed call."""
        self._trial_in_flight = False

        if self._state == CircuitState.HALF_OPEN:
            # Failed trial - reopen and restart the cooldown
            self._open()
            return

        if self._state == CircuitState.CLOSED:
            self._failure_count += 1
            if self._failure_count >= self.failure_threshold:
                self._open()

    def release_trial(self) -> None:
        """Give back a half-open trial whose call ended without a verdict."""
        self._trial_in_flight = False

    def status(self) -> Dict[str, object]:
        """Snapshot of the breaker for reporting."""
        next_retry = None
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            next_retry = self._opened_at + self.cooldown_seconds
        return {
            "name": self.name,
            "state": self._state.value,
            "failures": self._failure_count,
            "next_retry_time": next_retry,
        }

    def reset(self) -> None:
        """Reset circuit breaker to its initial closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._trial_in_flight = False

    def _open(self) -> None:
        self._opened_at = self.clock.now()
        self._failure_count = max(self._failure_count, self.failure_threshold)
        self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._opened_at = None
        changed = new_state != self._state
        self._state = new_state
        if changed and self.logger:
            self.logger.circuit_breaker_state(dependency=self.name, state=new_state.value)
