"""Unit tests for circuit breaker."""

from unittest.mock import Mock

import pytest

from bulk_orders.models.data_models import CircuitState
from bulk_orders.resilience.circuit_breaker import CircuitBreaker, MonotonicClock
from tests.fixtures.sample_data import FakeClock


def _tripped(clock: FakeClock, threshold: int = 3, cooldown: float = 15.0) -> CircuitBreaker:
    cb = CircuitBreaker(failure_threshold=threshold, cooldown_seconds=cooldown, clock=clock)
    for _ in range(threshold):
        cb.record_failure()
    return cb


class TestCircuitBreakerBasics:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker()
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_closed_circuit_allows_requests(self):
        assert CircuitBreaker().can_proceed() is True

    def test_defaults(self):
        cb = CircuitBreaker()
        assert cb.failure_threshold == 5
        assert cb.cooldown_seconds == 60.0

    def test_uses_monotonic_clock_by_default(self):
        assert isinstance(CircuitBreaker().clock, MonotonicClock)

    def test_accepts_custom_clock(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(clock=fake_clock)
        assert cb.clock is fake_clock


class TestCircuitBreakerStateTransitions:

    def test_stays_closed_below_threshold(self, fake_clock):
        cb = CircuitBreaker(failure_threshold=3, clock=fake_clock)
        cb.record_failure()
        cb.record_failure()

        assert cb.state == CircuitState.CLOSED
        assert cb.can_proceed() is True

    def test_opens_after_threshold_failures(self, fake_clock):
        cb = _tripped(fake_clock)
        assert cb.state == CircuitState.OPEN
        assert cb.opened_at == 0.0

    def test_success_resets_consecutive_count(self, fake_clock):
        cb = CircuitBreaker(failure_threshold=3, clock=fake_clock)
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        cb.record_failure()

        assert cb.state == CircuitState.CLOSED

    def test_open_circuit_rejects_until_cooldown(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)

        fake_clock.advance(14.9)
        assert cb.can_proceed() is False
        assert cb.state == CircuitState.OPEN

    def test_rejects_regardless_of_call_volume(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)
        assert not any(cb.can_proceed() for _ in range(1000))

    def test_transitions_to_half_open_after_cooldown(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)

        fake_clock.advance(15.0)

        assert cb.can_proceed() is True
        assert cb.state == CircuitState.HALF_OPEN

    def test_half_open_allows_single_trial(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)
        fake_clock.advance(15.0)

        assert cb.can_proceed() is True
        assert cb.can_proceed() is False
        assert cb.can_proceed() is False

    def test_released_trial_can_be_granted_again(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)
        fake_clock.advance(15.0)
        assert cb.can_proceed() is True

        cb.release_trial()

        assert cb.state == CircuitState.HALF_OPEN
        assert cb.can_proceed() is True
        assert cb.can_proceed() is False

    def test_successful_trial_closes_circuit(self, fake_clock):
        cb = _tripped(fake_clock)
        fake_clock.advance(15.0)
        cb.can_proceed()

        cb.record_success()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.can_proceed() is True

    def test_failed_trial_reopens_and_restarts_cooldown(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)
        fake_clock.advance(15.0)
        cb.can_proceed()

        cb.record_failure()

        assert cb.state == CircuitState.OPEN
        assert cb.opened_at == 15.0
        fake_clock.advance(10.0)
        assert cb.can_proceed() is False
        fake_clock.advance(5.0)
        assert cb.can_proceed() is True


class TestCircuitBreakerReporting:

    def test_status(self, fake_clock):
        cb = _tripped(fake_clock, cooldown=15.0)
        cb.name = "availability"

        status = cb.status()

        assert status["name"] == "availability"
        assert status["state"] == "open"
        assert status["next_retry_time"] == 15.0

    def test_reset(self, fake_clock):
        cb = _tripped(fake_clock)
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.opened_at is None

    def test_logs_state_changes(self, fake_clock):
        logger = Mock()
        cb = CircuitBreaker(name="cart", failure_threshold=1, cooldown_seconds=1.0,
                            clock=fake_clock, logger=logger)

        cb.record_failure()
        fake_clock.advance(1.0)
        cb.can_proceed()
        cb.record_success()

        states = [call.kwargs["state"] for call in logger.circuit_breaker_state.call_args_list]
        assert states == ["open", "half_open", "closed"]
        assert all(call.kwargs["dependency"] == "cart"
                   for call in logger.circuit_breaker_state.call_args_list)


@pytest.mark.parametrize("threshold", [1, 2, 5])
def test_threshold_is_exact(threshold, fake_clock):
    cb = CircuitBreaker(failure_threshold=threshold, clock=fake_clock)
    for _ in range(threshold - 1):
        cb.record_failure()
    assert cb.state == CircuitState.CLOSED
    cb.record_failure()
    assert cb.state == CircuitState.OPEN
