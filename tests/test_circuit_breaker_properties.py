"""
Property-based tests for the circuit breaker.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from mcsrv_status.circuit_breaker import CircuitBreaker
from mcsrv_status.enums import CircuitState
from mcsrv_status.exceptions import CircuitOpenError


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def failing():
    raise ConnectionError("upstream down")


async def succeeding():
    return "ok"


def run_failures(breaker: CircuitBreaker, count: int) -> None:
    for _ in range(count):
        with pytest.raises(ConnectionError):
            asyncio.run(breaker.execute(failing))


class TestCircuitOpeningProperty:
    """
    Property-based tests for opening the circuit.
    """

    @given(threshold=st.integers(min_value=1, max_value=10))
    @settings(max_examples=50, deadline=None)
    def test_opens_after_threshold_failures(self, threshold: int) -> None:
        """
        *For any* threshold N, the circuit SHALL stay closed for N-1
        failures and open on the Nth.
        """
        breaker = CircuitBreaker(threshold=threshold, clock=FakeClock())

        run_failures(breaker, threshold - 1)
        assert breaker.get_state().state == CircuitState.CLOSED

        run_failures(breaker, 1)
        state = breaker.get_state()
        assert state.state == CircuitState.OPEN
        assert state.failure_count == threshold

    @given(
        threshold=st.integers(min_value=1, max_value=5),
        elapsed=st.floats(min_value=0.0, max_value=59.0),
    )
    @settings(max_examples=50, deadline=None)
    def test_open_circuit_fails_fast(self, threshold: int, elapsed: float) -> None:
        """
        *For any* open circuit before the timeout, calls SHALL be rejected
        with CircuitOpenError without running the operation.
        """
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=threshold, timeout_seconds=60.0, clock=clock)
        run_failures(breaker, threshold)
        clock.advance(elapsed)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            return "ok"

        with pytest.raises(CircuitOpenError) as exc_info:
            asyncio.run(breaker.execute(operation))

        assert calls == 0
        assert exc_info.value.http_status == 503
        assert exc_info.value.message == "Circuit breaker is open. Service temporarily unavailable."


class TestHalfOpenRecovery:
    """Tests for the half-open state."""

    def test_success_after_timeout_closes_circuit(self) -> None:
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=2, timeout_seconds=60.0, clock=clock)
        run_failures(breaker, 2)

        clock.advance(60)
        assert asyncio.run(breaker.execute(succeeding)) == "ok"

        state = breaker.get_state()
        assert state.state == CircuitState.CLOSED
        assert state.failure_count == 0

    def test_failure_while_half_open_reopens(self) -> None:
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=3, timeout_seconds=60.0, clock=clock)
        run_failures(breaker, 3)

        clock.advance(60)
        run_failures(breaker, 1)

        assert breaker.get_state().state == CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            asyncio.run(breaker.execute(succeeding))

    def test_success_while_closed_keeps_failure_count(self) -> None:
        breaker = CircuitBreaker(threshold=3, clock=FakeClock())
        run_failures(breaker, 1)

        asyncio.run(breaker.execute(succeeding))

        assert breaker.get_state().failure_count == 1

    def test_reset(self) -> None:
        breaker = CircuitBreaker(threshold=1, clock=FakeClock())
        run_failures(breaker, 1)

        breaker.reset()

        state = breaker.get_state()
        assert state.state == CircuitState.CLOSED
        assert state.failure_count == 0
        assert asyncio.run(breaker.execute(succeeding)) == "ok"
