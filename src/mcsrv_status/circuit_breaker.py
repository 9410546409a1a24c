"""
Circuit breaker guarding an async call site.

closed: calls go through; failures are counted and reaching the threshold
opens the circuit.
open: calls fail fast with CircuitOpenError until ``timeout_seconds`` have
passed since the last failure; the next call then runs half-open.
half-open: a success closes the circuit and resets the count, a failure
opens it again.
"""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from mcsrv_status.audit_logger import AuditLogger
from mcsrv_status.enums import CircuitState, ErrorCode, LogLevel
from mcsrv_status.exceptions import CircuitOpenError

T = TypeVar("T")


@dataclass
class CircuitBreakerState:
    """Snapshot of a breaker's state."""

    state: CircuitState
    failure_count: int
    last_failure_time: float


class CircuitBreaker:
    def __init__(
        self,
        threshold: int = 5,
        timeout_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._threshold = threshold
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._logger = logger
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, "CircuitBreaker", message, data)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: While the circuit is open
        """
        if self._state is CircuitState.OPEN:
            elapsed = self._clock() - self._last_failure_time
            if elapsed >= self._timeout_seconds:
                self._log(LogLevel.INFO, "Moving to half-open state")
                self._state = CircuitState.HALF_OPEN
            else:
                raise CircuitOpenError(
                    code=ErrorCode.CIRCUIT_OPEN.value,
                    message="Circuit breaker is open. Service temporarily unavailable.",
                    details={"retry_after": self._timeout_seconds - elapsed},
                )

        try:
            result = await operation()
        except Exception:
            self._record_failure()
            raise

        if self._state is CircuitState.HALF_OPEN:
            self._log(LogLevel.INFO, "Closing circuit after successful call")
            self._state = CircuitState.CLOSED
            self._failure_count = 0

        return result

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if (
            self._state is CircuitState.HALF_OPEN
            or self._failure_count >= self._threshold
        ):
            if self._state is not CircuitState.OPEN:
                self._log(LogLevel.ERROR, f"Opening circuit after {self._failure_count} failures", {
                    "failure_count": self._failure_count,
                })
            self._state = CircuitState.OPEN

    def get_state(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            state=self._state,
            failure_count=self._failure_count,
            last_failure_time=self._last_failure_time,
        )

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0
