"""
Retry Manager for the server status system.

Retries transient failures of the upstream status lookup with exponential
backoff. An error is transient when its message contains one of the
configured substrings (case-insensitive) or names a 5xx HTTP status.
Backoff sleeps use asyncio.sleep so a shutdown can cancel them.
"""

from __future__ import annotations

import asyncio
import re
from typing import Awaitable, Callable, Optional, TypeVar

from .audit_logger import AuditLogger
from .config import RetryConfig
from .enums import ErrorCode, LogLevel
from .exceptions import UpstreamTimeoutError

T = TypeVar("T")

_SERVER_ERROR_PATTERN = re.compile(r"\b5\d\d\b")


class RetryManager:
    """
    Manages retry logic with exponential backoff.

    Non-retryable errors are raised on first occurrence. When attempts run
    out the last error is raised unchanged.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the retry manager.

        Args:
            config: Retry configuration (attempts, delays, retryable substrings)
            logger: Optional audit logger
            sleep: Awaitable sleep used between attempts
        """
        self._config = config or RetryConfig()
        self._logger = logger
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate wait time after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-indexed)

        Returns:
            ``min(initial * multiplier^(attempt-1), max)`` in seconds
        """
        delay = self._config.initial_delay_seconds * (
            self._config.backoff_multiplier ** (attempt - 1)
        )
        return min(delay, self._config.max_delay_seconds)

    def is_retryable_error(self, error: BaseException) -> bool:
        """
        Check if an error indicates a transient failure.

        Args:
            error: The raised exception

        Returns:
            True if the error should be retried
        """
        message = str(error).lower()
        if any(pattern.lower() in message for pattern in self._config.retryable_errors):
            return True

        if self._config.retry_on_server_errors:
            status_code = getattr(error, "status_code", None)
            if isinstance(status_code, int) and 500 <= status_code <= 599:
                return True
            return bool(_SERVER_ERROR_PATTERN.search(message))

        return False

    async def retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an operation with retry logic and exponential backoff.

        Args:
            operation: The async operation to execute

        Returns:
            The operation's result

        Raises:
            The last error once it is non-retryable or attempts are exhausted
        """
        max_attempts = max(1, self._config.max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                result = await operation()
            except Exception as e:
                if not self.is_retryable_error(e) or attempt >= max_attempts:
                    self._log(LogLevel.WARN, f"Failed after {attempt} attempts", {
                        "attempts": attempt,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    })
                    raise

                delay = self._calculate_delay(attempt)
                self._log(LogLevel.INFO, f"Attempt {attempt}/{max_attempts} failed, retrying", {
                    "delay_seconds": delay,
                    "error": str(e),
                })
                await self._sleep(delay)
                continue

            if attempt > 1:
                self._log(LogLevel.INFO, f"Succeeded on attempt {attempt}")
            return result

        raise AssertionError("unreachable")

    async def retry_with_timeout(
        self,
        operation: Callable[[], Awaitable[T]],
        timeout_seconds: float,
    ) -> T:
        """
        Retry an operation under one overall deadline.

        Raises:
            UpstreamTimeoutError: If the deadline passes before a result
        """
        try:
            return await asyncio.wait_for(self.retry(operation), timeout_seconds)
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError(
                code=ErrorCode.TIMEOUT.value,
                message="Operation timed out",
                details={"timeout_seconds": timeout_seconds},
            )

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, "RetryManager", message, data)
