"""
Request deduplication for upstream status lookups.

Concurrent callers asking for the same key share one asyncio Task instead of
each starting an upstream call. The entry is removed as soon as the task
settles, so the next call after that starts fresh.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from mcsrv_status.audit_logger import AuditLogger
from mcsrv_status.enums import Edition, LogLevel
from mcsrv_status.host_validator import resolve_port
from mcsrv_status.models import PendingRequest
from mcsrv_status.store import MemoryStore, Store

T = TypeVar("T")

REQUEST_TIMEOUT_SECONDS = 30.0


def get_server_request_key(
    hostname: str,
    port: Optional[int] = None,
    edition: Union[Edition, str] = Edition.JAVA,
) -> str:
    """Build the dedup key ``server:<edition>:<hostname>:<port>``."""
    edition = Edition(edition)
    return f"server:{edition.value}:{hostname}:{resolve_port(port, edition)}"


class RequestDeduplicator:
    """
    Collapses concurrent calls sharing a key into one in-flight task.

    A pending entry older than ``timeout_seconds`` is considered stale and
    is replaced by a new call.
    """

    def __init__(
        self,
        store: Optional[Store[PendingRequest]] = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._store = store if store is not None else MemoryStore()
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._logger = logger

    def _log(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.DEBUG, "RequestDeduplicator", message, data)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory`` once per key for all concurrent callers.

        Every caller sharing the call receives the same value or the same
        exception.
        """
        now = self._clock()
        pending = self._store.get(key)

        if pending is not None:
            if now - pending.timestamp < self._timeout_seconds:
                self._log("Joining in-flight request", {"key": key})
                return await asyncio.shield(pending.task)
            self._log("Discarding stale request", {"key": key})
            self._store.delete(key)

        task = asyncio.ensure_future(factory())
        entry = PendingRequest(task=task, timestamp=now)
        self._store.set(key, entry)
        task.add_done_callback(lambda _t: self._settle(key, entry))

        return await asyncio.shield(task)

    def _settle(self, key: str, entry: PendingRequest) -> None:
        # A stale entry may already have been replaced by a newer call.
        if self._store.get(key) is entry:
            self._store.delete(key)

    def cleanup(self) -> int:
        """Drop pending entries older than the timeout."""
        now = self._clock()
        return self._store.sweep(
            lambda _key, pending: now - pending.timestamp >= self._timeout_seconds
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "pending_requests": len(self._store),
            "keys": [key for key, _pending in self._store.items()],
        }

    def clear(self) -> None:
        self._store.clear()
