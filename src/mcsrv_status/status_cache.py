"""
TTL cache of server status responses.

Entries are keyed ``edition:hostname:port``. A port that is not given falls
back to the edition's default port (25565 Java, 19132 Bedrock) for both the
cache and the request deduplicator.
"""

import time
from typing import Callable, Optional, Union

from mcsrv_status.audit_logger import AuditLogger
from mcsrv_status.config import CacheConfig
from mcsrv_status.enums import Edition, LogLevel
from mcsrv_status.host_validator import resolve_port
from mcsrv_status.models import CacheEntry, ServerStatus
from mcsrv_status.store import MemoryStore, Store


def make_key(hostname: str, port: Optional[int], edition: Union[Edition, str]) -> str:
    """Build the cache key for a server."""
    edition = Edition(edition)
    return f"{edition.value}:{hostname}:{resolve_port(port, edition)}"


class StatusCache:
    """
    Status cache with lazy expiry on read and a sweep on every write.

    An entry is served while ``now - timestamp <= duration_seconds``.
    When the cache is disabled every ``get`` misses and ``put`` does nothing.
    """

    def __init__(
        self,
        config: CacheConfig,
        store: Optional[Store[CacheEntry]] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config
        self._store = store if store is not None else MemoryStore()
        self._clock = clock
        self._logger = logger

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self._config.duration_seconds

    def get(
        self,
        hostname: str,
        port: Optional[int] = None,
        edition: Union[Edition, str] = Edition.JAVA,
    ) -> Optional[ServerStatus]:
        """
        Look up a cached status.

        Returns:
            The cached ServerStatus, or None on a miss
        """
        if not self._config.enabled:
            return None

        key = make_key(hostname, port, edition)
        entry = self._store.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self._clock()):
            self._store.delete(key)
            return None

        if self._logger:
            self._logger.log(LogLevel.DEBUG, "StatusCache", "Cache hit", {"key": key})
        return entry.status

    def put(
        self,
        hostname: str,
        port: Optional[int],
        edition: Union[Edition, str],
        status: ServerStatus,
    ) -> None:
        """Store a status and sweep expired entries."""
        if not self._config.enabled:
            return

        now = self._clock()
        self._store.set(
            make_key(hostname, port, edition),
            CacheEntry(status=status, timestamp=now),
        )
        self._store.sweep(lambda _key, entry: self._is_expired(entry, now))

    def cleanup(self) -> int:
        """Remove expired entries; returns how many were removed."""
        now = self._clock()
        return self._store.sweep(lambda _key, entry: self._is_expired(entry, now))

    def clear(self) -> None:
        self._store.clear()

    def get_stats(self) -> dict:
        return {
            "enabled": self._config.enabled,
            "size": len(self._store),
            "duration_seconds": self._config.duration_seconds,
            "keys": [key for key, _entry in self._store.items()],
        }
