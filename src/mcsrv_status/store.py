"""
Key-value store abstraction for process-wide limiter, cache and dedup state.

Components take a Store instead of owning module-level maps, so a single
instance can run on the in-process MemoryStore while a multi-instance
deployment can plug in a shared backend.
"""

import threading
from typing import Callable, Generic, Optional, Protocol, TypeVar, runtime_checkable

V = TypeVar("V")


@runtime_checkable
class Store(Protocol[V]):
    """Minimal interface the pipeline components need from a backing store."""

    def get(self, key: str) -> Optional[V]:
        ...

    def set(self, key: str, value: V) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...

    def items(self) -> list[tuple[str, V]]:
        ...

    def sweep(self, predicate: Callable[[str, V], bool]) -> int:
        ...

    def clear(self) -> None:
        ...

    def __len__(self) -> int:
        ...


class MemoryStore(Generic[V]):
    """
    Thread-safe in-process store.

    ``items`` returns a snapshot, so callers may delete while iterating.
    ``sweep`` deletes every entry matching the predicate and returns the
    number removed.
    """

    def __init__(self) -> None:
        self._data: dict[str, V] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def items(self) -> list[tuple[str, V]]:
        with self._lock:
            return list(self._data.items())

    def sweep(self, predicate: Callable[[str, V], bool]) -> int:
        doomed = [key for key, value in self.items() if predicate(key, value)]
        removed = 0
        with self._lock:
            for key in doomed:
                # Re-check: the entry may have been replaced since the snapshot.
                value = self._data.get(key)
                if value is not None and predicate(key, value):
                    del self._data[key]
                    removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data
