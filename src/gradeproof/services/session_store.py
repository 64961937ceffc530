"""Keyed in-process stores backing access sessions and rate-limit records."""

from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from typing import Generic, Protocol, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class SessionStore(Protocol[K, V]):
    """Minimal keyed store used by the token service and the rate limiter.

    Implementations must make each call atomic. Callers never hold references
    across calls, so a shared or remote backend can be swapped in without
    touching call sites.
    """

    def get(self, key: K) -> V | None: ...

    def set(self, key: K, value: V) -> None: ...

    def delete(self, key: K) -> bool: ...

    def sweep(self, is_stale: Callable[[V], bool]) -> int: ...

    def update(self, key: K, mutate: Callable[[V | None], V | None]) -> V | None: ...

    def __len__(self) -> int: ...


class InMemoryStore(Generic[K, V]):
    """Dictionary-backed store guarded by a single lock."""

    def __init__(self) -> None:
        self._data: dict[K, V] = {}
        self._lock = Lock()

    def get(self, key: K) -> V | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: K) -> bool:
        """Remove `key`; return True if it was present."""
        with self._lock:
            return self._data.pop(key, None) is not None

    def sweep(self, is_stale: Callable[[V], bool]) -> int:
        """Drop every entry for which `is_stale` returns True.

        Returns:
            The number of entries removed.
        """
        with self._lock:
            stale = [key for key, value in self._data.items() if is_stale(value)]
            for key in stale:
                del self._data[key]
            return len(stale)

    def update(self, key: K, mutate: Callable[[V | None], V | None]) -> V | None:
        """Apply `mutate` to the current value inside one critical section.

        `mutate` receives the current value (or None) and returns the value to
        store; returning None deletes the entry.
        """
        with self._lock:
            new_value = mutate(self._data.get(key))
            if new_value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = new_value
            return new_value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
