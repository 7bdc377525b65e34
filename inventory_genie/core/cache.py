"""
Single-Flight Cache
===================

Thread-safe memoization with one computation per key.

Concurrent callers asking for the same missing key block on a per-key lock
while exactly one of them computes the value; the others then read the
stored result. The table lock is only held to look up or create the per-key
lock, never while a value is being computed, so computations for different
keys run in parallel.

Failures can optionally be memoized too: the stored exception is re-raised
to every later caller until the cache is cleared.

Example
-------
>>> cache = SingleFlightCache(cache_failures=True)
>>> cache.get_or_create("ec2-us-east-1", lambda: make_client("ec2"))
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlightCache(Generic[T]):
    """
    Memoize values per key, computing each at most once.

    Parameters
    ----------
    cache_failures : bool, default=False
        If True, an exception raised by the factory is stored and re-raised
        on every later lookup of the same key.
    name : str, optional
        Label used in debug logs.
    """

    def __init__(self, cache_failures: bool = False, name: str = "cache") -> None:
        self.cache_failures = cache_failures
        self.name = name
        self._values: Dict[Hashable, T] = {}
        self._failures: Dict[Hashable, BaseException] = {}
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self._lock = threading.Lock()

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _lookup(self, key: Hashable) -> Tuple[Optional[T], bool]:
        with self._lock:
            if key in self._values:
                return self._values[key], True
            failure = self._failures.get(key)
        if failure is not None:
            raise failure
        return None, False

    def get_or_create(self, key: Hashable, factory: Callable[[], T]) -> T:
        """
        Return the cached value for ``key``, computing it on a miss.

        Parameters
        ----------
        key : Hashable
            Cache key.
        factory : callable
            Zero-argument callable producing the value.

        Returns
        -------
        T
            The cached (or freshly computed) value.
        """
        value, found = self._lookup(key)
        if found:
            return value  # type: ignore[return-value]

        with self._lock_for(key):
            # Another caller may have finished while we waited
            value, found = self._lookup(key)
            if found:
                return value  # type: ignore[return-value]

            logger.debug(f"{self.name}: computing {key}")
            try:
                value = factory()
            except Exception as e:
                if self.cache_failures:
                    with self._lock:
                        self._failures[key] = e
                raise

            with self._lock:
                self._values[key] = value
            return value

    def get(self, key: Hashable) -> Optional[T]:
        """Return the cached value for ``key`` or None, never computing."""
        with self._lock:
            return self._values.get(key)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def clear(self) -> None:
        """Drop every stored value and failure."""
        with self._lock:
            self._values.clear()
            self._failures.clear()
            self._key_locks.clear()
