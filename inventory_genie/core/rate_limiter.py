"""
Rate Limiter
============

Token-bucket gate scoped per (service, action).

Every list call waits on the bucket of its service and action before it is
issued. Buckets are created on first use and shared by every region branch
of an execution context, so a wide fan-out cannot exceed the configured
request rate for one API.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)


@dataclass
class TokenBucket:
    """
    A single token bucket.

    Attributes
    ----------
    rate : float
        Tokens added per second.
    capacity : int
        Maximum stored tokens (burst size).
    """

    rate: float
    capacity: int
    clock: Callable[[], float] = time.monotonic
    tokens: float = field(init=False)
    updated_at: float = field(init=False)

    def __post_init__(self) -> None:
        self.tokens = float(self.capacity)
        self.updated_at = self.clock()

    def reserve(self) -> float:
        """
        Take one token, returning how long the caller must wait for it.

        The token is claimed immediately; the bucket may go negative, which
        queues later callers behind this one.
        """
        now = self.clock()
        self.tokens = min(
            float(self.capacity), self.tokens + (now - self.updated_at) * self.rate
        )
        self.updated_at = now
        self.tokens -= 1
        if self.tokens >= 0:
            return 0.0
        return -self.tokens / self.rate


class RateLimiter:
    """
    Per-scope token buckets.

    Parameters
    ----------
    rate_per_second : float
        Refill rate of every bucket.
    burst : int
        Capacity of every bucket.
    sleep : callable, default=time.sleep
        Injected for tests.
    clock : callable, default=time.monotonic
        Injected for tests.
    """

    def __init__(
        self,
        rate_per_second: float,
        burst: int,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate_per_second = rate_per_second
        self.burst = burst
        self._sleep = sleep
        self._clock = clock
        self._buckets: Dict[Tuple[str, str], TokenBucket] = {}
        self._lock = threading.Lock()

    def wait(self, service: str, action: str) -> float:
        """
        Block until a request for ``service``/``action`` may be issued.

        Returns
        -------
        float
            Seconds waited.
        """
        scope = (service, action)
        with self._lock:
            bucket = self._buckets.get(scope)
            if bucket is None:
                bucket = TokenBucket(
                    self.rate_per_second, self.burst, clock=self._clock
                )
                self._buckets[scope] = bucket
            delay = bucket.reserve()

        if delay > 0:
            logger.debug(f"Rate limited {service}:{action}, waiting {delay:.3f}s")
            self._sleep(delay)
        return delay

    def __repr__(self) -> str:
        return (
            f"RateLimiter(rate_per_second={self.rate_per_second}, "
            f"burst={self.burst}, scopes={len(self._buckets)})"
        )
