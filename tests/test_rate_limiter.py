"""
Tests for the rate limiter and the single-flight cache.
"""

import threading
import time

import pytest

from inventory_genie.core.cache import SingleFlightCache
from inventory_genie.core.rate_limiter import RateLimiter, TokenBucket


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTokenBucket:
    """Tests for TokenBucket."""

    def test_burst_then_wait(self):
        """Test that the burst is free and the next token costs 1/rate."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, capacity=3, clock=clock)

        assert [bucket.reserve() for _ in range(3)] == [0.0, 0.0, 0.0]
        assert bucket.reserve() == pytest.approx(0.5)
        assert bucket.reserve() == pytest.approx(1.0)

    def test_refill(self):
        """Test that tokens refill with time up to capacity."""
        clock = FakeClock()
        bucket = TokenBucket(rate=1.0, capacity=2, clock=clock)
        bucket.reserve()
        bucket.reserve()

        clock.now = 100.0
        assert bucket.reserve() == 0.0
        assert bucket.reserve() == 0.0
        assert bucket.reserve() > 0


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_scopes_are_independent(self):
        """Test that each service/action pair has its own bucket."""
        slept = []
        limiter = RateLimiter(1.0, 1, sleep=slept.append, clock=FakeClock())

        assert limiter.wait("ec2", "DescribeVpcs") == 0.0
        assert limiter.wait("ec2", "DescribeSubnets") == 0.0
        assert limiter.wait("ec2", "DescribeVpcs") == pytest.approx(1.0)
        assert slept == [pytest.approx(1.0)]


class TestSingleFlightCache:
    """Tests for SingleFlightCache."""

    def test_computes_once(self):
        """Test that a value is computed once per key."""
        cache = SingleFlightCache()
        calls = []

        def factory():
            calls.append(1)
            return object()

        first = cache.get_or_create("key", factory)
        assert cache.get_or_create("key", factory) is first
        assert len(calls) == 1
        assert "key" in cache
        assert len(cache) == 1

    def test_failures_not_cached_by_default(self):
        """Test that a failed computation is retried on the next lookup."""
        cache = SingleFlightCache()
        attempts = []

        def factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("first attempt fails")
            return "value"

        with pytest.raises(RuntimeError):
            cache.get_or_create("key", factory)
        assert cache.get_or_create("key", factory) == "value"

    def test_cached_failure(self):
        """Test that a memoized failure is re-raised without recomputing."""
        cache = SingleFlightCache(cache_failures=True)
        attempts = []

        def factory():
            attempts.append(1)
            raise RuntimeError("broken")

        for _ in range(3):
            with pytest.raises(RuntimeError):
                cache.get_or_create("key", factory)
        assert len(attempts) == 1
        assert cache.get("key") is None

    def test_concurrent_callers_share_value(self):
        """Test single flight under contention."""
        cache = SingleFlightCache()
        calls = []

        def factory():
            calls.append(1)
            time.sleep(0.05)
            return object()

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(cache.get_or_create("k", factory)))
            for _ in range(10)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert all(r is results[0] for r in results)
