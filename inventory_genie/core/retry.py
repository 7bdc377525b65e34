"""
Retry Policy
============

Bounded retry with Fibonacci backoff for transient provider errors.

Two policies are used across the tables:

- ``GENERAL``: 5 retries from a 100 ms seed, for throttled calls and
  hydrate lookups.
- ``REPORT_POLL``: 10 retries from a 1 s seed, for polling an
  asynchronously generated report.

The combinator returns the operation's result directly. Classification is a
pure predicate over the raised error; a ``validate`` callback can also flag
a success-shaped response as an anomaly, which is converted into an
:class:`EmptyResponseError` and retried like a throttling error.

Example
-------
>>> response = with_retry(
...     lambda: cloudwatch.get_metric_data(**params),
...     validate=is_empty_metric_response,
... )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, TypeVar

from inventory_genie.core.error_handling import error_code
from inventory_genie.core.exceptions import EmptyResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry bounds and backoff seed.

    Attributes
    ----------
    max_retries : int
        Retries after the first attempt.
    base_delay : float
        First backoff delay in seconds; later delays follow the Fibonacci
        sequence (1, 2, 3, 5, 8 times the seed).
    """

    max_retries: int = 5
    base_delay: float = 0.1

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delays(self) -> Iterator[float]:
        """Yield the ``max_retries`` backoff delays in order."""
        previous, current = 0.0, self.base_delay
        for _ in range(self.max_retries):
            previous, current = current, previous + current
            yield current

    def schedule(self) -> List[float]:
        return list(self.delays())


GENERAL = RetryPolicy(max_retries=5, base_delay=0.1)
REPORT_POLL = RetryPolicy(max_retries=10, base_delay=1.0)


def is_throttling_error(err: BaseException) -> bool:
    """Return True for a provider throttling error."""
    return error_code(err) in THROTTLING_CODES


def is_retryable_error(err: BaseException) -> bool:
    """Return True for throttling errors and empty-success anomalies."""
    return isinstance(err, EmptyResponseError) or is_throttling_error(err)


def is_empty_metric_response(response: Any) -> bool:
    """
    Return True for a GetMetricData response that succeeded without data.

    CloudWatch occasionally answers with HTTP 200 and a result whose
    ``StatusCode`` is ``InternalError`` and whose ``Values`` are empty.
    """
    for result in response.get("MetricDataResults", []):
        if result.get("StatusCode") == "InternalError" and not result.get("Values"):
            return True
    return False


def with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy = GENERAL,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    validate: Optional[Callable[[T], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or the policy is exhausted.

    Parameters
    ----------
    operation : callable
        Zero-argument callable performing one provider call.
    policy : RetryPolicy, default=GENERAL
        Retry bounds.
    is_retryable : callable, default=is_retryable_error
        Classifies a raised error. Non-retryable errors propagate from the
        attempt that raised them.
    validate : callable, optional
        Returns True when a successful result is an anomaly that must be
        retried.
    sleep : callable, default=time.sleep
        Injected for tests.
    description : str
        Label used in log messages.

    Returns
    -------
    T
        The first valid result.

    Raises
    ------
    Exception
        The last error once ``policy.max_attempts`` attempts have failed, or
        the first non-retryable error.
    """
    delays = policy.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            result = operation()
            if validate is not None and validate(result):
                raise EmptyResponseError(
                    f"{description} returned an empty success response"
                )
            return result
        except Exception as e:
            if not is_retryable(e):
                raise
            delay = next(delays, None)
            if delay is None:
                logger.warning(
                    f"{description} failed after {attempt} attempts: {e}"
                )
                raise
            logger.debug(
                f"{description} attempt {attempt} failed ({e}); "
                f"retrying in {delay:.2f}s"
            )
            sleep(delay)


__all__ = [
    "GENERAL",
    "REPORT_POLL",
    "RetryPolicy",
    "is_empty_metric_response",
    "is_retryable_error",
    "is_throttling_error",
    "with_retry",
]
