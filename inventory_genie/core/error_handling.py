"""
Error Classification
====================

Decides whether an error raised while listing a table is silently dropped
or surfaced to the caller.

Two error kinds are ignorable:

- **unresolvable host**: the service has no endpoint in a region (EKS in a
  region without EKS, for example). botocore reports this as an
  ``EndpointConnectionError`` wrapping a ``socket.gaierror``.
- **configured codes**: the provider error code, or the error text,
  contains one of the connection's ``ignore_error_codes`` or a
  table-supplied override.

A refused connection, a timeout or any other failure is never ignored.

Functions
---------
should_ignore_error
    The classifier.
not_found_predicate
    Predicate for get-style lookups.
plugin_default_predicate
    Predicate for broad list fan-out.
log_query_error
    Log an error unless it is ignorable.
"""

from __future__ import annotations

import logging
import socket
from typing import Callable, Iterable, Optional, Sequence

from botocore.exceptions import ClientError, EndpointConnectionError

from inventory_genie.core.config import ConnectionConfig

logger = logging.getLogger(__name__)

NO_SUCH_HOST_MARKERS = (
    "no such host",
    "name or service not known",
    "nodename nor servname provided",
    "getaddrinfo failed",
    "temporary failure in name resolution",
)

ErrorPredicate = Callable[[BaseException, ConnectionConfig], bool]


def error_code(err: BaseException) -> Optional[str]:
    """Return the provider error code of a ``ClientError``, if any."""
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Code")
    return None


def _causes(err: BaseException):
    seen = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def is_no_such_host(err: BaseException) -> bool:
    """
    Return True if ``err`` means the endpoint host could not be resolved.

    Walks the exception chain. A refused or reset connection is not a
    resolution failure and returns False.
    """
    for current in _causes(err):
        if isinstance(current, socket.gaierror):
            return True
        if isinstance(current, EndpointConnectionError):
            inner = current.kwargs.get("error")
            if isinstance(inner, socket.gaierror):
                return True
            if inner is not None and _has_marker(str(inner)):
                return True
        if _has_marker(str(current)):
            return True
    return False


def _has_marker(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in NO_SUCH_HOST_MARKERS)


def should_ignore_error(
    err: BaseException,
    config: ConnectionConfig,
    override_patterns: Optional[Sequence[str]] = None,
) -> bool:
    """
    Classify an error as ignorable or not.

    Parameters
    ----------
    err : BaseException
        The error raised by a provider call.
    config : ConnectionConfig
        Supplies ``ignore_error_codes``.
    override_patterns : sequence of str, optional
        Extra substrings, merged with the configured ones.

    Returns
    -------
    bool
        True if the error should be dropped silently. The result depends
        only on the arguments.
    """
    if is_no_such_host(err):
        return True

    patterns = list(config.ignore_error_codes)
    if override_patterns:
        patterns.extend(override_patterns)
    if not patterns:
        return False

    code = error_code(err) or ""
    text = str(err)
    return any(p and (p in code or p in text) for p in patterns)


def not_found_predicate(codes: Iterable[str]) -> ErrorPredicate:
    """
    Build the predicate used by get-style lookups.

    An error whose code is one of ``codes`` (for example ``NoSuchEntity``)
    means "no row", as do the plugin-default ignorable errors.
    """
    codes = tuple(codes)

    def predicate(err: BaseException, config: ConnectionConfig) -> bool:
        return error_code(err) in codes or should_ignore_error(err, config)

    return predicate


def plugin_default_predicate() -> ErrorPredicate:
    """Build the predicate used by every list call during region fan-out."""

    def predicate(err: BaseException, config: ConnectionConfig) -> bool:
        return should_ignore_error(err, config)

    return predicate


def log_query_error(
    err: BaseException,
    config: ConnectionConfig,
    table: str,
    region: Optional[str] = None,
    request: Optional[str] = None,
) -> bool:
    """
    Log ``err`` at ERROR level unless it is ignorable.

    Returns
    -------
    bool
        True if the error was ignorable (and only logged at DEBUG).
    """
    if should_ignore_error(err, config):
        logger.debug(f"{table}: ignoring error in {region or 'global'}: {err}")
        return True

    logger.error(
        f"{table}: {request or 'request'} failed: {err}",
        extra={"table": table, "region": region, "request": request},
    )
    return False


__all__ = [
    "error_code",
    "is_no_such_host",
    "log_query_error",
    "not_found_predicate",
    "plugin_default_predicate",
    "should_ignore_error",
]
