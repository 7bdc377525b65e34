"""
Execution Context
=================

Per-execution-context state: the connection configuration, the resolved
default region and every cache whose lifetime is one context.

A :class:`ConnectionContext` is created once per query and shared by all
of its region branches. Configuration problems (an invalid configured
region, missing credentials) are raised from the constructor, before any
listing starts.

Example
-------
>>> context = ConnectionContext(ConnectionConfig(regions=["eu-west-1"]))
>>> context.default_region
'eu-west-1'
>>> ec2 = context.clients.get_ec2_client("eu-west-1")
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Hashable, List, Mapping, Optional, TypeVar

from inventory_genie.core.aws_client import ClientFactory, ServiceClientCache
from inventory_genie.core.cache import SingleFlightCache
from inventory_genie.core.config import ConnectionConfig
from inventory_genie.core.credentials import CredentialCache
from inventory_genie.core.rate_limiter import RateLimiter
from inventory_genie.core.regions import resolve_default_region, validate_regions

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionContext:
    """
    State shared by every branch of one query.

    Parameters
    ----------
    config : ConnectionConfig, optional
        Connection configuration. Defaults to an empty configuration that
        relies on the environment.
    environ : Mapping, optional
        Environment variables. Defaults to ``os.environ``.
    client_factory : callable, optional
        Passed to :class:`ServiceClientCache`.
    rate_limiter : RateLimiter, optional
        Defaults to a limiter built from the configuration.
    resolve_credentials : bool, default=True
        Resolve credentials in the constructor so a missing credential is
        reported before any listing starts.

    Attributes
    ----------
    default_region : str
        Resolved default region.
    credentials : CredentialCache
    clients : ServiceClientCache
    rate_limiter : RateLimiter

    Raises
    ------
    RegionError
        If a configured region is not a known region.
    CredentialsError
        If ``resolve_credentials`` is set and no credential resolves.
    """

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        environ: Optional[Mapping[str, str]] = None,
        client_factory: Optional[ClientFactory] = None,
        rate_limiter: Optional[RateLimiter] = None,
        resolve_credentials: bool = True,
    ) -> None:
        self.config = config or ConnectionConfig()
        self.environ = dict(os.environ if environ is None else environ)

        validate_regions(self.config.regions)
        self.default_region = resolve_default_region(self.config, self.environ)

        self.credentials = CredentialCache(
            self.config, self.environ, self.default_region
        )
        self.clients = ServiceClientCache(
            self.credentials, self.default_region, client_factory=client_factory
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            self.config.rate_limit_per_second, self.config.rate_limit_burst
        )
        self._hydrates: SingleFlightCache[Any] = SingleFlightCache(name="hydrate")

        if resolve_credentials:
            credential = self.credentials.get()
            logger.info(
                f"Connected with {credential.source} credentials, "
                f"default region {self.default_region}"
            )

    @property
    def regions(self) -> List[str]:
        """Regions a matrix table fans out to."""
        return list(self.config.regions) or [self.default_region]

    def cached(self, key: Hashable, factory: Callable[[], T]) -> T:
        """Memoize a hydrate result for the lifetime of the context."""
        return self._hydrates.get_or_create(key, factory)

    def close(self) -> None:
        """Drop every cached client and hydrate result."""
        self.clients.clear()
        self._hydrates.clear()

    def __enter__(self) -> ConnectionContext:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"ConnectionContext(default_region='{self.default_region}', "
            f"regions={self.regions!r})"
        )
