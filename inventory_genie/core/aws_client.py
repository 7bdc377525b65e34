"""
AWS Service Client Cache
========================

Lazily constructed, memoized boto3 clients keyed by service and region.

Every client of an execution context is built from the context's resolved
credential (see :mod:`inventory_genie.core.credentials`) and cached under
``"{service}-{region}"``. Each key is constructed at most once, even when
many region branches ask for it at the same time; construction for
different keys runs in parallel.

Classes
-------
AWSService
    Registry entry describing one supported service.
ServiceClientCache
    Per-context client cache.

Example
-------
>>> clients = ServiceClientCache(credential_cache, default_region="us-east-1")
>>> ec2 = clients.get_ec2_client("eu-west-1")
>>> ec2 is clients.get_client("ec2", "eu-west-1")
True

Notes
-----
Each client is built from its own ``boto3.session.Session``: the default
boto3 session is not safe to share across threads while clients are
being created.

See Also
--------
boto3 : AWS SDK for Python
botocore.config.Config : Retry and timeout settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.config import Config

from inventory_genie.core.cache import SingleFlightCache
from inventory_genie.core.credentials import CredentialCache
from inventory_genie.core.exceptions import RegionError, ServiceError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class AWSService:
    """
    A supported AWS service.

    Attributes
    ----------
    name : str
        boto3 service name.
    description : str
        Human-readable name.
    regional : bool
        Whether a client is bound to one region. Global services are
        cached under the default region.
    """

    name: str
    description: str
    regional: bool = True


SUPPORTED_SERVICES: Dict[str, AWSService] = {
    svc.name: svc
    for svc in (
        AWSService("ec2", "Amazon EC2"),
        AWSService("cloudwatch", "Amazon CloudWatch"),
        AWSService("secretsmanager", "AWS Secrets Manager"),
        AWSService("eks", "Amazon Elastic Kubernetes Service"),
        AWSService("rds", "Amazon RDS"),
        AWSService("ssm", "AWS Systems Manager"),
        AWSService("iam", "AWS Identity and Access Management", regional=False),
        AWSService("sts", "AWS Security Token Service", regional=False),
    )
}

ClientFactory = Callable[..., Any]


def create_config(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    timeout: int = DEFAULT_TIMEOUT,
) -> Config:
    """
    Create the botocore configuration shared by every client.

    Notes
    -----
    Adaptive retry mode lets botocore absorb short throttling bursts before
    the table-level retry policy sees an error.
    """
    return Config(
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
        connect_timeout=timeout,
        read_timeout=timeout,
    )


def boto3_client_factory(
    service: str,
    region: str,
    access_key_id: str,
    secret_access_key: str,
    session_token: Optional[str],
    config: Config,
) -> Any:
    """Build a boto3 client from explicit key material."""
    session = boto3.session.Session(
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        aws_session_token=session_token,
        region_name=region,
    )
    return session.client(service, config=config)


class ServiceClientCache:
    """
    Per-execution-context cache of service clients.

    Parameters
    ----------
    credential_cache : CredentialCache
        Source of the context's credential.
    default_region : str
        Cache-key discriminant for global services.
    client_factory : callable, optional
        ``factory(service, region, access_key_id, secret_access_key,
        session_token, config)``. Defaults to :func:`boto3_client_factory`.
    max_attempts : int, default=3
        botocore retry attempts per call.
    timeout : int, default=30
        Connect and read timeout in seconds.

    Raises
    ------
    ServiceError
        For a service that is not in :data:`SUPPORTED_SERVICES`.
    RegionError
        For a regional service requested without a region.
    CredentialsError
        If the context has no usable credential.
    CredentialMaterialError
        If a piece of key material cannot be read.
    """

    def __init__(
        self,
        credential_cache: CredentialCache,
        default_region: str,
        client_factory: Optional[ClientFactory] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.credential_cache = credential_cache
        self.default_region = default_region
        self.client_factory = client_factory or boto3_client_factory
        self._config = create_config(max_attempts, timeout)
        self._clients: SingleFlightCache[Any] = SingleFlightCache(name="clients")

    @staticmethod
    def cache_key(service: str, region: str) -> str:
        return f"{service}-{region}"

    def get_client(self, service: str, region: Optional[str] = None) -> Any:
        """
        Return the client for ``service`` in ``region``, building it once.

        Parameters
        ----------
        service : str
            boto3 service name, e.g. ``"ec2"``.
        region : str, optional
            Region for regional services. Ignored for global services.

        Returns
        -------
        botocore.client.BaseClient
            The identical handle on every call with the same key.
        """
        svc = SUPPORTED_SERVICES.get(service)
        if svc is None:
            raise ServiceError(
                f"Unknown service '{service}'",
                service=service,
                details={"supported": sorted(SUPPORTED_SERVICES)},
            )

        if svc.regional:
            if not region:
                raise RegionError(
                    f"A region is required for the {svc.description} client",
                    details={"service": service},
                )
        else:
            region = self.default_region

        key = self.cache_key(service, region)
        return self._clients.get_or_create(
            key, lambda: self._create_client(service, region)
        )

    def _create_client(self, service: str, region: str) -> Any:
        material = self.credential_cache.get().key_material()

        client = self.client_factory(
            service=service,
            region=region,
            access_key_id=material.access_key_id,
            secret_access_key=material.secret_access_key,
            session_token=material.session_token,
            config=self._config,
        )
        logger.debug(f"Created {service} client for {region}")
        return client

    # =========================================================================
    # Service Client Accessors
    # =========================================================================

    def get_ec2_client(self, region: str) -> Any:
        """
        Get the EC2 client for a region.

        Example
        -------
        >>> ec2 = clients.get_ec2_client("us-east-1")
        >>> ec2.describe_vpcs()
        """
        return self.get_client("ec2", region)

    def get_cloudwatch_client(self, region: str) -> Any:
        """Get the CloudWatch client for a region."""
        return self.get_client("cloudwatch", region)

    def get_secretsmanager_client(self, region: str) -> Any:
        """Get the Secrets Manager client for a region."""
        return self.get_client("secretsmanager", region)

    def get_eks_client(self, region: str) -> Any:
        """Get the EKS client for a region."""
        return self.get_client("eks", region)

    def get_rds_client(self, region: str) -> Any:
        """Get the RDS client for a region."""
        return self.get_client("rds", region)

    def get_ssm_client(self, region: str) -> Any:
        """Get the Systems Manager client for a region."""
        return self.get_client("ssm", region)

    def get_iam_client(self) -> Any:
        """
        Get the IAM client.

        IAM is global; the client is cached under the default region.
        """
        return self.get_client("iam")

    def get_sts_client(self) -> Any:
        """Get the STS client."""
        return self.get_client("sts")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def clear(self) -> None:
        """Drop every cached client."""
        self._clients.clear()

    def __len__(self) -> int:
        return len(self._clients)

    def __repr__(self) -> str:
        return (
            f"ServiceClientCache(default_region='{self.default_region}', "
            f"clients={len(self._clients)})"
        )


__all__ = [
    "SUPPORTED_SERVICES",
    "ServiceClientCache",
    "AWSService",
    "boto3_client_factory",
    "create_config",
]
