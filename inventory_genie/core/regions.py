"""
Region Resolution
=================

Default-region precedence and region validation.

The default region of an execution context is, in order:

1. the first configured region (validated against the known-region set),
2. ``AWS_REGION``, ``AWS_DEFAULT_REGION`` or ``EC2_REGION`` from the
   environment,
3. ``us-east-1``.

The known-region set comes from botocore's bundled endpoint data, so
validation never makes a network call.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import FrozenSet, Iterable, List, Mapping, Optional

import boto3

from inventory_genie.core.config import ConnectionConfig
from inventory_genie.core.exceptions import RegionError

logger = logging.getLogger(__name__)

FALLBACK_REGION = "us-east-1"
REGION_ENV_VARS = ("AWS_REGION", "AWS_DEFAULT_REGION", "EC2_REGION")
PARTITIONS = ("aws", "aws-cn", "aws-us-gov")


@lru_cache(maxsize=1)
def known_regions() -> FrozenSet[str]:
    """
    Return every region EC2 is available in across the known partitions.

    Returns
    -------
    frozenset of str
        Region names, e.g. ``{"us-east-1", "cn-north-1", ...}``.
    """
    session = boto3.session.Session()
    regions = set()
    for partition in PARTITIONS:
        regions.update(
            session.get_available_regions("ec2", partition_name=partition)
        )
    logger.debug(f"Loaded {len(regions)} known regions")
    return frozenset(regions)


def is_valid_region(region: str) -> bool:
    """Return True if ``region`` is a known region name."""
    return region in known_regions()


def validate_regions(regions: Iterable[str]) -> List[str]:
    """
    Validate a list of region names.

    Raises
    ------
    RegionError
        Naming the first invalid region.
    """
    validated = []
    for region in regions:
        if not is_valid_region(region):
            raise RegionError(
                f"Invalid region '{region}' in connection config",
                region=region,
                details={"hint": "Use a region name like 'us-east-1'"},
            )
        validated.append(region)
    return validated


def region_from_env(environ: Mapping[str, str]) -> Optional[str]:
    """Return the first non-empty region environment variable, if any."""
    for name in REGION_ENV_VARS:
        value = environ.get(name)
        if value:
            return value
    return None


def resolve_default_region(
    config: ConnectionConfig,
    environ: Mapping[str, str],
) -> str:
    """
    Resolve the default region for an execution context.

    Parameters
    ----------
    config : ConnectionConfig
        Connection configuration.
    environ : Mapping
        Environment variables (usually ``os.environ``).

    Returns
    -------
    str
        The default region.

    Raises
    ------
    RegionError
        If the first configured region is not a known region.
    """
    configured = config.default_region_hint
    if configured:
        validate_regions([configured])
        logger.debug(f"Default region {configured} from connection config")
        return configured

    from_env = region_from_env(environ)
    if from_env:
        logger.debug(f"Default region {from_env} from environment")
        return from_env

    logger.debug(f"No region configured, falling back to {FALLBACK_REGION}")
    return FALLBACK_REGION


def partition_for_region(region: str) -> str:
    """Return the ARN partition a region belongs to."""
    if region.startswith("cn-"):
        return "aws-cn"
    if region.startswith("us-gov-"):
        return "aws-us-gov"
    return "aws"
