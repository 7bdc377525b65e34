"""
Row Transforms
==============

Helpers shared by the table row transforms: tag flattening, zone to region,
list coercion, ARN building and the null/boolean conventions of AWS report
text.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

NULL_MARKERS = frozenset({"", "N/A", "-", "not_supported", "no_information"})


def tags_to_map(tags: Optional[Iterable[Mapping[str, Any]]]) -> Optional[Dict[str, Any]]:
    """
    Convert an AWS tag list into a dictionary.

    Accepts both ``{"Key", "Value"}`` and ``{"TagKey", "TagValue"}`` shapes.

    Example
    -------
    >>> tags_to_map([{"Key": "Name", "Value": "web"}])
    {'Name': 'web'}
    """
    if not tags:
        return None
    result: Dict[str, Any] = {}
    for tag in tags:
        key = tag.get("Key", tag.get("TagKey"))
        if key is None:
            continue
        result[key] = tag.get("Value", tag.get("TagValue"))
    return result


def name_from_tags(tags: Optional[Iterable[Mapping[str, Any]]]) -> Optional[str]:
    """Return the ``Name`` tag value, if present."""
    return (tags_to_map(tags) or {}).get("Name")


def zone_to_region(zone: Optional[str]) -> Optional[str]:
    """
    Derive a region from an availability zone name.

    Example
    -------
    >>> zone_to_region("eu-west-1b")
    'eu-west-1'
    """
    if not zone:
        return None
    if zone[-1].isalpha() and zone[-2].isdigit():
        return zone[:-1]
    return zone


def ensure_list(value: Any) -> List[Any]:
    """Wrap a scalar in a list; pass lists through; None becomes []."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def csv_to_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated string into stripped, non-empty parts."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def build_arn(
    partition: str,
    service: str,
    region: Optional[str],
    account_id: Optional[str],
    resource: str,
) -> str:
    """
    Build an ARN.

    Example
    -------
    >>> build_arn("aws", "ec2", "us-east-1", "123456789012", "vpc/vpc-1")
    'arn:aws:ec2:us-east-1:123456789012:vpc/vpc-1'
    """
    return f"arn:{partition}:{service}:{region or ''}:{account_id or ''}:{resource}"


def null_if_marker(value: Optional[str]) -> Optional[str]:
    """Return None for the placeholder text AWS reports use for no value."""
    if value is None or value.strip() in NULL_MARKERS:
        return None
    return value


def to_bool(value: Optional[str]) -> Optional[bool]:
    """Parse ``true``/``false`` report text, treating placeholders as None."""
    value = null_if_marker(value)
    if value is None:
        return None
    return value.strip().lower() == "true"


def iso(value: Any) -> Any:
    """Render datetimes as ISO 8601 strings; pass anything else through."""
    if isinstance(value, datetime):
        return value.isoformat()
    return value
