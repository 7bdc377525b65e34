"""
Custom Exceptions for Inventory-Genie
=====================================

This module defines the exception hierarchy used across the credential,
client-cache, listing and table layers.

Exception Hierarchy
-------------------
::

    InventoryGenieError (base)
    ├── ConfigError
    │   ├── CredentialsError
    │   └── RegionError
    ├── AWSClientError
    │   ├── ServiceError
    │   ├── CredentialMaterialError
    │   └── EmptyResponseError
    └── TableError
        ├── UnknownTableError
        └── ReportTimeoutError

Configuration errors are fatal and never retried. Provider errors raised by
botocore (``ClientError``, ``BotoCoreError``) are not wrapped on the listing
path; they propagate unchanged after classification.

Example
-------
>>> from inventory_genie.core.exceptions import ConfigError, CredentialsError
>>>
>>> try:
...     context = ConnectionContext(config)
... except CredentialsError as e:
...     print(f"Missing credentials: {e}")
... except ConfigError as e:
...     print(f"Bad configuration: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InventoryGenieError(Exception):
    """
    Base exception for all Inventory-Genie errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(InventoryGenieError):
    """
    Raised when the connection configuration cannot be used.

    Configuration errors are fatal: they abort the operation that triggered
    them and are never retried.
    """

    pass


class CredentialsError(ConfigError):
    """
    Raised when no usable credentials can be resolved.

    Example
    -------
    >>> raise CredentialsError(
    ...     "'access_key' and 'secret_key' or 'profile' must be set",
    ...     details={"hint": "Edit the connection configuration"}
    ... )
    """

    pass


class RegionError(ConfigError):
    """
    Raised when a region is invalid or missing.

    Parameters
    ----------
    message : str
        Human-readable error message.
    region : str, optional
        The offending region.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.region = region
        full_details = details or {}
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


# =============================================================================
# AWS Client Exceptions
# =============================================================================


class AWSClientError(InventoryGenieError):
    """
    Base exception for AWS client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The AWS service that caused the error.
    region : str, optional
        The AWS region where the error occurred.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class ServiceError(AWSClientError):
    """
    Raised when a service client cannot be created.

    Example
    -------
    >>> raise ServiceError(
    ...     "Unknown service 'ecs2'",
    ...     service="ecs2",
    ... )
    """

    pass


class CredentialMaterialError(AWSClientError):
    """
    Raised when one piece of key material cannot be read from a credential.

    Each accessor (access key id, secret access key, session token) fails
    with its own ``field`` so the failing piece is attributable.

    Parameters
    ----------
    message : str
        Human-readable error message.
    field : str
        One of ``access_key_id``, ``secret_access_key``, ``session_token``.
    """

    def __init__(
        self,
        message: str,
        field: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
    ) -> None:
        self.field = field
        super().__init__(
            message, service=service, region=region, details={"field": field}
        )


class EmptyResponseError(AWSClientError):
    """
    Synthesized for a success-shaped response that carries no data.

    The retry policy treats it as transient.
    """

    pass


# =============================================================================
# Table Exceptions
# =============================================================================


class TableError(InventoryGenieError):
    """
    Base exception for table-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    table : str, optional
        The table being queried.
    region : str, optional
        The region branch being listed.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.table = table
        self.region = region
        full_details = details or {}
        if table:
            full_details["table"] = table
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class UnknownTableError(TableError):
    """Raised when a table name is not in the catalogue."""

    pass


class ReportTimeoutError(TableError):
    """
    Raised when an asynchronously generated report never becomes ready.

    Example
    -------
    >>> raise ReportTimeoutError(
    ...     "Timed out waiting for credential report generation",
    ...     table="aws_iam_credential_report",
    ... )
    """

    pass
