"""
Core Infrastructure Components
==============================

This module provides the foundational components for Inventory-Genie:

- :class:`ConnectionContext` - per-query state: config, credentials, clients
- :class:`ServiceClientCache` - memoized per-(service, region) clients
- :class:`BaseTable` - abstract base class for resource tables
- :class:`RegionManager` - region fan-out of one table
- :func:`stream_pages` - the paginated listing loop
- :func:`with_retry` - bounded Fibonacci-backoff retry
- Exception hierarchy for error handling

Example
-------
>>> from inventory_genie.core import ConnectionConfig, ConnectionContext, RegionManager
>>>
>>> context = ConnectionContext(ConnectionConfig(profile="audit"))
>>> manager = RegionManager(context)

See Also
--------
inventory_genie.tables : Resource table implementations.
inventory_genie.reporters : Output formatters.
"""

from inventory_genie.core.aws_client import AWSService, ServiceClientCache
from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.config import ConnectionConfig
from inventory_genie.core.context import ConnectionContext
from inventory_genie.core.credentials import (
    CredentialCache,
    CredentialConfig,
    resolve_credentials,
)
from inventory_genie.core.error_handling import (
    log_query_error,
    not_found_predicate,
    plugin_default_predicate,
    should_ignore_error,
)
from inventory_genie.core.exceptions import (
    AWSClientError,
    ConfigError,
    CredentialMaterialError,
    CredentialsError,
    EmptyResponseError,
    InventoryGenieError,
    RegionError,
    ReportTimeoutError,
    ServiceError,
    TableError,
    UnknownTableError,
)
from inventory_genie.core.pagination import (
    ExhaustionPaging,
    NextTokenPaging,
    SinglePage,
    TotalCountPaging,
    stream_pages,
)
from inventory_genie.core.query import QueryData, RowBudget
from inventory_genie.core.region_manager import QueryResult, RegionManager
from inventory_genie.core.retry import GENERAL, REPORT_POLL, RetryPolicy, with_retry

__all__ = [
    # Configuration and context
    "ConnectionConfig",
    "ConnectionContext",
    # Credentials and clients
    "CredentialCache",
    "CredentialConfig",
    "resolve_credentials",
    "ServiceClientCache",
    "AWSService",
    # Listing protocol
    "QueryData",
    "RowBudget",
    "stream_pages",
    "ExhaustionPaging",
    "NextTokenPaging",
    "SinglePage",
    "TotalCountPaging",
    # Retry and error classification
    "GENERAL",
    "REPORT_POLL",
    "RetryPolicy",
    "with_retry",
    "log_query_error",
    "not_found_predicate",
    "plugin_default_predicate",
    "should_ignore_error",
    # Tables and fan-out
    "BaseTable",
    "QueryResult",
    "RegionManager",
    # Exceptions
    "InventoryGenieError",
    "ConfigError",
    "CredentialsError",
    "RegionError",
    "AWSClientError",
    "ServiceError",
    "CredentialMaterialError",
    "EmptyResponseError",
    "TableError",
    "UnknownTableError",
    "ReportTimeoutError",
]
