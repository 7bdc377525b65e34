"""
Inventory-Genie: AWS Resource Inventory
=======================================

Lists AWS resources as flat rows, one table per resource type, fanned out
across regions with shared credentials, memoized clients, bounded retries
and budget-aware pagination.

Modules
-------
core
    Core infrastructure (connection context, credentials, clients, retry,
    pagination, region fan-out)
tables
    Resource table implementations
reporters
    Output formatters (CLI, CSV, JSON)

Example
-------
>>> from inventory_genie import ConnectionConfig, ConnectionContext, RegionManager
>>> from inventory_genie.tables import get_table
>>>
>>> with ConnectionContext(ConnectionConfig(regions=["us-east-1"])) as context:
...     result = RegionManager(context).query(get_table("aws_vpc"))
>>> print(f"Found {result.row_count} VPCs")

Notes
-----
Credentials are taken, in order, from the configured profile, the
AWS_PROFILE/AWS_DEFAULT_PROFILE/AWS_VAULT environment variables, and static
keys from the configuration or the environment.

See Also
--------
boto3 : AWS SDK for Python
"""

__version__ = "0.1.0"
__author__ = "Inventory-Genie Team"
__license__ = "MIT"

# Public API
from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.config import ConnectionConfig
from inventory_genie.core.context import ConnectionContext
from inventory_genie.core.exceptions import ConfigError, InventoryGenieError
from inventory_genie.core.region_manager import QueryResult, RegionManager

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "BaseTable",
    "ConnectionConfig",
    "ConnectionContext",
    "QueryResult",
    "RegionManager",
    # Errors
    "InventoryGenieError",
    "ConfigError",
]
