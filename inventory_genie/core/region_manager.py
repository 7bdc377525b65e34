"""
Region Manager Module
=====================

Runs one table across regions in parallel and aggregates the rows.

This module handles:
- choosing the region branches of a query (configured regions, a ``region``
  qualifier, or a single global branch)
- parallel execution of branches in a thread pool
- aggregation of rows and per-region errors

Classes
-------
QueryResult
    Aggregated rows and errors of one query.
RegionManager
    Orchestrates the region fan-out.

Example
-------
>>> from inventory_genie.core.region_manager import RegionManager
>>> from inventory_genie.tables import get_table
>>>
>>> manager = RegionManager(context)
>>> result = manager.query(get_table("aws_vpc"), limit=20)
>>> print(f"{len(result.rows)} VPCs across {len(result.regions_queried)} regions")

Notes
-----
All branches share one :class:`ConnectionContext`, so clients, credentials
and hydrate results are built once per query, and one row budget, so a
``limit`` caps the whole query.

See Also
--------
ConnectionContext : State shared by every branch.
BaseTable : Table interface.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.context import ConnectionContext
from inventory_genie.core.exceptions import ConfigError
from inventory_genie.core.query import QueryData, Row, RowBudget
from inventory_genie.core.regions import validate_regions

logger = logging.getLogger(__name__)

GLOBAL_REGION = "global"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class QueryResult:
    """
    Aggregated result of querying one table.

    Parameters
    ----------
    table : str
        Table that was queried.
    regions_queried : list of str
        Branches that ran. ``["global"]`` for global tables.
    rows : list of dict
        Rows in region order, each branch's rows in API order.
    errors : dict
        Mapping of region to error messages.
    query_time : datetime, optional
        When the query ran.

    Examples
    --------
    >>> result = manager.query(get_table("aws_vpc"))
    >>> if result.has_errors:
    ...     for region, errors in result.errors.items():
    ...         print(f"{region}: {errors}")
    """

    table: str
    regions_queried: List[str]
    rows: List[Row] = field(default_factory=list)
    errors: Dict[str, List[str]] = field(default_factory=dict)
    query_time: datetime = field(default_factory=_utcnow)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def successful_regions(self) -> List[str]:
        return [r for r in self.regions_queried if r not in self.errors]

    @property
    def failed_regions(self) -> List[str]:
        return list(self.errors.keys())

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def columns(self) -> List[str]:
        """Column names in first-seen order across every row."""
        seen: Dict[str, None] = {}
        for row in self.rows:
            for key in row:
                seen.setdefault(key, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for serialization.
        """
        return {
            "table": self.table,
            "regions_queried": self.regions_queried,
            "row_count": self.row_count,
            "rows": self.rows,
            "query_time": self.query_time.isoformat(),
            "errors": self.errors,
        }

    def __repr__(self) -> str:
        return (
            f"QueryResult(table='{self.table}', "
            f"regions={len(self.regions_queried)}, "
            f"rows={self.row_count})"
        )


class RegionManager:
    """
    Fans a table out across regions.

    Parameters
    ----------
    context : ConnectionContext
        Execution context shared by every branch.
    max_workers : int, optional
        Thread pool size. Defaults to the configured ``max_workers``.

    Examples
    --------
    >>> manager = RegionManager(context, max_workers=4)
    >>> result = manager.query(
    ...     get_table("aws_vpc_subnet"),
    ...     quals={"vpc_id": "vpc-0abc"},
    ...     regions=["us-east-1", "eu-west-1"],
    ... )

    With progress tracking:

    >>> def on_progress(region, status):
    ...     print(f"{region}: {status}")
    >>> result = manager.query(table, progress_callback=on_progress)
    """

    def __init__(
        self,
        context: ConnectionContext,
        max_workers: Optional[int] = None,
    ) -> None:
        self.context = context
        self.max_workers = max_workers or context.config.max_workers
        logger.debug(f"Initialized RegionManager with max_workers={self.max_workers}")

    def list_enabled_regions(self) -> List[str]:
        """
        Fetch the regions enabled for the account.

        Returns
        -------
        list of str
            Sorted region names from EC2 ``DescribeRegions``.
        """
        ec2 = self.context.clients.get_ec2_client(self.context.default_region)
        response = ec2.describe_regions(AllRegions=False)
        regions = sorted(r["RegionName"] for r in response["Regions"])
        logger.info(f"Discovered {len(regions)} enabled AWS regions")
        return regions

    def branch_regions(
        self,
        table: BaseTable,
        quals: Dict[str, Any],
        regions: Optional[List[str]] = None,
    ) -> List[Optional[str]]:
        """
        Return the region branches a query runs.

        A global table runs one branch with no region. A ``region``
        qualifier narrows a regional table to the named regions.
        """
        if not table.regional:
            return [None]

        candidates = list(regions) if regions else self.context.regions
        wanted = quals.get("region")
        if wanted:
            wanted_list = wanted if isinstance(wanted, (list, tuple)) else [wanted]
            candidates = [r for r in candidates if r in wanted_list] or validate_regions(
                wanted_list
            )
        return list(candidates)

    def _query_region(
        self,
        table: BaseTable,
        d: QueryData,
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> Tuple[str, List[Row], Optional[str]]:
        label = d.region or GLOBAL_REGION
        try:
            if progress_callback:
                progress_callback(label, "querying")

            table.execute(d)

            if progress_callback:
                progress_callback(label, "complete")
            logger.debug(f"{table.name}: {len(d.rows)} rows from {label}")
            return (label, d.rows, None)

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Error querying {table.name} in {label}: {e}")
            if progress_callback:
                progress_callback(label, "error")
            return (label, d.rows, str(e))

    def query(
        self,
        table: BaseTable,
        quals: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        regions: Optional[List[str]] = None,
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> QueryResult:
        """
        Query ``table`` across its region branches.

        Parameters
        ----------
        table : BaseTable
            Table to query.
        quals : dict, optional
            Equality qualifiers.
        limit : int, optional
            Maximum rows for the whole query.
        regions : list of str, optional
            Overrides the configured regions.
        progress_callback : callable, optional
            Called with (region, status); status is one of
            'querying', 'complete', 'error'.

        Returns
        -------
        QueryResult
            Rows and per-region errors.

        Raises
        ------
        ConfigError
            If a branch hits a configuration error; it is fatal for the
            whole query.
        """
        quals = dict(quals or {})
        budget = RowBudget(limit)
        base = QueryData(
            connection=self.context, table=table.name, quals=quals, budget=budget
        )
        branches = self.branch_regions(table, quals, regions)
        labels = [region or GLOBAL_REGION for region in branches]

        logger.info(f"Querying {table.name} across {len(branches)} branch(es)")

        rows_by_region: Dict[str, List[Row]] = {}
        errors: Dict[str, List[str]] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(
                    self._query_region,
                    table,
                    base.for_region(region),
                    progress_callback,
                ): region
                for region in branches
            }

            for future in as_completed(futures):
                label, rows, error = future.result()
                rows_by_region[label] = rows
                if error:
                    errors[label] = [error]
                    logger.warning(f"Region {label} failed: {error}")

        rows = [row for label in labels for row in rows_by_region.get(label, [])]

        logger.info(
            f"{table.name}: {len(rows)} rows from {len(labels) - len(errors)} "
            f"of {len(labels)} branch(es)"
        )

        return QueryResult(
            table=table.name,
            regions_queried=labels,
            rows=rows,
            errors=errors,
        )

    def __repr__(self) -> str:
        return (
            f"RegionManager(context={self.context!r}, "
            f"max_workers={self.max_workers})"
        )
