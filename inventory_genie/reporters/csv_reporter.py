"""
CSV Reporter Module
===================

Exports query results to CSV for spreadsheet analysis.

Classes
-------
CSVReporter
    Main reporter class for CSV export.

Example
-------
>>> from inventory_genie.reporters import CSVReporter
>>>
>>> reporter = CSVReporter(output_path="vpcs.csv")
>>> filepath = reporter.report(query_result)

Output Format
-------------
The CSV file includes:
1. Metadata header rows (prefixed with #), unless disabled
2. Empty separator row
3. Column headers
4. One data row per result row

Example output::

    # Query Metadata
    # Table:,aws_vpc
    # Regions Queried:,2
    # Region List:,"us-east-1, eu-west-1"
    # Rows:,3
    # Query Time:,2024-01-15T10:30:00+00:00

    vpc_id,cidr_block,is_default,tags,region
    vpc-0abc,10.0.0.0/16,false,"{""Name"":""core""}",us-east-1

Nested values (tag maps, lists) are written as compact JSON.

See Also
--------
CLIReporter : For terminal display.
JSONReporter : For programmatic access.
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from inventory_genie.core.region_manager import QueryResult
from inventory_genie.reporters.cli_reporter import format_value

logger = logging.getLogger(__name__)


class CSVReporter:
    """
    Reporter for exporting query results to CSV format.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, generates a
        timestamped filename in the current directory.
    include_metadata : bool, default=True
        Write the ``#``-prefixed metadata block before the header.

    Examples
    --------
    Export to specific file:

    >>> reporter = CSVReporter(output_path="./reports/vpcs.csv")
    >>> filepath = reporter.report(result)

    Auto-generate filename:

    >>> filepath = CSVReporter().report(result)
    >>> print(filepath)  # e.g., 'aws_vpc_20240115_103000.csv'
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        include_metadata: bool = True,
    ) -> None:
        self.output_path = output_path
        self.include_metadata = include_metadata
        logger.debug(f"Initialized CSVReporter (output_path={output_path})")

    def _get_output_path(self, table: str) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"{table}_{timestamp}.csv")

    def report(self, result: QueryResult, columns: Optional[List[str]] = None) -> str:
        """
        Export query results to CSV.

        Parameters
        ----------
        result : QueryResult
            Rows to export.
        columns : list of str, optional
            Columns to write, in order. Defaults to every column.

        Returns
        -------
        str
            Path to the created CSV file.
        """
        output_path = self._get_output_path(result.table)
        columns = columns or result.columns()

        logger.info(f"Exporting {result.row_count} rows to {output_path}")

        with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile, quoting=csv.QUOTE_MINIMAL)

            if self.include_metadata:
                self._write_metadata(writer, result)

            writer.writerow(columns)
            for row in result.rows:
                writer.writerow(self._format_row(row, columns))

        logger.info(f"CSV export complete: {output_path}")
        return str(output_path)

    def _write_metadata(self, writer: Any, result: QueryResult) -> None:
        regions = result.regions_queried
        writer.writerow(["# Query Metadata"])
        writer.writerow(["# Table:", result.table])
        writer.writerow(["# Regions Queried:", len(regions)])
        if len(regions) <= 5:
            writer.writerow(["# Region List:", ", ".join(regions)])
        writer.writerow(["# Rows:", result.row_count])
        if result.errors:
            writer.writerow(["# Failed Regions:", ", ".join(result.failed_regions)])
        writer.writerow(["# Query Time:", result.query_time.isoformat()])
        writer.writerow([])

    @staticmethod
    def _format_row(row: dict, columns: List[str]) -> List[str]:
        return [format_value(row.get(column)) for column in columns]

    def __repr__(self) -> str:
        return f"CSVReporter(output_path={self.output_path!r})"
