"""
JSON Reporter Module
====================

Exports query results to JSON for programmatic consumption.

Classes
-------
JSONReporter
    Main reporter class for JSON export.

Example
-------
>>> from inventory_genie.reporters import JSONReporter
>>>
>>> reporter = JSONReporter(output_path="vpcs.json")
>>> filepath = reporter.report(query_result)
>>>
>>> # Or get as string
>>> json_str = JSONReporter().to_string(query_result)

Output Format
-------------
::

    {
      "metadata": {
        "table": "aws_vpc",
        "regions_queried": ["us-east-1", "eu-west-1"],
        "row_count": 3,
        "successful_regions": 2,
        "failed_regions": 0,
        "query_time": "2024-01-15T10:30:00+00:00",
        "errors": {}
      },
      "rows": [...]
    }

See Also
--------
CLIReporter : For terminal display.
CSVReporter : For spreadsheet export.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from inventory_genie.core.region_manager import QueryResult

logger = logging.getLogger(__name__)


class JSONReporter:
    """
    Reporter for exporting query results to JSON format.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, generates a
        timestamped filename in the current directory.
    indent : int, default=2
        JSON indentation level. Set to None for compact output.

    Examples
    --------
    >>> reporter = JSONReporter(indent=None)
    >>> json_str = reporter.to_string(result)
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        indent: Optional[int] = 2,
    ) -> None:
        self.output_path = output_path
        self.indent = indent
        logger.debug(f"Initialized JSONReporter (output_path={output_path})")

    def _get_output_path(self, table: str) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"{table}_{timestamp}.json")

    def report(self, result: QueryResult) -> str:
        """
        Export query results to a JSON file.

        Returns
        -------
        str
            Path to the created JSON file.
        """
        output_path = self._get_output_path(result.table)

        logger.info(f"Exporting {result.row_count} rows to {output_path}")

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(result), f, indent=self.indent, default=str)

        logger.info(f"JSON export complete: {output_path}")
        return str(output_path)

    def to_string(self, result: QueryResult) -> str:
        """Convert query results to a JSON string without writing a file."""
        return json.dumps(self.to_dict(result), indent=self.indent, default=str)

    def to_dict(self, result: QueryResult) -> Dict[str, Any]:
        """
        Convert query results to a Python dictionary.

        Example
        -------
        >>> data = JSONReporter().to_dict(result)
        >>> print(data["metadata"]["row_count"])
        """
        return {
            "metadata": {
                "table": result.table,
                "regions_queried": result.regions_queried,
                "row_count": result.row_count,
                "successful_regions": len(result.successful_regions),
                "failed_regions": len(result.failed_regions),
                "query_time": result.query_time.isoformat(),
                "errors": result.errors,
            },
            "rows": result.rows,
        }

    def __repr__(self) -> str:
        return f"JSONReporter(output_path={self.output_path!r}, indent={self.indent})"
