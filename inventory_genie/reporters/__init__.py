"""
Report Generators
=================

Output formatters for query results.

Available Reporters
-------------------
CLIReporter
    Rich terminal output with formatted tables and progress indicators.
CSVReporter
    CSV export for spreadsheet analysis.
JSONReporter
    JSON export for integration and programmatic access.

Example
-------
>>> from inventory_genie.reporters import CLIReporter, CSVReporter, JSONReporter
>>>
>>> CLIReporter().report(result)
>>> CSVReporter(output_path="rows.csv").report(result)
>>> JSONReporter().to_string(result)

See Also
--------
inventory_genie.core.region_manager.QueryResult : Input data structure.
"""

from inventory_genie.reporters.cli_reporter import CLIReporter
from inventory_genie.reporters.csv_reporter import CSVReporter
from inventory_genie.reporters.json_reporter import JSONReporter

__all__ = [
    "CLIReporter",
    "CSVReporter",
    "JSONReporter",
]
