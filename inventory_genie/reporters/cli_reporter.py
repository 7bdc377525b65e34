"""
CLI Reporter Module
===================

Rich terminal output for query results and the table catalogue.

Classes
-------
CLIReporter
    Main reporter class for terminal output.

Example
-------
>>> from inventory_genie.reporters import CLIReporter
>>>
>>> reporter = CLIReporter()
>>> reporter.report(query_result)

Notes
-----
Nested values (tag maps, lists of attachments) are rendered as compact
JSON so that every row fits in one table line.

See Also
--------
rich : Python library for rich text and formatting.
CSVReporter : For data export.
JSONReporter : For programmatic access.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.region_manager import QueryResult

logger = logging.getLogger(__name__)


def format_value(value: Any) -> str:
    """Render a row value as display text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, separators=(",", ":"))
    return str(value)


class CLIReporter:
    """
    Reporter for displaying query results in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.
    max_width : int, default=60
        Cells longer than this are truncated.

    Examples
    --------
    >>> reporter = CLIReporter()
    >>> reporter.report(result, columns=["vpc_id", "cidr_block", "region"])

    Displaying progress:

    >>> with reporter.create_progress() as progress:
    ...     task = progress.add_task("Querying...", total=None)
    """

    def __init__(self, console: Optional[Console] = None, max_width: int = 60) -> None:
        self.console = console or Console()
        self.max_width = max_width
        logger.debug("Initialized CLIReporter")

    def report(self, result: QueryResult, columns: Optional[List[str]] = None) -> None:
        """
        Print the header, summary, rows and errors of a query.

        Parameters
        ----------
        result : QueryResult
            The query result to display.
        columns : list of str, optional
            Columns to show, in order. Defaults to every column.
        """
        self._print_header(result.table, result.regions_queried)
        self._print_summary(result)

        if result.rows:
            self._print_rows(result, columns or result.columns())
        else:
            self.console.print("\n[yellow]No rows returned.[/yellow]")

        if result.errors:
            self._print_errors(result.errors)

    def report_tables(self, tables: Iterable[BaseTable]) -> None:
        """
        Print the table catalogue.

        Parameters
        ----------
        tables : iterable of BaseTable
            Tables to list.
        """
        table = Table(title="Available Tables", title_style="bold")
        table.add_column("Table", style="cyan", no_wrap=True)
        table.add_column("Service", style="yellow")
        table.add_column("Scope", style="dim")
        table.add_column("Description", style="white")

        for entry in tables:
            table.add_row(
                entry.name,
                entry.service,
                "regional" if entry.regional else "global",
                entry.description,
            )

        self.console.print(table)

    # =========================================================================
    # Private Methods: Output Formatting
    # =========================================================================

    def _print_header(self, table_name: str, regions: List[str]) -> None:
        region_text = (
            ", ".join(regions) if len(regions) <= 5
            else f"{len(regions)} regions"
        )

        header_text = Text()
        header_text.append(f"\n{table_name}\n", style="bold blue")
        header_text.append(f"Regions: {region_text}", style="dim")

        self.console.print(Panel(header_text, border_style="blue"))

    def _print_summary(self, result: QueryResult) -> None:
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", style="white")

        summary.add_row("Rows:", str(result.row_count))
        summary.add_row("Regions Queried:", str(len(result.regions_queried)))
        summary.add_row(
            "Query Time:",
            result.query_time.strftime("%Y-%m-%d %H:%M:%S UTC")
        )

        if result.errors:
            summary.add_row(
                "Errors:",
                f"[yellow]{len(result.errors)} region(s) had errors[/]"
            )

        self.console.print("\n")
        self.console.print(summary)

    def _print_rows(self, result: QueryResult, columns: List[str]) -> None:
        table = Table(
            title=f"\n{result.table}",
            title_style="bold",
            show_lines=False,
        )
        for column in columns:
            table.add_column(column, overflow="fold")

        for row in result.rows:
            table.add_row(
                *(
                    escape(self._truncate(format_value(row.get(c)), self.max_width))
                    for c in columns
                )
            )

        self.console.print(table)

    def _print_errors(self, errors: Dict[str, List[str]]) -> None:
        self.console.print("\n[yellow bold]Errors encountered:[/yellow bold]")

        for region, error_list in errors.items():
            self.console.print(f"\n[yellow]{region}:[/yellow]")
            for error in error_list:
                self.console.print(f"  [red]• {escape(error)}[/red]")

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        """
        Truncate text to maximum length with ellipsis.
        """
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."

    # =========================================================================
    # Public Methods: Progress and Messages
    # =========================================================================

    def create_progress(self) -> Progress:
        """
        Create a spinner for the duration of a query.

        Returns
        -------
        Progress
            Rich Progress instance with spinner.
        """
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=True,
        )

    def print_completion_message(self, output_file: Optional[str] = None) -> None:
        """
        Print query completion message.

        Parameters
        ----------
        output_file : str, optional
            Path to output file if results were saved.
        """
        self.console.print("\n[green bold]Query complete![/green bold]")
        if output_file:
            self.console.print(f"[dim]Results saved to: {output_file}[/dim]")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"\n[red bold]Error:[/red bold] {escape(message)}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"\n[yellow bold]Warning:[/yellow bold] {escape(message)}")

    def __repr__(self) -> str:
        return "CLIReporter()"
