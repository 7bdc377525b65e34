"""
Inventory-Genie CLI - AWS Resource Inventory

Main entry point for the command-line interface.
"""

import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from .core.base_table import BaseTable
from .core.config import ConnectionConfig
from .core.context import ConnectionContext
from .core.exceptions import ConfigError, InventoryGenieError, UnknownTableError
from .core.logging import setup_logging
from .core.region_manager import QueryResult, RegionManager
from .reporters.cli_reporter import CLIReporter
from .reporters.csv_reporter import CSVReporter
from .reporters.json_reporter import JSONReporter
from .tables import TABLES, get_table, table_names

__version__ = "0.1.0"

console = Console()

EXIT_QUERY_ERROR = 1
EXIT_CONFIG_ERROR = 2


def parse_where(ctx, param, value: Tuple[str, ...]) -> Dict[str, Any]:
    """Parse repeated ``key=value`` options into a qualifier map."""
    quals: Dict[str, Any] = {}
    for clause in value:
        key, sep, qual_value = clause.partition("=")
        key = key.strip()
        if not sep or not key:
            raise click.BadParameter(f"'{clause}' is not in key=value form")
        qual_value = qual_value.strip()
        if key in quals:
            existing = quals[key]
            quals[key] = (existing if isinstance(existing, list) else [existing]) + [
                qual_value
            ]
        else:
            quals[key] = qual_value
    return quals


def connection_options(func: Callable) -> Callable:
    """Attach the options every AWS-facing command shares."""
    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(dir_okay=False),
            default=None,
            help="TOML file with a [connection] table",
        ),
        click.option(
            "--profile",
            "-p",
            default=None,
            help="AWS profile name from ~/.aws/credentials",
        ),
        click.option("--access-key", default=None, help="AWS access key id"),
        click.option("--secret-key", default=None, help="AWS secret access key"),
        click.option("--session-token", default=None, help="AWS session token"),
        click.option(
            "--log-level",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
            default="WARNING",
            help="Log level for stderr (default: WARNING)",
        ),
        click.option("--log-file", default=None, help="Also write logs to this file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(
    config_path: Optional[str],
    **overrides: Any,
) -> ConnectionConfig:
    """Load the optional config file and apply command-line overrides."""
    base = ConnectionConfig.from_file(config_path) if config_path else ConnectionConfig()
    return base.merged(**overrides)


@click.group()
@click.version_option(version=__version__, prog_name="inventory-genie")
def cli():
    """
    Inventory-Genie: AWS Resource Inventory

    Lists AWS resources as flat rows, one table per resource type, across
    every configured region.
    """
    pass


@cli.command("tables")
def list_tables():
    """List every queryable table."""
    reporter = CLIReporter(console)
    reporter.report_tables(TABLES[name]() for name in table_names())


@cli.command("query")
@click.argument("table_name", metavar="TABLE")
@click.option(
    "--region",
    "-r",
    "regions",
    multiple=True,
    help="Region to query; repeat for several (default: configured or default region)",
)
@click.option(
    "--all-regions",
    is_flag=True,
    help="Query every region enabled for the account",
)
@click.option(
    "--where",
    "-w",
    "quals",
    multiple=True,
    callback=parse_where,
    help="Equality qualifier key=value; repeat for several",
)
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Maximum rows")
@click.option(
    "--column",
    "-c",
    "columns",
    multiple=True,
    help="Column to show; repeat for several (default: all)",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["cli", "csv", "json"]),
    default="cli",
    help="Output format (default: cli)",
)
@click.option(
    "--output",
    "-o",
    default=None,
    help="Output file path for csv/json",
)
@click.option(
    "--ignore-error-code",
    "ignore_error_codes",
    multiple=True,
    help="Error code (or substring) to treat as an empty result; repeatable",
)
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum parallel region queries (default: 10)",
)
@connection_options
def query(
    table_name: str,
    regions: Tuple[str, ...],
    all_regions: bool,
    quals: Dict[str, Any],
    limit: Optional[int],
    columns: Tuple[str, ...],
    output_format: str,
    output: Optional[str],
    ignore_error_codes: Tuple[str, ...],
    max_workers: Optional[int],
    config_path: Optional[str],
    profile: Optional[str],
    access_key: Optional[str],
    secret_key: Optional[str],
    session_token: Optional[str],
    log_level: str,
    log_file: Optional[str],
):
    """
    Query a table.

    Examples:

        # All VPCs in the default region
        inventory-genie query aws_vpc

        # Subnets of one VPC in two regions
        inventory-genie query aws_vpc_subnet -r us-east-1 -r eu-west-1 \\
            --where vpc_id=vpc-0abc

        # One key pair, by name
        inventory-genie query aws_ec2_key_pair --where key_name=deploy

        # Every enabled region, exported to JSON
        inventory-genie query aws_eks_cluster --all-regions -f json -o eks.json

        # Use a specific AWS profile
        inventory-genie query aws_iam_user --profile production
    """
    setup_logging(level=log_level, log_file=log_file)
    reporter = CLIReporter(console)

    if all_regions and regions:
        raise click.UsageError("--region and --all-regions are mutually exclusive")

    try:
        table = get_table(table_name)
        config = build_config(
            config_path,
            profile=profile,
            access_key=access_key,
            secret_key=secret_key,
            session_token=session_token,
            regions=list(regions),
            ignore_error_codes=list(ignore_error_codes),
            max_workers=max_workers,
        )
        context = ConnectionContext(config)
    except (ConfigError, UnknownTableError) as e:
        reporter.print_error(str(e))
        sys.exit(EXIT_CONFIG_ERROR)

    with context:
        try:
            manager = RegionManager(context)
            target_regions = manager.list_enabled_regions() if all_regions else None
            result = _run_query(
                manager, table, quals, limit, target_regions, output_format
            )
        except ConfigError as e:
            reporter.print_error(str(e))
            sys.exit(EXIT_CONFIG_ERROR)
        except (ClientError, BotoCoreError, InventoryGenieError) as e:
            reporter.print_error(str(e))
            sys.exit(EXIT_QUERY_ERROR)
        except KeyboardInterrupt:
            reporter.print_warning("Query cancelled by user.")
            sys.exit(130)

    _output_result(result, reporter, list(columns) or None, output_format, output)

    if result.has_errors:
        sys.exit(EXIT_QUERY_ERROR)


def _run_query(
    manager: RegionManager,
    table: BaseTable,
    quals: Dict[str, Any],
    limit: Optional[int],
    regions: Optional[List[str]],
    output_format: str,
) -> QueryResult:
    """Run the query, with a spinner when the output is the terminal."""
    if output_format != "cli":
        return manager.query(table, quals=quals, limit=limit, regions=regions)

    reporter = CLIReporter(console)
    with reporter.create_progress() as progress:
        task = progress.add_task(f"Querying {table.name}...", total=None)
        completed: List[str] = []

        def progress_callback(region: str, status: str):
            if status in ("complete", "error"):
                completed.append(region)
                progress.update(
                    task,
                    description=f"Querying {table.name}... ({len(completed)} done, last: {region})",
                )

        return manager.query(
            table,
            quals=quals,
            limit=limit,
            regions=regions,
            progress_callback=progress_callback,
        )


def _output_result(
    result: QueryResult,
    reporter: CLIReporter,
    columns: Optional[List[str]],
    output_format: str,
    output: Optional[str],
) -> None:
    """Render or export the query result."""
    output_file = None

    if output_format == "json" and not output:
        click.echo(JSONReporter().to_string(result))
        return
    if output_format == "json" or (output and output.endswith(".json")):
        output_file = JSONReporter(output_path=output).report(result)
    elif output_format == "csv" or output:
        output_file = CSVReporter(output_path=output).report(result, columns=columns)
    else:
        reporter.report(result, columns=columns)

    if output_file and result.has_errors:
        for region, errors in result.errors.items():
            reporter.print_warning(f"{region}: {'; '.join(errors)}")

    reporter.print_completion_message(output_file)


@cli.command("regions")
@connection_options
def list_regions(
    config_path: Optional[str],
    profile: Optional[str],
    access_key: Optional[str],
    secret_key: Optional[str],
    session_token: Optional[str],
    log_level: str,
    log_file: Optional[str],
):
    """List the regions enabled for the account."""
    setup_logging(level=log_level, log_file=log_file)
    reporter = CLIReporter(console)

    try:
        config = build_config(
            config_path,
            profile=profile,
            access_key=access_key,
            secret_key=secret_key,
            session_token=session_token,
        )
        with ConnectionContext(config) as context:
            regions = RegionManager(context).list_enabled_regions()
    except ConfigError as e:
        reporter.print_error(str(e))
        sys.exit(EXIT_CONFIG_ERROR)
    except (ClientError, BotoCoreError) as e:
        reporter.print_error(str(e))
        sys.exit(EXIT_QUERY_ERROR)

    console.print(f"\n[bold]Enabled AWS Regions ({len(regions)} total):[/bold]\n")
    for region in regions:
        console.print(f"  • {region}")
    console.print()


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
