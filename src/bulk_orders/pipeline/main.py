"""CLI entry point for the bulk order engine.

This module provides the command-line interface for processing bulk order
files with progress indicators, summary tables and error handling.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
import uvicorn
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from bulk_orders import __version__
from bulk_orders.gateways.catalog import load_catalog
from bulk_orders.mock_servers.app import create_mock_commerce_app
from bulk_orders.models.config import ConfigManager, EngineConfig
from bulk_orders.models.data_models import ProgressSnapshot, RunReport
from bulk_orders.parsing.csv_parser import generate_template
from bulk_orders.pipeline.orchestrator import BulkOrderRunner
from bulk_orders.pipeline.output import CSVReportExporter, JSONOutputFormatter


console = Console()

MAX_ROW_ERRORS_SHOWN = 10


@click.group()
@click.version_option(version=__version__, prog_name="bulk-orders")
def cli() -> None:
    """Bulk Orders - turn uploaded order files into cart line items."""


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file",
)
@click.option(
    "--catalog",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Product catalog YAML for the in-memory commerce backend",
)
@click.option("--api-url", help="Base URL of a remote commerce API (overrides config)")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Report file path (overrides config)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["csv", "json"], case_sensitive=False),
    default="csv",
    help="Report format",
)
@click.option("--batch-size", "-b", type=int, help="Rows per batch (overrides config)")
@click.option("--max-concurrent", "-m", type=int, help="Concurrent availability checks (overrides config)")
@click.option("--no-alternatives", is_flag=True, help="Skip alternative suggestions for rejected items")
@click.option(
    "--timeout",
    "-t",
    type=float,
    help="Stop starting new batches after this many seconds (overrides config)",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)
@click.option("--strict", is_flag=True, help="Abort on the first invalid row")
@click.option("--no-progress", is_flag=True, help="Disable progress bars (useful for CI/CD)")
@click.option("--debug", is_flag=True, help="Print stack traces on errors")
def process(
    file: Path,
    config_path: Path,
    catalog: Optional[Path],
    api_url: Optional[str],
    output: Optional[Path],
    output_format: str,
    batch_size: Optional[int],
    max_concurrent: Optional[int],
    no_alternatives: bool,
    timeout: Optional[float],
    log_level: Optional[str],
    strict: bool,
    no_progress: bool,
    debug: bool,
) -> None:
    """
    Process a bulk order FILE against the commerce backend.

    Examples:

        # Run against the demo catalog
        $ bulk-orders process orders.csv --catalog config/catalog.yaml

        # Run against a remote API with a JSON report
        $ bulk-orders process orders.csv --api-url http://localhost:8000 --format json

        # Disable progress bars for CI/CD
        $ bulk-orders process orders.csv --catalog config/catalog.yaml --no-progress
    """
    try:
        cli_overrides = {
            "api_url": api_url,
            "batch_size": batch_size,
            "max_concurrent": max_concurrent,
            "run_timeout_seconds": timeout,
            "log_level": log_level.upper() if log_level else None,
            "enable_alternatives": False if no_alternatives else None,
        }

        engine_config = ConfigManager(config_path).load_config(cli_overrides)
        output_path = output or _default_output_path(engine_config, output_format.lower())

        _display_config_summary(engine_config, no_progress)

        runner = BulkOrderRunner(engine_config, catalog_path=catalog)
        report = asyncio.run(_run_with_progress(runner, file, not strict, no_progress))

        if output_format.lower() == "json":
            JSONOutputFormatter().save(report.result, str(output_path))
        else:
            CSVReportExporter().save(report.result, str(output_path))

        _display_results(report, output_path, no_progress)

        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Run interrupted by user[/yellow]")
        sys.exit(130)  # Standard exit code for SIGINT
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}", style="bold red")
        if debug:
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the template to a file instead of stdout",
)
def template(output: Optional[Path]) -> None:
    """Print an example bulk order CSV."""
    content = generate_template()
    if output is None:
        click.echo(content, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    console.print(f"Template written to: {output}")


@cli.command("serve-mock")
@click.option(
    "--catalog",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="config/catalog.yaml",
    help="Product catalog YAML to serve",
)
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", type=int, default=8000, help="Bind port")
@click.option("--error-rate", type=float, default=0.0, help="Probability of simulated 5xx errors")
@click.option("--seed", type=int, help="Random seed for deterministic error injection")
def serve_mock(catalog: Path, host: str, port: int, error_rate: float, seed: Optional[int]) -> None:
    """Run the mock commerce API server."""
    app = create_mock_commerce_app(load_catalog(catalog), error_rate=error_rate, random_seed=seed)
    uvicorn.run(app, host=host, port=port)


def _default_output_path(config: EngineConfig, output_format: str) -> Path:
    if output_format == "json":
        return Path(config.output_directory) / "summary.json"
    return config.output_path


async def _run_with_progress(
    runner: BulkOrderRunner,
    file: Path,
    skip_invalid: bool,
    no_progress: bool,
) -> RunReport:
    """
    Run the bulk order with progress tracking.

    Args:
        runner: Configured run orchestrator
        file: Bulk order file to process
        skip_invalid: Keep going past invalid rows
        no_progress: Whether to disable progress bars

    Returns:
        Run report
    """
    if no_progress:
        # Run without progress bars (for CI/CD)
        console.print("[cyan]Processing bulk order...[/cyan]")
        return await runner.run_file(file, skip_invalid=skip_invalid)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task("[green]Processing items...", total=None)

        def on_progress(snapshot: ProgressSnapshot) -> None:
            progress.update(
                task_id,
                total=snapshot.total_items,
                completed=snapshot.processed_items,
                description=f"[green]Batch {snapshot.current_batch}/{snapshot.total_batches}",
            )

        return await runner.run_file(file, on_progress=on_progress, skip_invalid=skip_invalid)


def _display_config_summary(config: EngineConfig, no_progress: bool) -> None:
    """Display configuration summary before running."""
    if no_progress:
        return

    console.print("\n[bold cyan]Bulk Order Configuration[/bold cyan]")
    console.print(f"  Batch Size: {config.batch_size}")
    console.print(f"  Max Concurrent: {config.max_concurrent}")
    console.print(f"  Alternatives: {'on' if config.enable_alternatives else 'off'}")
    console.print(f"  Timeout: {config.run_timeout_seconds or 'none'}")
    console.print()


def _display_results(report: RunReport, output_path: Path, no_progress: bool) -> None:
    """Display final results summary."""
    summary = report.summary
    parse_errors = report.parse_result.errors

    if no_progress:
        # Simple output for CI/CD
        console.print(
            f"✓ Run complete: {summary.successful_count} confirmed, "
            f"{summary.failed_count} rejected, {len(parse_errors)} invalid rows"
        )
        console.print(f"✓ Report saved to: {output_path}")
        return

    title = "Run Cancelled" if summary.cancelled else "Run Complete!"
    color = "yellow" if summary.cancelled else "green"
    console.print(f"\n[bold {color}]{title}[/bold {color}]\n")

    summary_table = Table(title="Execution Summary", show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Items", str(summary.total_items))
    summary_table.add_row("Confirmed", str(summary.successful_count))
    summary_table.add_row("Rejected", str(summary.failed_count))
    summary_table.add_row("Shortfalls", str(summary.partial_count))
    summary_table.add_row("Quantity", str(summary.total_quantity_granted))
    summary_table.add_row("Total Value", f"${summary.total_value:.2f}")
    summary_table.add_row("Success Rate", f"{summary.success_rate * 100:.1f}%")
    summary_table.add_row("Processing Time", f"{summary.processing_time_ms / 1000:.2f}s")
    console.print(summary_table)
    console.print()

    if summary.failures_by_reason:
        reason_table = Table(title="Failures by Reason")
        reason_table.add_column("Reason", style="cyan")
        reason_table.add_column("Items", justify="right", style="yellow")
        for reason, count in sorted(summary.failures_by_reason.items()):
            reason_table.add_row(reason, str(count))
        console.print(reason_table)
        console.print()

    if parse_errors:
        error_table = Table(title="Invalid Rows")
        error_table.add_column("Row", justify="right", style="cyan")
        error_table.add_column("Error", style="red")
        for error in parse_errors[:MAX_ROW_ERRORS_SHOWN]:
            error_table.add_row(str(error.row), error.message)
        if len(parse_errors) > MAX_ROW_ERRORS_SHOWN:
            error_table.add_row("...", f"{len(parse_errors) - MAX_ROW_ERRORS_SHOWN} more")
        console.print(error_table)
        console.print()

    console.print(f"[bold]Report saved to:[/bold] {output_path}")
    console.print()


if __name__ == "__main__":
    cli()
