"""
Command-line interface for tracefuse.

This module provides the CLI entry point for the installed package.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from tracefuse import __version__
from tracefuse.config import settings
from tracefuse.core.models import RequestGroup
from tracefuse.exceptions import TraceFuseError
from tracefuse.formatters import BaseFormatter, CSVFormatter, FormatterError, JSONFormatter
from tracefuse.logger import get_logger, setup_logger
from tracefuse.parser.patterns import PATTERNS_VERSION
from tracefuse.pipeline import trace_files
from tracefuse.runner.orchestrator import RunOrchestrator
from tracefuse.utils.helpers import format_duration, truncate_string
from tracefuse.utils.validators import validate_http_file_path

# Initialize console for rich output
console = Console()
logger = get_logger(__name__)


def setup_cli_logging(verbose: bool = False) -> None:
    """Setup logging for CLI usage."""
    if verbose:
        level = "DEBUG"
        log_format = "simple"
    else:
        level = settings.log_level
        log_format = settings.log_format

    setup_logger(level=level, log_format=log_format)


def get_formatter(output: str, output_format: Optional[str]) -> BaseFormatter:
    """Pick a formatter from the explicit format or the output file suffix."""
    chosen = output_format or ("csv" if Path(output).suffix.lower() == ".csv" else "json")
    if chosen == "csv":
        return CSVFormatter(Path(output))
    return JSONFormatter(Path(output))


def render_group(group: RequestGroup) -> None:
    """Print a summary table of a request group."""
    table = Table(title=f"{group.name} ({group.file_path})", show_header=True)
    table.add_column("Request", style="cyan")
    table.add_column("Status")
    table.add_column("HTTP", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Tests", justify="right")
    table.add_column("Attempts", justify="right")

    for result in group.results:
        status_style = "green" if result.passed else "red"
        http = ""
        if result.response:
            http = f"{result.response.status_code} {result.response.status_text}"
        passed_tests = sum(1 for test in result.tests if test.passed)
        attempts = str(result.retry_info.actual_attempts) if result.retry_info else ""
        table.add_row(
            escape(truncate_string(result.name, 60)),
            f"[{status_style}]{result.status.value}[/{status_style}]",
            http,
            format_duration(result.duration),
            f"{passed_tests}/{len(result.tests)}" if result.tests else "",
            attempts,
        )

    console.print(table)

    for result in group.results:
        if result.error_message:
            console.print(f"[red]{escape(result.name)}: {escape(result.error_message)}[/red]")
        for test in result.tests:
            if not test.passed:
                console.print(f"[red]  ✗ {escape(test.name)}[/red] {escape(test.message or '')}")

    summary_style = "green" if group.status.value == "Passed" else "red"
    console.print(
        f"[{summary_style}]{group.status.value}[/{summary_style}]: "
        f"{group.passed_count} passed, {group.failed_count} failed in {group.duration}"
    )


def finish(group: RequestGroup, output: Optional[str], output_format: Optional[str]) -> None:
    """Render, optionally write, and exit with the group's status."""
    render_group(group)

    if output:
        try:
            get_formatter(output, output_format).write(group)
        except FormatterError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
        console.print(f"[green]✓ Results written to {output}[/green]")

    sys.exit(0 if group.failed_count == 0 else 1)


@click.group()
def cli():
    """tracefuse - reconcile HTTP test runner logs, request files and reports."""
    pass


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--env", "-e", "environment", default=None, help="Runner environment (default: from config)")
@click.option("--working-dir", "-w", default=None, type=click.Path(file_okay=False),
              help="Directory to run the test runner in")
@click.option("--output", "-o", default=None, help="Output file path (.json or .csv)")
@click.option("--format", "-f", "output_format", type=click.Choice(["json", "csv"]), default=None,
              help="Output format (default: from output suffix)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def run(file_path: str, environment: Optional[str], working_dir: Optional[str],
        output: Optional[str], output_format: Optional[str], verbose: bool) -> None:
    """Run a request file with the test runner and show reconciled results."""
    setup_cli_logging(verbose)

    try:
        validate_http_file_path(file_path)
    except TraceFuseError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(Panel(
        f"[bold cyan]tracefuse[/bold cyan]\n"
        f"Version: {__version__}\n"
        f"Runner: {settings.cli_executable}\n"
        f"Environment: {environment or settings.environment or 'default'}",
        title="Configuration",
        border_style="cyan"
    ))

    orchestrator = RunOrchestrator(working_dir=working_dir)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task(f"[cyan]Running {Path(file_path).name}...", total=None)
            group = asyncio.run(orchestrator.run(file_path, environment))
            progress.update(task, completed=True)
    except TraceFuseError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Run interrupted by user[/yellow]")
        sys.exit(130)

    if group is None:
        console.print("[yellow]Run was superseded, no results[/yellow]")
        sys.exit(1)

    finish(group, output, output_format)


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--log", "-l", "log_path", required=True, type=click.Path(dir_okay=False),
              help="Runner log or captured output")
@click.option("--report", "-r", "report_path", default=None, type=click.Path(dir_okay=False),
              help="XML test report")
@click.option("--output", "-o", default=None, help="Output file path (.json or .csv)")
@click.option("--format", "-f", "output_format", type=click.Choice(["json", "csv"]), default=None,
              help="Output format (default: from output suffix)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def parse(file_path: str, log_path: str, report_path: Optional[str],
          output: Optional[str], output_format: Optional[str], verbose: bool) -> None:
    """Reconcile artefacts of an earlier run without invoking the runner."""
    setup_cli_logging(verbose)

    try:
        group = trace_files(file_path, log_path, report_path)
    except TraceFuseError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    finish(group, output, output_format)


@cli.command()
def version():
    """Show version information."""
    console.print(f"tracefuse version {__version__}")


@cli.command()
def info():
    """Show configuration information."""
    table = Table(title="tracefuse Configuration", show_header=True)
    table.add_column("Component", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Version", __version__)
    table.add_row("Python", sys.version.split()[0])
    table.add_row("Log Patterns", PATTERNS_VERSION)
    table.add_row("Runner", settings.cli_executable)
    table.add_row("Environment", settings.environment or "default")
    table.add_row("Report Path", settings.report_path)
    table.add_row("Log Path", settings.log_path)
    table.add_row("Process Timeout", f"{settings.process_timeout:g}s")
    table.add_row("Report Wait", f"{settings.report_wait_timeout:g}s every {settings.report_poll_interval:g}s")

    console.print(table)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
