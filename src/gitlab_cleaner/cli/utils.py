"""
Utility functions for CLI commands.

This module provides helpers for echoing status lines, progress display and
rendering the cleanup report.
"""

from typing import Any

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from gitlab_cleaner.reporting.colors import CleanerColors
from gitlab_cleaner.reporting.report import CleanupReport

console = Console()

# Failures listed on the console; the JSON/Markdown reports list all of them
MAX_FAILURES_SHOWN = 20


def echo_success(message: str) -> None:
    """Print success message in green."""
    click.secho(f"✓ {message}", fg="green")


def echo_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    """Print info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def format_duration(seconds: float) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g., "2h 30m 15s")
    """
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours = minutes // 60
    remaining_minutes = minutes % 60

    return f"{hours}h {remaining_minutes}m {remaining_seconds}s"


def format_count(count: int) -> str:
    """Format large numbers with thousands separator."""
    return f"{count:,}"


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
    show_header: bool = True,
) -> None:
    """
    Print a formatted table using rich.

    Args:
        title: Table title
        columns: Column headers
        rows: List of row data
        show_header: Whether to show header row
    """
    table = Table(title=title, show_header=show_header, border_style=CleanerColors.BORDER)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def create_progress_bar() -> Progress:
    """
    Create the cleanup progress display.

    The total grows as the lister discovers candidates, so the bar shows
    completed/dispatched rather than a fixed total.

    Returns:
        Rich Progress object
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def render_report(report: CleanupReport) -> None:
    """Print the cleanup summary and the sorted failure list."""
    status = "cancelled" if report.cancelled else "completed"
    rows = [
        ["Project ID", report.project_ref],
        ["Target", report.target],
        ["Older than", f"{report.expiration_in_days} days"],
        ["Status", status],
        ["Attempted", format_count(report.attempted)],
        ["Deleted", f"[{CleanerColors.DELETED}]{format_count(report.succeeded)}[/]"],
        ["Already gone", f"[{CleanerColors.ALREADY_GONE}]{format_count(report.already_gone)}[/]"],
        ["Failed", f"[{CleanerColors.FAILED}]{format_count(report.failed_count)}[/]"],
        ["Listing anomalies", format_count(len(report.anomalies))],
        ["Pages fetched", format_count(report.pages_fetched)],
    ]
    if report.duration_seconds is not None:
        rows.append(["Duration", format_duration(report.duration_seconds)])
    print_table("Cleanup Summary", ["Metric", "Value"], rows)

    failures = report.failed
    if failures:
        print_table(
            "Failed Deletions",
            ["Job ID", "Reason", "Detail"],
            [[f.job_id, f.reason.value, f.detail[:120]] for f in failures[:MAX_FAILURES_SHOWN]],
        )
        if len(failures) > MAX_FAILURES_SHOWN:
            click.echo(f"  ... and {len(failures) - MAX_FAILURES_SHOWN} more")

    if report.anomalies:
        echo_warning(
            f"{len(report.anomalies)} malformed job record(s) were skipped; see the log file."
        )
