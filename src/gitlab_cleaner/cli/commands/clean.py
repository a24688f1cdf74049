"""
Clean command: delete old CI jobs from a GitLab project.

Candidates are listed page by page and erased by a bounded pool of workers;
a summary is printed at the end and can be saved as JSON or Markdown.
"""

import asyncio
import signal
from pathlib import Path

import click

from gitlab_cleaner.cleanup.engine import DEFAULT_EXPIRATION_IN_DAYS, CleanupEngine
from gitlab_cleaner.cleanup.models import CleanupTarget
from gitlab_cleaner.cli.context import CleanerContext
from gitlab_cleaner.cli.decorators import (
    EXIT_CANCELLED,
    EXIT_PARTIAL_FAILURE,
    handle_errors,
    pass_context,
)
from gitlab_cleaner.cli.utils import (
    create_progress_bar,
    echo_info,
    echo_success,
    echo_warning,
    render_report,
)
from gitlab_cleaner.config import CleanerConfig
from gitlab_cleaner.reporting.report import CleanupReport
from gitlab_cleaner.utils.logging import get_logger

logger = get_logger(__name__)


def apply_overrides(
    config: CleanerConfig, workers: int | None, page_size: int | None
) -> CleanerConfig:
    """Return a copy of config with command-line performance overrides applied."""
    update = {}
    if workers is not None:
        update["max_workers"] = workers
    if page_size is not None:
        update["page_size"] = page_size
    if not update:
        return config

    performance = config.performance.model_copy(update=update)
    return config.model_copy(update={"performance": performance})


async def run_with_signals(
    engine: CleanupEngine,
    project: str,
    group: str | None,
    target: str,
    expiration_in_days: int,
) -> CleanupReport:
    """Run the engine with SIGINT/SIGTERM mapped to a graceful cancel."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError) as e:
            # Not available on this platform or outside the main thread
            logger.debug("signal_handler_unavailable", signal=sig.name, error=str(e))

    try:
        return await engine.run(
            project,
            group=group,
            target=target,
            expiration_in_days=expiration_in_days,
        )
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@click.command(name="clean")
@click.option(
    "-p",
    "--project",
    required=True,
    help="Project id, name or path (e.g. my-group/my-project)",
)
@click.option(
    "-g",
    "--group",
    default=None,
    help="Group/namespace used to resolve a project name",
)
@click.option(
    "-t",
    "--target",
    type=click.Choice([t.value for t in CleanupTarget], case_sensitive=False),
    default=CleanupTarget.JOBS.value,
    show_default=True,
    help="Resource class to clean",
)
@click.argument(
    "expiration_in_days",
    type=click.IntRange(min=0),
    default=DEFAULT_EXPIRATION_IN_DAYS,
    required=False,
)
@click.option(
    "--workers",
    type=click.IntRange(1, 50),
    default=None,
    help="Concurrent delete workers (default: from config, 8)",
)
@click.option(
    "--page-size",
    type=click.IntRange(1, 100),
    default=None,
    help="Jobs requested per page (default: from config, 50)",
)
@click.option(
    "--report-json",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Save the report as JSON",
)
@click.option(
    "--report-markdown",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Save the report as Markdown",
)
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    default=False,
    help="Skip confirmation prompt",
)
@pass_context
@handle_errors
def clean(
    ctx: CleanerContext,
    project: str,
    group: str | None,
    target: str,
    expiration_in_days: int,
    workers: int | None,
    page_size: int | None,
    report_json: Path | None,
    report_markdown: Path | None,
    yes: bool,
) -> None:
    """Delete CI jobs older than EXPIRATION_IN_DAYS (default: 365).

    Jobs that were already erased are skipped. Running the command twice is
    safe: jobs removed in the meantime are reported as already gone.

    Press Ctrl+C to stop early; deletions already in progress finish and a
    partial summary is printed.

    Examples:

        # Delete jobs older than a year
        gitlab-cleaner clean -p my-group/my-project

        # Delete jobs older than 30 days, project resolved within a group
        gitlab-cleaner clean -p my-project -g my-group 30 --yes

        # Save the report
        gitlab-cleaner clean -p 42 90 --report-json report.json
    """
    config = apply_overrides(ctx.config, workers, page_size)

    if not yes:
        prompt = (
            f"Delete {target} older than {expiration_in_days} days "
            f"from project '{project}' on {config.gitlab.url}?"
        )
        if not click.confirm(prompt, default=False):
            echo_info("Cleanup cancelled")
            return

    logger.debug(
        "clean_planned",
        project=project,
        group=group,
        target=target,
        expiration_in_days=expiration_in_days,
        max_workers=config.performance.max_workers,
        page_size=config.performance.page_size,
    )

    with create_progress_bar() as progress:
        task_id = progress.add_task(f"Deleting {target}", total=None)

        def on_progress(report: CleanupReport, dispatched: int) -> None:
            progress.update(task_id, completed=report.attempted, total=dispatched)

        engine = CleanupEngine(config, progress_callback=on_progress)
        report = asyncio.run(
            run_with_signals(engine, project, group, target, expiration_in_days)
        )

    render_report(report)

    if report_json:
        report.generate_json(report_json)
        echo_success(f"JSON report saved to {report_json}")
    if report_markdown:
        report.generate_markdown(report_markdown)
        echo_success(f"Markdown report saved to {report_markdown}")

    if report.cancelled:
        echo_warning("Cleanup was cancelled before all candidates were processed")
        raise click.exceptions.Exit(EXIT_CANCELLED)

    if report.has_failures:
        echo_warning(f"{report.failed_count} deletion(s) failed")
        raise click.exceptions.Exit(EXIT_PARTIAL_FAILURE)

    echo_success(
        f"Deleted {report.succeeded} {target} ({report.already_gone} already gone)"
    )
