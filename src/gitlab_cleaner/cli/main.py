"""
Main CLI entry point for gitlab-cleaner.

This module provides the command-line interface for deleting old CI jobs
from GitLab projects.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from gitlab_cleaner import __version__
from gitlab_cleaner.cli.commands import clean as clean_commands
from gitlab_cleaner.cli.context import CleanerContext
from gitlab_cleaner.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="gitlab-cleaner")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (optional; GITLAB_URL/GITLAB_TOKEN suffice)",
    envvar="GITLAB_CLEANER_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set console logging level (default: from config, WARNING)",
    envvar="GITLAB_CLEANER_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Log file path (default: logs/gitlab-cleaner.log)",
    envvar="GITLAB_CLEANER_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """gitlab-cleaner - Delete old CI jobs from GitLab projects.

    Credentials are read from GITLAB_URL (API base, e.g.
    https://gitlab.com/api/v4) and GITLAB_TOKEN, or from a .env file.

    Examples:

        # Delete jobs older than 100 days
        gitlab-cleaner clean -p my-group/my-project 100

        # Use a configuration file
        gitlab-cleaner --config cleaner.yaml clean -p 42
    """
    # Console only until the configuration (and its log file) is loaded
    configure_logging(level=log_level or "WARNING")

    ctx.obj = CleanerContext(
        config_path=config,
        log_level=log_level,
        log_file=log_file,
    )


cli.add_command(clean_commands.clean)


def main() -> int:
    """Main entry point for CLI."""
    try:
        rv = cli(standalone_mode=False)
        return rv if isinstance(rv, int) else 0
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 130
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
