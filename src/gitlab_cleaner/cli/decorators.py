"""
Decorators for CLI commands.

This module provides decorators for error handling and context passing.
"""

import functools
from collections.abc import Callable

import click

from gitlab_cleaner.cli.context import CleanerContext
from gitlab_cleaner.cli.utils import render_report
from gitlab_cleaner.client.exceptions import (
    AmbiguousProjectError,
    APIError,
    AuthenticationError,
    ConfigurationError,
    ListingError,
    NetworkError,
    ProjectResolutionError,
)
from gitlab_cleaner.utils.logging import get_logger, log_error

logger = get_logger(__name__)

EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2
EXIT_AUTH = 3
EXIT_API = 4
EXIT_PARTIAL_FAILURE = 5
EXIT_CANCELLED = 130


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass CleanerContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: CleanerContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        cleaner_ctx: CleanerContext = click_ctx.obj
        return f(cleaner_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    This decorator catches common exceptions and converts them to
    user-friendly error messages with appropriate exit codes.

    Exit codes:
        0: Success
        1: Unexpected error
        2: Configuration error
        3: Authentication error
        4: API, listing or project resolution error
        5: Some deletions failed
        130: Cancelled
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except click.exceptions.Exit:
            # Let Exit exceptions pass through (they're intentional exits)
            raise

        except ConfigurationError as e:
            logger.error("configuration_error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nSet GITLAB_URL and GITLAB_TOKEN, or check your configuration file.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_CONFIG) from e

        except AuthenticationError as e:
            logger.error("authentication_error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo(
                "\nPlease verify that GITLAB_TOKEN is valid and has the api scope.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_AUTH) from e

        except ProjectResolutionError as e:
            logger.error("project_resolution_error", error=str(e))
            click.echo(f"Project Error: {e}", err=True)
            if isinstance(e, AmbiguousProjectError) and e.candidates:
                click.echo("\nCandidates:", err=True)
                for candidate in e.candidates:
                    click.echo(f"  - {candidate}", err=True)
                click.echo("\nUse --group or the full project path.", err=True)
            raise click.exceptions.Exit(EXIT_API) from e

        except ListingError as e:
            logger.error("listing_error", error=str(e))
            if e.report is not None:
                render_report(e.report)
            click.echo(f"Listing Error: {e}", err=True)
            click.echo("\nThe run stopped early; the summary above is partial.", err=True)
            raise click.exceptions.Exit(EXIT_API) from e

        except APIError as e:
            logger.error("api_error", error=str(e), status_code=e.status_code)
            click.echo(f"API Error: {e}", err=True)
            if e.status_code:
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            raise click.exceptions.Exit(EXIT_API) from e

        except NetworkError as e:
            logger.error("network_error", error=str(e))
            click.echo(f"Network Error: {e}", err=True)
            raise click.exceptions.Exit(EXIT_API) from e

        except Exception as e:
            log_error(logger, e, context=f.__name__)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(EXIT_UNEXPECTED) from e

    return wrapper
