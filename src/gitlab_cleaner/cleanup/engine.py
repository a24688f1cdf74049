"""Cleanup engine facade.

Resolves the project, picks the target strategy and wires a lister and a
supervisor for one run. The CLI talks to this class only.
"""

import httpx

from gitlab_cleaner.cleanup.lister import ResourceLister
from gitlab_cleaner.cleanup.models import CleanupTarget
from gitlab_cleaner.cleanup.supervisor import CleanupSupervisor, ProgressCallback
from gitlab_cleaner.cleanup.targets import get_strategy
from gitlab_cleaner.client.gitlab_client import GitLabClient
from gitlab_cleaner.config import CleanerConfig
from gitlab_cleaner.reporting.report import CleanupReport
from gitlab_cleaner.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_EXPIRATION_IN_DAYS = 365


class CleanupEngine:
    """Runs cleanups against one GitLab instance."""

    def __init__(
        self,
        config: CleanerConfig,
        progress_callback: ProgressCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the engine.

        Args:
            config: Loaded configuration (URL and token already validated)
            progress_callback: Forwarded to the supervisor
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.progress_callback = progress_callback
        self.transport = transport
        self._supervisor: CleanupSupervisor | None = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """Request cancellation of the current run."""
        self._cancel_requested = True
        if self._supervisor is not None:
            self._supervisor.cancel()

    async def run(
        self,
        project: str | int,
        group: str | None = None,
        target: CleanupTarget | str = CleanupTarget.JOBS,
        expiration_in_days: int = DEFAULT_EXPIRATION_IN_DAYS,
    ) -> CleanupReport:
        """Clean one project.

        Args:
            project: Project id, name or path
            group: Optional namespace used to resolve the project
            target: Resource class to clean
            expiration_in_days: Items older than this many days are removed

        Returns:
            CleanupReport for the run
        """
        strategy = get_strategy(target)
        performance = self.config.performance

        async with GitLabClient.from_config(self.config, transport=self.transport) as client:
            project_id = await client.resolve_project(project, group)
            logger.debug(
                "cleanup_run_prepared",
                project=str(project),
                project_id=project_id,
                target=strategy.target.value,
                expiration_in_days=expiration_in_days,
            )

            rate_limit_policy = self.config.retry.rate_limit_policy()
            lister = ResourceLister(
                client,
                strategy,
                expiration_in_days=expiration_in_days,
                page_size=performance.page_size,
                rate_limit_policy=rate_limit_policy,
            )
            self._supervisor = CleanupSupervisor(
                client,
                strategy,
                max_workers=performance.max_workers,
                queue_size=performance.effective_queue_size,
                rate_limit_policy=rate_limit_policy,
                progress_callback=self.progress_callback,
            )
            if self._cancel_requested:
                self._supervisor.cancel()

            try:
                return await self._supervisor.run(project_id, lister)
            finally:
                self._supervisor = None
