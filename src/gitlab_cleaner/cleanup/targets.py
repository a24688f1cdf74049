"""Cleanup targets.

Each cleanup target supplies its own listing, parsing, eligibility and
deletion operations while sharing the lister, supervisor and report
machinery. Adding a target means adding a strategy and registering it.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from gitlab_cleaner.cleanup.models import CleanupTarget, Job, ResourcePage
from gitlab_cleaner.client.exceptions import ListingAnomalyError


class CleanupStrategy(ABC):
    """Operations a cleanup target must provide."""

    target: CleanupTarget

    @abstractmethod
    async def list_page(self, client: Any, project_id: int, page: int, per_page: int) -> ResourcePage:
        """Fetch one page of candidate records."""

    @abstractmethod
    def parse(self, record: dict[str, Any]) -> Job:
        """Parse a raw record.

        Raises:
            ListingAnomalyError: If the record is malformed
        """

    @abstractmethod
    def is_eligible(self, item: Job, cutoff: datetime) -> bool:
        """Whether a parsed record should be deleted."""

    @abstractmethod
    async def delete(self, client: Any, project_id: int, item_id: int) -> None:
        """Delete one item. A single call per item."""


class JobCleanupStrategy(CleanupStrategy):
    """Erase CI jobs (log and artifacts) older than the cutoff."""

    target = CleanupTarget.JOBS

    async def list_page(self, client: Any, project_id: int, page: int, per_page: int) -> ResourcePage:
        return await client.list_jobs_page(project_id, page, per_page)

    def parse(self, record: dict[str, Any]) -> Job:
        try:
            return Job.model_validate(record)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ListingAnomalyError(f"malformed job record ({fields})") from e

    def is_eligible(self, item: Job, cutoff: datetime) -> bool:
        # GitLab refuses to erase a job with no log and no artifacts left
        return item.created_at < cutoff and item.is_erasable

    async def delete(self, client: Any, project_id: int, item_id: int) -> None:
        await client.erase_job(project_id, item_id)


STRATEGIES: dict[CleanupTarget, type[CleanupStrategy]] = {
    CleanupTarget.JOBS: JobCleanupStrategy,
}


def get_strategy(target: CleanupTarget | str) -> CleanupStrategy:
    """Return the strategy for a cleanup target.

    Raises:
        ValueError: If the target has no registered strategy
    """
    try:
        return STRATEGIES[CleanupTarget(target)]()
    except (KeyError, ValueError) as e:
        valid = ", ".join(t.value for t in STRATEGIES)
        raise ValueError(f"Unknown cleanup target '{target}' (valid: {valid})") from e
