"""Paginated discovery of deletion candidates.

The lister walks a project's collection page by page, parses each record,
keeps the ones older than the cutoff and yields them as DeletionRequests.
Nothing is deleted here and the collection is never materialized.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

from gitlab_cleaner.cleanup.models import DeletionRequest, ListingAnomaly
from gitlab_cleaner.cleanup.targets import CleanupStrategy
from gitlab_cleaner.client.exceptions import ListingAnomalyError
from gitlab_cleaner.utils.logging import get_logger
from gitlab_cleaner.utils.retry import RateLimitRetryPolicy

logger = get_logger(__name__)


class ResourceLister:
    """Lazily yields deletion candidates for one cleanup run.

    ``now`` is captured once at construction so that every record of the run
    is compared against the same cutoff.
    """

    def __init__(
        self,
        client: Any,
        strategy: CleanupStrategy,
        expiration_in_days: int,
        page_size: int = 50,
        now: datetime | None = None,
        rate_limit_policy: RateLimitRetryPolicy | None = None,
    ):
        """Initialize the lister.

        Args:
            client: Gateway client passed to the strategy
            strategy: Cleanup target strategy
            expiration_in_days: Records older than this many days are eligible
            page_size: Records requested per page
            now: Reference time (defaults to the current UTC time)
            rate_limit_policy: Retry policy for rate-limited page requests
        """
        if expiration_in_days < 0:
            raise ValueError("expiration_in_days must not be negative")

        self.client = client
        self.strategy = strategy
        self.expiration_in_days = expiration_in_days
        self.page_size = page_size
        self.now = now or datetime.now(UTC)
        self.cutoff = self.now - timedelta(days=expiration_in_days)
        self.rate_limit_policy = rate_limit_policy or RateLimitRetryPolicy()

        self.pages_fetched = 0
        self.seen = 0
        self.eligible = 0
        self.anomalies: list[ListingAnomaly] = []

    async def iter_requests(self, project_id: int) -> AsyncIterator[DeletionRequest]:
        """Yield a DeletionRequest for every eligible record of the project.

        Pagination stops on an empty page or when the server marks the last
        page. A page without eligible records does not stop it. An id seen
        twice (records can shift between pages) is only yielded once.

        Args:
            project_id: Project to list

        Yields:
            DeletionRequest per eligible record
        """
        dispatched: set[int] = set()
        page: int | None = 1

        while page is not None:
            result = await self.rate_limit_policy.call(
                lambda: self.strategy.list_page(self.client, project_id, page, self.page_size),
                page=page,
            )
            self.pages_fetched += 1

            if not result.records:
                logger.debug("listing_exhausted", project_id=project_id, page=page)
                break

            page_eligible = 0
            for record in result.records:
                self.seen += 1
                try:
                    item = self.strategy.parse(record)
                except ListingAnomalyError as e:
                    job_id = record.get("id") if isinstance(record, dict) else None
                    self.anomalies.append(ListingAnomaly(page=page, detail=str(e), job_id=job_id))
                    logger.warning("listing_anomaly", page=page, job_id=job_id, detail=str(e))
                    continue

                if item.id in dispatched or not self.strategy.is_eligible(item, self.cutoff):
                    continue

                dispatched.add(item.id)
                self.eligible += 1
                page_eligible += 1
                yield DeletionRequest(job_id=item.id, project_ref=project_id)

            logger.info(
                "page_listed",
                project_id=project_id,
                page=page,
                records=len(result.records),
                eligible=page_eligible,
            )

            if result.is_last:
                break
            page = result.next_page if result.next_page is not None else page + 1

        logger.info(
            "listing_completed",
            project_id=project_id,
            pages=self.pages_fetched,
            seen=self.seen,
            eligible=self.eligible,
            anomalies=len(self.anomalies),
        )
