"""
Tests for ResourceLister pagination and eligibility.
"""

from datetime import UTC, datetime, timedelta

import pytest

from conftest import PROJECT_ID, FakeJobsClient, job_record
from gitlab_cleaner.cleanup.lister import ResourceLister
from gitlab_cleaner.cleanup.models import ResourcePage
from gitlab_cleaner.cleanup.targets import JobCleanupStrategy
from gitlab_cleaner.client.exceptions import RateLimitError
from gitlab_cleaner.utils.retry import RateLimitRetryPolicy

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class ScriptedPagesClient:
    """Serves a fixed list of pages, recording every page requested.

    ``rate_limited`` maps a page to the number of 429 answers it gives first.
    """

    def __init__(self, pages: list[ResourcePage], rate_limited: dict[int, int] | None = None):
        self.pages = {p.page: p for p in pages}
        self.rate_limited = dict(rate_limited or {})
        self.requested: list[int] = []

    async def list_jobs_page(self, project_id, page, per_page=50):
        self.requested.append(page)
        if self.rate_limited.get(page):
            self.rate_limited[page] -= 1
            raise RateLimitError("Rate limit exceeded", status_code=429)
        return self.pages.get(page, ResourcePage(page=page, records=[]))


async def collect(lister: ResourceLister) -> list[int]:
    return [request.job_id async for request in lister.iter_requests(PROJECT_ID)]


@pytest.fixture
def strategy():
    return JobCleanupStrategy()


class TestEligibility:
    """Tests for the age and erased filters."""

    @pytest.mark.asyncio
    async def test_only_jobs_older_than_cutoff(self, strategy):
        """Test that only jobs strictly older than the cutoff are yielded."""
        jobs = [job_record(1, 10, NOW), job_record(2, 45, NOW), job_record(3, 90, NOW)]
        lister = ResourceLister(FakeJobsClient(jobs), strategy, expiration_in_days=30, now=NOW)

        assert sorted(await collect(lister)) == [2, 3]
        assert lister.seen == 3
        assert lister.eligible == 2

    @pytest.mark.asyncio
    async def test_job_exactly_at_cutoff_is_kept(self, strategy):
        """Test that created_at == cutoff is not eligible."""
        jobs = [job_record(1, 30, NOW)]
        lister = ResourceLister(FakeJobsClient(jobs), strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == []

    @pytest.mark.asyncio
    async def test_erased_jobs_are_skipped(self, strategy):
        """Test that jobs already erased are not dispatched again."""
        jobs = [job_record(1, 100, NOW, erased=True), job_record(2, 100, NOW)]
        lister = ResourceLister(FakeJobsClient(jobs), strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == [2]

    @pytest.mark.asyncio
    async def test_jobs_without_log_or_artifacts_are_skipped(self, strategy):
        """Test that jobs GitLab would refuse to erase are not dispatched."""
        jobs = [
            job_record(1, 100, NOW, status="skipped", artifacts=[]),
            job_record(2, 100, NOW, artifacts=[{"file_type": "archive"}]),
        ]
        lister = ResourceLister(FakeJobsClient(jobs), strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == [2]

    @pytest.mark.asyncio
    async def test_zero_days_selects_everything_in_the_past(self, strategy):
        jobs = [job_record(1, 0.5, NOW), job_record(2, 3, NOW)]
        lister = ResourceLister(FakeJobsClient(jobs), strategy, expiration_in_days=0, now=NOW)

        assert sorted(await collect(lister)) == [1, 2]

    def test_negative_expiration_rejected(self, strategy):
        with pytest.raises(ValueError):
            ResourceLister(FakeJobsClient([]), strategy, expiration_in_days=-1)

    def test_cutoff_captured_once(self, strategy):
        lister = ResourceLister(FakeJobsClient([]), strategy, expiration_in_days=7, now=NOW)

        assert lister.cutoff == NOW - timedelta(days=7)


class TestPagination:
    """Tests for page traversal."""

    @pytest.mark.asyncio
    async def test_stops_on_empty_page(self, strategy):
        """Test N pages of data followed by an empty page cost N + 1 requests."""
        pages = [
            ResourcePage(page=1, records=[job_record(i, 100, NOW) for i in (1, 2)]),
            ResourcePage(page=2, records=[job_record(i, 100, NOW) for i in (3, 4)]),
            ResourcePage(page=3, records=[job_record(5, 100, NOW)]),
        ]
        client = ScriptedPagesClient(pages)
        lister = ResourceLister(client, strategy, expiration_in_days=30, page_size=2, now=NOW)

        assert await collect(lister) == [1, 2, 3, 4, 5]
        assert client.requested == [1, 2, 3, 4]
        assert lister.pages_fetched == 4

    @pytest.mark.asyncio
    async def test_stops_on_last_page_marker(self, strategy):
        """Test that the server's end marker avoids the trailing empty request."""
        pages = [
            ResourcePage(page=1, records=[job_record(1, 100, NOW)], next_page=2),
            ResourcePage(page=2, records=[job_record(2, 100, NOW)], is_last=True),
        ]
        client = ScriptedPagesClient(pages)
        lister = ResourceLister(client, strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == [1, 2]
        assert client.requested == [1, 2]

    @pytest.mark.asyncio
    async def test_follows_advertised_next_page(self, strategy):
        pages = [
            ResourcePage(page=1, records=[job_record(1, 100, NOW)], next_page=5),
            ResourcePage(page=5, records=[job_record(2, 100, NOW)], is_last=True),
        ]
        client = ScriptedPagesClient(pages)
        lister = ResourceLister(client, strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == [1, 2]
        assert client.requested == [1, 5]

    @pytest.mark.asyncio
    async def test_page_without_eligible_jobs_does_not_stop(self, strategy):
        """Test that a page of recent jobs is followed by the next page."""
        pages = [
            ResourcePage(page=1, records=[job_record(1, 1, NOW), job_record(2, 2, NOW)]),
            ResourcePage(page=2, records=[job_record(3, 100, NOW)]),
        ]
        client = ScriptedPagesClient(pages)
        lister = ResourceLister(client, strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == [3]
        assert client.requested == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_duplicate_ids_across_pages_yielded_once(self, strategy):
        """Test that a job shifted onto the next page is dispatched once."""
        pages = [
            ResourcePage(page=1, records=[job_record(9, 100, NOW), job_record(8, 100, NOW)]),
            ResourcePage(page=2, records=[job_record(8, 100, NOW), job_record(7, 100, NOW)]),
        ]
        lister = ResourceLister(ScriptedPagesClient(pages), strategy, expiration_in_days=30, now=NOW)

        assert await collect(lister) == [9, 8, 7]

    @pytest.mark.asyncio
    async def test_rate_limited_page_is_retried(self, strategy):
        client = ScriptedPagesClient(
            [ResourcePage(page=1, records=[job_record(1, 100, NOW)], is_last=True)],
            rate_limited={1: 2},
        )
        lister = ResourceLister(
            client,
            strategy,
            expiration_in_days=30,
            now=NOW,
            rate_limit_policy=RateLimitRetryPolicy(max_attempts=3, min_wait=0, max_wait=0),
        )

        assert await collect(lister) == [1]
        assert client.requested == [1, 1, 1]
        assert lister.pages_fetched == 1

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted_on_page_propagates(self, strategy):
        client = ScriptedPagesClient([], rate_limited={1: 5})
        lister = ResourceLister(
            client,
            strategy,
            expiration_in_days=30,
            now=NOW,
            rate_limit_policy=RateLimitRetryPolicy(max_attempts=2, min_wait=0, max_wait=0),
        )

        with pytest.raises(RateLimitError):
            await collect(lister)
        assert client.requested == [1, 1]


class TestAnomalies:
    """Tests for malformed records."""

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped_and_recorded(self, strategy):
        records = [
            job_record(1, 100, NOW),
            {"id": 2, "created_at": "not-a-date"},
            {"created_at": "2020-01-01T00:00:00Z"},
            job_record(4, 100, NOW),
        ]
        lister = ResourceLister(
            ScriptedPagesClient([ResourcePage(page=1, records=records, is_last=True)]),
            strategy,
            expiration_in_days=30,
            now=NOW,
        )

        assert await collect(lister) == [1, 4]
        assert len(lister.anomalies) == 2
        assert lister.anomalies[0].job_id == 2
        assert lister.anomalies[0].page == 1
        assert "created_at" in lister.anomalies[0].detail
        assert lister.anomalies[1].job_id is None
