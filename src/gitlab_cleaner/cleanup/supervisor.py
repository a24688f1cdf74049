"""Cleanup supervisor.

The supervisor runs one cleanup: a feeder task moves DeletionRequests from
the lister onto a bounded work queue, a fixed pool of DeleteWorkers drains
it, and the supervisor folds every DeletionOutcome from the result queue
into the report. It is the only writer of the report.

Termination: once the feeder is done, a closer task puts a single STOP
marker on the work queue and each worker hands STOP on to the next one and
exits. The feeder never puts STOP itself, so cancelling it cannot lose the
marker. The run is over once every worker has posted its exit message, which
means every dispatched request has produced its outcome.
"""

import asyncio
from collections.abc import Callable

from gitlab_cleaner.cleanup.lister import ResourceLister
from gitlab_cleaner.cleanup.models import DeletionOutcome
from gitlab_cleaner.cleanup.targets import CleanupStrategy
from gitlab_cleaner.cleanup.worker import STOP, DeleteWorker, WorkerExited
from gitlab_cleaner.client.exceptions import AuthenticationError, ListingError
from gitlab_cleaner.reporting.report import CleanupReport
from gitlab_cleaner.utils.logging import get_logger
from gitlab_cleaner.utils.retry import RateLimitRetryPolicy

logger = get_logger(__name__)

ProgressCallback = Callable[[CleanupReport, int], None]


class CleanupSupervisor:
    """Runs a bounded pool of delete workers over a lister's candidates."""

    def __init__(
        self,
        client: object,
        strategy: CleanupStrategy,
        max_workers: int = 8,
        queue_size: int | None = None,
        rate_limit_policy: RateLimitRetryPolicy | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        """Initialize the supervisor.

        Args:
            client: Gateway client shared by all workers
            strategy: Cleanup target strategy
            max_workers: Number of concurrent delete workers
            queue_size: Work queue bound (default: twice the worker count)
            rate_limit_policy: Retry policy for rate-limited deletions
            progress_callback: Called with (report, dispatched) after each outcome
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.client = client
        self.strategy = strategy
        self.max_workers = max_workers
        self.queue_size = queue_size or max_workers * 2
        self.rate_limit_policy = rate_limit_policy or RateLimitRetryPolicy()
        self.progress_callback = progress_callback

        self.dispatched = 0
        self._cancel_requested = False
        self._aborted = False
        self._feeder: asyncio.Task | None = None
        self._work_queue: asyncio.Queue | None = None

    def cancel(self) -> None:
        """Stop dispatching new deletions; in-flight deletions still finish."""
        if self._cancel_requested:
            return
        self._cancel_requested = True
        logger.warning("cleanup_cancel_requested", dispatched=self.dispatched)
        self._stop_dispatch()

    def _abort(self) -> None:
        self._aborted = True
        self._stop_dispatch()

    def _stop_dispatch(self) -> None:
        """Cancel the feeder and drop whatever it had queued."""
        if self._feeder is not None and not self._feeder.done():
            self._feeder.cancel()
        if self._work_queue is not None:
            self._discard_pending(self._work_queue)

    def _discard_pending(self, work_queue: asyncio.Queue) -> int:
        """Drop queued requests that no worker has started yet."""
        discarded = 0
        stop_seen = False
        while True:
            try:
                item = work_queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            work_queue.task_done()
            if item is STOP:
                stop_seen = True
            else:
                discarded += 1
        if stop_seen:
            work_queue.put_nowait(STOP)
        self.dispatched -= discarded
        if discarded:
            logger.info("pending_requests_discarded", count=discarded)
        return discarded

    async def _feed(
        self, lister: ResourceLister, project_id: int, work_queue: asyncio.Queue
    ) -> None:
        """Move requests from the lister to the work queue.

        Suspends on a full queue, so listing never runs far ahead of deletion.
        """
        if self._cancel_requested:
            return
        async for request in lister.iter_requests(project_id):
            await work_queue.put(request)
            self.dispatched += 1

    async def _close(self, work_queue: asyncio.Queue) -> None:
        """Put the STOP marker once the feeder has finished.

        Requests already queued when listing fails are still processed, unless
        the run is being cancelled, was aborted or the token was rejected.
        """
        await asyncio.wait({self._feeder})
        error = None if self._feeder.cancelled() else self._feeder.exception()
        if self._cancel_requested or self._aborted or isinstance(error, AuthenticationError):
            self._discard_pending(work_queue)
            work_queue.put_nowait(STOP)
        else:
            await work_queue.put(STOP)

    async def run(self, project_id: int, lister: ResourceLister) -> CleanupReport:
        """Run the cleanup and return its report.

        Args:
            project_id: Project to clean
            lister: Candidate source for this run

        Returns:
            CleanupReport (flagged ``cancelled`` if cancel() was called)

        Raises:
            AuthenticationError: The token was rejected (no report)
            ListingError: Listing failed after deletions had started
            GitLabCleanerError: Listing failed before any deletion
        """
        report = CleanupReport(
            target=self.strategy.target.value,
            project_ref=project_id,
            expiration_in_days=lister.expiration_in_days,
            cutoff=lister.cutoff,
        )
        work_queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._work_queue = work_queue
        result_queue: asyncio.Queue = asyncio.Queue()

        logger.info(
            "cleanup_started",
            project_id=project_id,
            target=report.target,
            cutoff=lister.cutoff.isoformat(),
            max_workers=self.max_workers,
            queue_size=self.queue_size,
        )

        workers = [
            asyncio.create_task(
                DeleteWorker(i, self.client, self.strategy, self.rate_limit_policy).run(
                    work_queue, result_queue
                ),
                name=f"delete-worker-{i}",
            )
            for i in range(self.max_workers)
        ]
        self._feeder = asyncio.create_task(
            self._feed(lister, project_id, work_queue), name="cleanup-feeder"
        )
        closer = asyncio.create_task(self._close(work_queue), name="cleanup-closer")

        fatal_error: BaseException | None = None
        exited = 0
        try:
            while exited < self.max_workers:
                message = await result_queue.get()
                if isinstance(message, WorkerExited):
                    exited += 1
                    if message.error is not None and fatal_error is None:
                        fatal_error = message.error
                        self._abort()
                    continue

                outcome: DeletionOutcome = message
                report.record(outcome)
                if self.progress_callback:
                    self.progress_callback(report, self.dispatched)
        except asyncio.CancelledError:
            self.cancel()
            await asyncio.gather(*workers, closer, return_exceptions=True)
            raise

        # All workers are gone; the feeder or the closer may still wait on a full queue
        self._stop_dispatch()
        closer.cancel()
        feed_result = (await asyncio.gather(self._feeder, return_exceptions=True))[0]
        await asyncio.gather(*workers, closer, return_exceptions=True)

        report.pages_fetched = lister.pages_fetched
        report.anomalies = list(lister.anomalies)
        report.cancelled = self._cancel_requested
        report.finish()

        if fatal_error is not None:
            logger.error("cleanup_aborted", error=str(fatal_error), attempted=report.attempted)
            raise fatal_error

        if isinstance(feed_result, Exception):
            logger.error(
                "listing_failed",
                error_type=type(feed_result).__name__,
                error=str(feed_result),
                attempted=report.attempted,
            )
            if isinstance(feed_result, AuthenticationError) or report.attempted == 0:
                raise feed_result
            raise ListingError(
                f"Listing failed after {report.attempted} deletion(s): {feed_result}",
                report=report,
            ) from feed_result

        logger.info(
            "cleanup_completed",
            project_id=project_id,
            attempted=report.attempted,
            succeeded=report.succeeded,
            already_gone=report.already_gone,
            failed=report.failed_count,
            anomalies=len(report.anomalies),
            cancelled=report.cancelled,
        )
        return report
