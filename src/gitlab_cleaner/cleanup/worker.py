"""Delete worker.

A worker pulls one DeletionRequest at a time from the work queue, issues a
single delete call for it and posts exactly one DeletionOutcome back.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from gitlab_cleaner.cleanup.models import DeletionOutcome, DeletionRequest, FailureReason
from gitlab_cleaner.cleanup.targets import CleanupStrategy
from gitlab_cleaner.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from gitlab_cleaner.utils.logging import get_logger
from gitlab_cleaner.utils.retry import RateLimitRetryPolicy

logger = get_logger(__name__)


class StopWorker:
    """Marker put on the work queue once no more requests will follow."""


STOP = StopWorker()


@dataclass(frozen=True)
class WorkerExited:
    """Posted on the result queue when a worker leaves its loop.

    Attributes:
        worker_id: Index of the worker
        error: Fatal error that ended the worker, if any
    """

    worker_id: int
    error: BaseException | None = None


class DeleteWorker:
    """Consumes DeletionRequests and produces DeletionOutcomes."""

    def __init__(
        self,
        worker_id: int,
        client: Any,
        strategy: CleanupStrategy,
        rate_limit_policy: RateLimitRetryPolicy,
    ):
        self.worker_id = worker_id
        self.client = client
        self.strategy = strategy
        self.rate_limit_policy = rate_limit_policy

    async def process(self, request: DeletionRequest) -> DeletionOutcome:
        """Delete one item and classify the result.

        Args:
            request: The request to process

        Returns:
            DeletionOutcome for the request

        Raises:
            AuthenticationError: The token is no longer accepted (fatal)
        """
        job_id = request.job_id
        try:
            await self.rate_limit_policy.call(
                lambda: self.strategy.delete(self.client, request.project_ref, job_id),
                job_id=job_id,
            )
            return DeletionOutcome.deleted(job_id)

        except AuthenticationError:
            raise

        except NotFoundError:
            # Removed by a concurrent actor or a previous run
            logger.info("job_already_gone", job_id=job_id)
            return DeletionOutcome.already_gone(job_id)

        except AuthorizationError as e:
            return self._failed(job_id, FailureReason.FORBIDDEN, e)

        except RateLimitError as e:
            return self._failed(job_id, FailureReason.RATE_LIMITED_EXHAUSTED, e)

        except NetworkError as e:
            return self._failed(job_id, FailureReason.NETWORK, e)

        except ServerError as e:
            return self._failed(job_id, FailureReason.SERVER_ERROR, e)

        except APIError as e:
            return self._failed(job_id, FailureReason.SERVER_ERROR, e)

    def _failed(self, job_id: int, reason: FailureReason, error: Exception) -> DeletionOutcome:
        logger.warning(
            "job_deletion_failed",
            worker_id=self.worker_id,
            job_id=job_id,
            reason=reason.value,
            error=str(error),
        )
        return DeletionOutcome.failed(job_id, reason, str(error))

    async def run(self, work_queue: asyncio.Queue, result_queue: asyncio.Queue) -> None:
        """Worker loop: runs until it takes the STOP marker or hits a fatal error.

        Always posts a WorkerExited message as its last result.
        """
        error: BaseException | None = None
        try:
            while True:
                request = await work_queue.get()
                try:
                    if request is STOP:
                        # Hand the marker on so the next worker stops too
                        work_queue.put_nowait(STOP)
                        return
                    outcome = await self.process(request)
                finally:
                    work_queue.task_done()
                await result_queue.put(outcome)
        except AuthenticationError as e:
            logger.error("worker_authentication_failed", worker_id=self.worker_id, error=str(e))
            error = e
        except Exception as e:
            logger.error(
                "worker_crashed", worker_id=self.worker_id, error=str(e), exc_info=True
            )
            error = e
        finally:
            result_queue.put_nowait(WorkerExited(self.worker_id, error))
