"""Retry policies using tenacity.

Two independent backoff policies are defined here:

- ``TransportRetryPolicy`` wraps every HTTP request made by the GitLab client
  and retries network failures and 5xx responses.
- ``RateLimitRetryPolicy`` wraps a single deletion or listing page request and
  retries 429 responses, honouring the ``Retry-After`` header when the server
  sends one.

They are composed rather than merged: the rate-limit policy sits outside the
client, the transport policy inside it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from gitlab_cleaner.client.exceptions import NetworkError, RateLimitError, ServerError
from gitlab_cleaner.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _log_transport_retry(retry_state: RetryCallState) -> None:
    """Log a transport retry before tenacity sleeps."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "transport_error_retrying",
        attempt=retry_state.attempt_number,
        error_type=type(exc).__name__ if exc else None,
        error=str(exc) if exc else None,
        wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
    )


@dataclass(frozen=True)
class TransportRetryPolicy:
    """Bounded retry for transient network and server failures.

    Attributes:
        max_attempts: Total attempts, including the first one
        min_wait: Minimum wait between attempts in seconds
        max_wait: Maximum wait between attempts in seconds
    """

    max_attempts: int = 4
    min_wait: float = 1.0
    max_wait: float = 30.0

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation``, retrying ``NetworkError`` and ``ServerError``.

        Args:
            operation: Zero-argument coroutine factory

        Returns:
            Result of the operation

        Raises:
            NetworkError, ServerError: When all attempts are exhausted
            Other exceptions: Propagated on first occurrence
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type((NetworkError, ServerError)),
            before_sleep=_log_transport_retry,
            reraise=True,
        ):
            with attempt:
                return await operation()
        raise RuntimeError("Unexpected retry loop exit")


@dataclass(frozen=True)
class RateLimitRetryPolicy:
    """Retry for 429 responses around a single deletion or page request.

    Attributes:
        max_attempts: Total attempts, including the first one
        min_wait: Base wait in seconds for exponential backoff
        max_wait: Upper bound for any single wait in seconds
    """

    max_attempts: int = 5
    min_wait: float = 2.0
    max_wait: float = 120.0

    def wait_time(self, attempt: int, error: RateLimitError) -> float:
        """Seconds to wait after the given failed attempt.

        Uses the Retry-After hint if available, otherwise exponential backoff.
        """
        if error.retry_after is not None:
            return min(error.retry_after, self.max_wait)
        return min(self.min_wait * (2 ** (attempt - 1)), self.max_wait)

    async def call(self, operation: Callable[[], Awaitable[T]], **context: object) -> T:
        """Run ``operation``, retrying ``RateLimitError``.

        Args:
            operation: Zero-argument coroutine factory
            **context: Extra fields for log events (e.g. job_id or page)

        Returns:
            Result of the operation

        Raises:
            RateLimitError: If all retry attempts are exhausted
        """
        attempt = 0

        while True:
            attempt += 1
            try:
                return await operation()
            except RateLimitError as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "rate_limit_retry_exhausted",
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        **context,
                    )
                    raise

                wait_time = self.wait_time(attempt, e)
                logger.warning(
                    "rate_limit_retrying",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    wait_seconds=wait_time,
                    **context,
                )
                await asyncio.sleep(wait_time)
