"""Custom exceptions for gitlab-cleaner.

This module defines exception classes for handling the error conditions
that can occur while talking to the GitLab API and running a cleanup.
"""

from typing import Any


class GitLabCleanerError(Exception):
    """Base exception for all gitlab-cleaner errors."""

    pass


class APIError(GitLabCleanerError):
    """Base class for API-related errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
    ):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when the token lacks permission (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: float | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(GitLabCleanerError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class ConfigurationError(GitLabCleanerError):
    """Raised when configuration is invalid or missing."""

    pass


class ProjectResolutionError(GitLabCleanerError):
    """Raised when a project reference cannot be turned into a project id."""

    pass


class ProjectNotFoundError(ProjectResolutionError):
    """Raised when no project matches the searched term."""

    pass


class AmbiguousProjectError(ProjectResolutionError):
    """Raised when several projects match the searched term."""

    def __init__(self, message: str, candidates: list[str] | None = None):
        super().__init__(message)
        self.candidates = candidates or []


class ListingAnomalyError(GitLabCleanerError):
    """Raised when a listed record is malformed and must be skipped."""

    pass


class ListingError(GitLabCleanerError):
    """Raised when listing could not complete after deletions started.

    Attributes:
        report: Partial cleanup report covering the deletions that ran
    """

    def __init__(self, message: str, report: Any = None):
        super().__init__(message)
        self.report = report
