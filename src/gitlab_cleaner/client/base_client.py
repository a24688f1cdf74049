"""Base HTTP client for gitlab-cleaner.

This module provides a base async HTTP client with connection pooling,
rate limiting, transport retries, and request logging.
"""

import asyncio
import time
from typing import Any
from urllib.parse import urljoin

import httpx

from gitlab_cleaner.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from gitlab_cleaner.utils.logging import get_logger, log_api_request
from gitlab_cleaner.utils.retry import TransportRetryPolicy

logger = get_logger(__name__)


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        # HTTP-date form is not used by GitLab
        return None


class BaseAPIClient:
    """Base async HTTP client with retry logic and rate limiting.

    This client provides:
    - Connection pooling shared by every caller
    - Client-side request rate limiting
    - Request logging
    - Automatic retry for transient failures (network errors and 5xx)
    - Mapping of HTTP error statuses to typed exceptions
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        verify_ssl: bool = True,
        timeout: float = 30,
        rate_limit: float = 10,
        max_connections: int | None = None,
        max_keepalive_connections: int | None = None,
        retry_policy: TransportRetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for API requests
            token: Authentication token
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            rate_limit: Maximum requests per second (0 disables)
            max_connections: Maximum number of connections in pool (default: 20)
            max_keepalive_connections: Maximum keep-alive connections (default: 10)
            retry_policy: Retry policy for transient failures
            transport: Optional httpx transport (used by tests)

        Raises:
            ConfigurationError: If base_url or token is empty
        """
        if not base_url:
            raise ConfigurationError("GitLab API base URL is required")
        if not token:
            raise ConfigurationError("GitLab token is required")

        self.base_url = base_url.rstrip("/")
        self.token = token
        self.retry_policy = retry_policy or TransportRetryPolicy()

        # Rate limiting
        self.rate_limit = rate_limit
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0
        self._min_request_interval = 1.0 / rate_limit if rate_limit > 0 else 0

        if max_connections is None:
            max_connections = 20
        if max_keepalive_connections is None:
            max_keepalive_connections = 10

        self.client = httpx.AsyncClient(
            headers=self._build_headers(),
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            verify=verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

        logger.info(
            "client_initialized",
            base_url=self.base_url,
            rate_limit=rate_limit,
            max_connections=max_connections,
        )

    def _build_headers(self) -> dict[str, str]:
        """Build HTTP headers for requests.

        Returns:
            Dictionary of HTTP headers
        """
        return {
            "PRIVATE-TOKEN": self.token,
            "Accept": "application/json",
        }

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full URL
        """
        endpoint = endpoint.lstrip("/")
        return urljoin(f"{self.base_url}/", endpoint)

    async def _rate_limit_wait(self) -> None:
        """Implement rate limiting by waiting if necessary."""
        if self._min_request_interval > 0:
            async with self._rate_limit_lock:
                now = time.monotonic()
                time_since_last = now - self._last_request_time

                if time_since_last < self._min_request_interval:
                    wait_time = self._min_request_interval - time_since_last
                    await asyncio.sleep(wait_time)

                self._last_request_time = time.monotonic()

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Handle error responses by raising appropriate exceptions.

        Args:
            response: HTTP response object

        Raises:
            AuthenticationError: For 401 responses
            AuthorizationError: For 403 responses
            NotFoundError: For 404 responses
            RateLimitError: For 429 responses
            ServerError: For 5xx responses
            APIError: For other error responses
        """
        status_code = response.status_code

        try:
            error_data = response.json()
        except ValueError:
            error_data = {"message": response.text}

        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}

        # GitLab uses "message" for most errors and "error" for OAuth/token errors
        error_message = error_data.get("message") or error_data.get("error") or "Unknown error"

        if status_code == 401:
            raise AuthenticationError(
                message="Authentication failed", status_code=status_code, response=error_data
            )
        elif status_code == 403:
            raise AuthorizationError(
                message="Authorization failed", status_code=status_code, response=error_data
            )
        elif status_code == 404:
            raise NotFoundError(
                message="Resource not found", status_code=status_code, response=error_data
            )
        elif status_code == 429:
            raise RateLimitError(
                message="Rate limit exceeded",
                status_code=status_code,
                response=error_data,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        elif 500 <= status_code < 600:
            raise ServerError(
                message=f"Server error: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        else:
            raise APIError(
                message=f"API error: {error_message}",
                status_code=status_code,
                response=error_data,
            )

    async def _send_once(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a single HTTP request without retries."""
        await self._rate_limit_wait()

        start_time = time.monotonic()
        try:
            response = await self.client.request(method=method, url=url, params=params, json=json_data)
        except httpx.TimeoutException as e:
            logger.error("timeout_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("network_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        log_api_request(
            logger,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

        if response.status_code >= 400:
            self._handle_error_response(response)

        return response

    async def send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send an HTTP request with rate limiting, retries and error mapping.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            params: Query parameters
            json_data: JSON request body

        Returns:
            The successful HTTP response

        Raises:
            NetworkError: For network-related errors after retries
            Various APIError subclasses: For API errors
        """
        url = self._build_url(endpoint)
        return await self.retry_policy.call(
            lambda: self._send_once(method, url, params=params, json_data=json_data)
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Make an HTTP request and decode the JSON body.

        Returns:
            Decoded JSON (dict or list), or an empty dict for empty bodies
        """
        response = await self.send(method, endpoint, params=params, json_data=json_data)
        return response.json() if response.content else {}

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request."""
        return await self.request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a POST request."""
        return await self.request("POST", endpoint, params=params, json_data=json_data)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.info("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
