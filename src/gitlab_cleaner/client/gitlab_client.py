"""GitLab API client.

This client extends BaseAPIClient with the handful of GitLab REST calls the
cleanup engine needs: project resolution, paginated job listing and job
erasure. It never decides which jobs are eligible; that is the lister's job.
"""

from typing import Any
from urllib.parse import quote

import httpx

from gitlab_cleaner.cleanup.models import ResourcePage
from gitlab_cleaner.client.base_client import BaseAPIClient
from gitlab_cleaner.client.exceptions import (
    AmbiguousProjectError,
    APIError,
    NotFoundError,
    ProjectNotFoundError,
)
from gitlab_cleaner.config import CleanerConfig
from gitlab_cleaner.utils.logging import get_logger

logger = get_logger(__name__)


def _parse_next_page(response: httpx.Response) -> tuple[int | None, bool]:
    """Read GitLab's pagination headers.

    Returns:
        Tuple of (next_page, is_last). ``is_last`` is True only when the
        ``X-Next-Page`` header is present and empty, which is how GitLab
        marks the last page.
    """
    header = response.headers.get("X-Next-Page")
    if header is None:
        return None, False
    header = header.strip()
    if not header:
        return None, True
    try:
        return int(header), False
    except ValueError:
        return None, False


class GitLabClient(BaseAPIClient):
    """Client for a GitLab instance (API v4)."""

    @classmethod
    def from_config(
        cls,
        config: CleanerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GitLabClient":
        """Build a client from the loaded configuration.

        Args:
            config: gitlab-cleaner configuration
            transport: Optional httpx transport (used by tests)
        """
        return cls(
            base_url=config.gitlab.url,
            token=config.gitlab.token,
            verify_ssl=config.gitlab.verify_ssl,
            timeout=config.gitlab.timeout,
            rate_limit=config.performance.rate_limit,
            max_connections=config.performance.http_max_connections,
            max_keepalive_connections=config.performance.http_max_keepalive_connections,
            retry_policy=config.retry.transport_policy(),
            transport=transport,
        )

    async def resolve_project(self, project: str | int, group: str | None = None) -> int:
        """Turn a project reference into a numeric project id.

        Numeric references are returned as-is. With a group, the project is
        looked up by its full path. Otherwise the project search endpoint is
        used and a single match is required.

        Args:
            project: Project id, name or ``namespace/name`` path
            group: Optional namespace the project lives in

        Returns:
            Project id

        Raises:
            ProjectNotFoundError: If no project matches
            AmbiguousProjectError: If several projects match
        """
        reference = str(project).strip()
        if reference.isdigit():
            return int(reference)

        if group or "/" in reference:
            path = f"{group.strip('/')}/{reference}" if group else reference
            try:
                data = await self.get(f"projects/{quote(path, safe='')}")
            except NotFoundError as e:
                raise ProjectNotFoundError(f"No project found at path '{path}'") from e
            logger.info("project_resolved", project=path, project_id=data["id"])
            return int(data["id"])

        projects: list[dict[str, Any]] = await self.get(
            "projects", params={"search": reference, "simple": "true", "per_page": 100}
        )

        if not projects:
            raise ProjectNotFoundError(f"No project found that matches '{reference}'")

        if len(projects) > 1:
            # Search is a substring match, so prefer an exact name or path
            exact = [p for p in projects if reference in (p.get("name"), p.get("path"))]
            if len(exact) != 1:
                candidates = [p.get("path_with_namespace") or str(p.get("id")) for p in projects]
                raise AmbiguousProjectError(
                    f"Multiple projects match '{reference}'; use --group or a full path",
                    candidates=candidates,
                )
            projects = exact

        project_id = int(projects[0]["id"])
        logger.info("project_resolved", project=reference, project_id=project_id)
        return project_id

    async def list_jobs_page(self, project_id: int, page: int, per_page: int = 50) -> ResourcePage:
        """Fetch one page of a project's jobs.

        Args:
            project_id: Project id
            page: 1-based page number
            per_page: Page size

        Returns:
            ResourcePage with the raw job records and pagination hints

        Raises:
            APIError: If the response body is not a list of records
        """
        response = await self.send(
            "GET",
            f"projects/{project_id}/jobs",
            params={"per_page": per_page, "page": page},
        )
        records = response.json() if response.content else []
        if not isinstance(records, list):
            # An error object here must not be read as the end of the collection
            raise APIError(
                f"Unexpected job listing payload on page {page}: "
                f"expected a list, got {type(records).__name__}",
                status_code=response.status_code,
                response=records if isinstance(records, dict) else None,
            )
        next_page, is_last = _parse_next_page(response)

        logger.debug(
            "page_fetched",
            project_id=project_id,
            page=page,
            items=len(records),
            next_page=next_page,
            is_last=is_last,
        )
        return ResourcePage(page=page, records=records, next_page=next_page, is_last=is_last)

    async def erase_job(self, project_id: int, job_id: int) -> None:
        """Erase a job: its log and artifacts are removed by GitLab.

        Args:
            project_id: Project id
            job_id: Job id
        """
        await self.send("POST", f"projects/{project_id}/jobs/{job_id}/erase")
        logger.info("job_erased", project_id=project_id, job_id=job_id)
