"""
Shared fixtures for gitlab-cleaner tests.

FakeGitLab is a small in-memory GitLab served through httpx.MockTransport;
FakeJobsClient is an async stand-in for GitLabClient used where HTTP is not
the point of the test (concurrency, cancellation).
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from gitlab_cleaner.cleanup.models import ResourcePage
from gitlab_cleaner.client.exceptions import NotFoundError
from gitlab_cleaner.config import CleanerConfig

BASE_URL = "https://gitlab.example.com/api/v4"
TOKEN = "glpat-test-token"
PROJECT_ID = 42


def iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")


def job_record(
    job_id: int,
    age_days: float,
    now: datetime | None = None,
    erased: bool = False,
    **extra: Any,
) -> dict[str, Any]:
    """Build a job record as returned by GET /projects/:id/jobs."""
    now = now or datetime.now(UTC)
    record = {
        "id": job_id,
        "status": "success",
        "created_at": iso(now - timedelta(days=age_days)),
        "erased_at": iso(now) if erased else None,
        "artifacts": [] if erased else [{"file_type": "trace", "size": 1024}],
    }
    record.update(extra)
    return record


def make_config(**performance: Any) -> CleanerConfig:
    """Configuration with rate limiting disabled and zero retry waits."""
    return CleanerConfig(
        gitlab={"url": BASE_URL, "token": TOKEN},
        performance={"rate_limit": 0, **performance},
        retry={
            "transport_max_attempts": 3,
            "transport_min_wait": 0,
            "transport_max_wait": 0,
            "rate_limit_max_attempts": 5,
            "rate_limit_min_wait": 0,
            "rate_limit_max_wait": 0,
        },
    )


class FakeGitLab:
    """In-memory GitLab implementing the endpoints gitlab-cleaner calls.

    Erasing a job sets its ``erased_at`` and empties its ``artifacts``; a job
    with nothing left to erase answers 403, as GitLab does. Deleted jobs
    answer 404. With ``fixed_listing`` the listing
    keeps serving the records as they were at construction, which is what a
    second run sees when it races a previous one.
    """

    def __init__(
        self,
        jobs: list[dict[str, Any]] | None = None,
        token: str = TOKEN,
        next_page_header: bool = True,
        fixed_listing: bool = False,
    ):
        self.token = token
        self.next_page_header = next_page_header
        self.fixed_listing = fixed_listing
        self.jobs: dict[int, dict[str, Any]] = {j["id"]: dict(j) for j in jobs or []}
        self._listing = [dict(j) for j in jobs or []]
        self.projects: list[dict[str, Any]] = [
            {"id": PROJECT_ID, "name": "demo", "path": "demo", "path_with_namespace": "group/demo"},
        ]
        self.requests: list[httpx.Request] = []
        self.erase_calls: list[int] = []
        self.list_calls: list[int] = []
        # Scripted statuses per job id, consumed one per erase call
        self.erase_script: dict[int, list[int]] = {}
        # Scripted statuses per listing page, consumed one per call
        self.list_script: dict[int, list[int]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get("PRIVATE-TOKEN") != self.token:
            return httpx.Response(401, json={"message": "401 Unauthorized"})

        raw_path = request.url.raw_path.decode().split("?")[0]
        path = raw_path.removeprefix("/api/v4/")
        parts = path.split("/")

        if request.method == "GET" and parts == ["projects"]:
            search = request.url.params.get("search", "")
            matches = [p for p in self.projects if search in p["name"] or search in p["path"]]
            return httpx.Response(200, json=matches)

        if request.method == "GET" and len(parts) == 2 and parts[0] == "projects":
            full_path = parts[1].replace("%2F", "/")
            for project in self.projects:
                if project["path_with_namespace"] == full_path or str(project["id"]) == full_path:
                    return httpx.Response(200, json=project)
            return httpx.Response(404, json={"message": "404 Project Not Found"})

        if request.method == "GET" and len(parts) == 3 and parts[2] == "jobs":
            return self._list_jobs(request)

        if request.method == "POST" and len(parts) == 5 and parts[4] == "erase":
            return self._erase(int(parts[3]))

        return httpx.Response(404, json={"message": "404 Not Found"})

    def _list_jobs(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "20"))
        self.list_calls.append(page)

        scripted = self.list_script.get(page)
        if scripted:
            status = scripted.pop(0)
            return httpx.Response(status, json={"message": f"scripted {status}"})

        source = self._listing if self.fixed_listing else list(self.jobs.values())
        records = sorted(source, key=lambda j: j["id"], reverse=True)
        start = (page - 1) * per_page
        chunk = records[start : start + per_page]

        headers = {}
        if self.next_page_header:
            headers["X-Next-Page"] = str(page + 1) if start + per_page < len(records) else ""
        return httpx.Response(200, json=chunk, headers=headers)

    def _erase(self, job_id: int) -> httpx.Response:
        self.erase_calls.append(job_id)

        scripted = self.erase_script.get(job_id)
        if scripted:
            status = scripted.pop(0)
            headers = {"Retry-After": "0"} if status == 429 else {}
            return httpx.Response(status, json={"message": f"scripted {status}"}, headers=headers)

        job = self.jobs.get(job_id)
        if job is None:
            return httpx.Response(404, json={"message": "404 Job Not Found"})
        if job["erased_at"] is not None or not job.get("artifacts"):
            return httpx.Response(403, json={"message": "403 Forbidden - Job is not erasable!"})

        job["erased_at"] = iso(datetime.now(UTC))
        job["artifacts"] = []
        return httpx.Response(201, json=job)


class FakeJobsClient:
    """Async client double with the GitLabClient methods the strategies use.

    Records peak concurrency of erase calls.
    """

    def __init__(
        self,
        jobs: list[dict[str, Any]],
        delay: float = 0.01,
        erase_errors: dict[int, Exception] | None = None,
        list_errors: dict[int, Exception] | None = None,
    ):
        self.jobs = jobs
        self.delay = delay
        self.erase_errors = erase_errors or {}
        self.list_errors = list_errors or {}
        self.erased: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.erase_started = asyncio.Event()

    async def list_jobs_page(self, project_id: int, page: int, per_page: int = 50) -> ResourcePage:
        if page in self.list_errors:
            raise self.list_errors[page]
        start = (page - 1) * per_page
        records = self.jobs[start : start + per_page]
        next_page = page + 1 if start + per_page < len(self.jobs) else None
        return ResourcePage(
            page=page, records=records, next_page=next_page, is_last=next_page is None
        )

    async def erase_job(self, project_id: int, job_id: int) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.erase_started.set()
        try:
            await asyncio.sleep(self.delay)
            if job_id in self.erase_errors:
                raise self.erase_errors[job_id]
            if job_id in self.erased:
                raise NotFoundError("Resource not found", status_code=404)
            self.erased.append(job_id)
        finally:
            self.in_flight -= 1


@pytest.fixture
def config() -> CleanerConfig:
    return make_config()

