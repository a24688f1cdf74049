"""Data models for the cleanup engine.

Jobs are parsed from the GitLab listing payload with pydantic; the records
exchanged between the lister, the workers and the supervisor are small
frozen dataclasses.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class CleanupTarget(StrEnum):
    """Resource class a cleanup run operates on."""

    JOBS = "jobs"


class Job(BaseModel):
    """A GitLab CI job as observed at listing time.

    ``has_log`` and ``has_artifacts`` are derived from the ``artifacts`` list of
    the listing payload: a ``trace`` entry is the job log, any other entry is
    an artifact. A payload without that list is assumed to still carry a log.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    created_at: datetime
    status: str = "unknown"
    erased_at: datetime | None = None
    has_log: bool = True
    has_artifacts: bool = False

    @model_validator(mode="before")
    @classmethod
    def derive_contents(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("artifacts"), list):
            return data
        file_types = [
            entry.get("file_type") for entry in data["artifacts"] if isinstance(entry, dict)
        ]
        return {
            **data,
            "has_log": "trace" in file_types,
            "has_artifacts": any(t != "trace" for t in file_types),
        }

    @field_validator("created_at", "erased_at")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        """Interpret naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def is_erased(self) -> bool:
        return self.erased_at is not None

    @property
    def is_erasable(self) -> bool:
        """Whether GitLab still has something to erase for this job."""
        return not self.is_erased and (self.has_log or self.has_artifacts)


@dataclass(frozen=True)
class ResourcePage:
    """One page of raw records returned by a listing endpoint.

    Attributes:
        page: Page number that was requested
        records: Raw records as decoded from JSON
        next_page: Next page number advertised by the server, if any
        is_last: True when the server signalled the end of the collection
    """

    page: int
    records: list[dict[str, Any]]
    next_page: int | None = None
    is_last: bool = False


@dataclass(frozen=True)
class DeletionRequest:
    job_id: int
    project_ref: int


class OutcomeStatus(StrEnum):
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    FAILED = "failed"


class FailureReason(StrEnum):
    """Closed set of reasons a deletion can fail."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    RATE_LIMITED_EXHAUSTED = "rate_limited_exhausted"
    NETWORK = "network"
    SERVER_ERROR = "server_error"


@dataclass(frozen=True)
class DeletionOutcome:
    """Result of processing one DeletionRequest."""

    job_id: int
    status: OutcomeStatus
    reason: FailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAILED

    @classmethod
    def deleted(cls, job_id: int) -> "DeletionOutcome":
        return cls(job_id=job_id, status=OutcomeStatus.DELETED)

    @classmethod
    def already_gone(cls, job_id: int) -> "DeletionOutcome":
        return cls(job_id=job_id, status=OutcomeStatus.ALREADY_GONE)

    @classmethod
    def failed(cls, job_id: int, reason: FailureReason, detail: str = "") -> "DeletionOutcome":
        return cls(job_id=job_id, status=OutcomeStatus.FAILED, reason=reason, detail=detail)


@dataclass(frozen=True)
class ListingAnomaly:
    """A malformed record skipped during pagination."""

    page: int
    detail: str
    job_id: Any = None
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
