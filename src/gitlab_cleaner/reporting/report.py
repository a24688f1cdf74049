"""Cleanup report.

The report is folded incrementally from DeletionOutcomes in whatever order
they arrive, and rendered deterministically: failures are always sorted by
job id so output does not depend on worker timing.
"""

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from gitlab_cleaner.cleanup.models import (
    DeletionOutcome,
    FailureReason,
    ListingAnomaly,
    OutcomeStatus,
)
from gitlab_cleaner.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FailedDeletion:
    job_id: int
    reason: FailureReason
    detail: str = ""


@dataclass
class CleanupReport:
    """Aggregated outcome of one cleanup run.

    Only the supervisor mutates a report while a run is in progress.
    """

    target: str
    project_ref: int
    expiration_in_days: int
    cutoff: datetime | None = None
    attempted: int = 0
    succeeded: int = 0
    already_gone: int = 0
    pages_fetched: int = 0
    cancelled: bool = False
    anomalies: list[ListingAnomaly] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    _failures: list[FailedDeletion] = field(default_factory=list, repr=False)

    def record(self, outcome: DeletionOutcome) -> None:
        """Fold one outcome into the report."""
        self.attempted += 1
        if outcome.status is OutcomeStatus.DELETED:
            self.succeeded += 1
        elif outcome.status is OutcomeStatus.ALREADY_GONE:
            self.already_gone += 1
        else:
            self._failures.append(
                FailedDeletion(
                    job_id=outcome.job_id,
                    reason=outcome.reason or FailureReason.SERVER_ERROR,
                    detail=outcome.detail,
                )
            )

    def finish(self) -> None:
        self.finished_at = datetime.now(UTC)

    @property
    def failed(self) -> list[FailedDeletion]:
        """Failures sorted by job id."""
        return sorted(self._failures, key=lambda f: f.job_id)

    @property
    def failed_count(self) -> int:
        return len(self._failures)

    @property
    def has_failures(self) -> bool:
        return bool(self._failures)

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def failure_counts(self) -> dict[str, int]:
        """Number of failures per reason, in reason order."""
        counts = Counter(f.reason for f in self._failures)
        return {reason.value: counts[reason] for reason in FailureReason if counts[reason]}

    def to_dict(self) -> dict[str, Any]:
        """Serializable view of the report."""
        return {
            "target": self.target,
            "project_id": self.project_ref,
            "expiration_in_days": self.expiration_in_days,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "already_gone": self.already_gone,
            "failed": [
                {"job_id": f.job_id, "reason": f.reason.value, "detail": f.detail}
                for f in self.failed
            ],
            "failure_counts": self.failure_counts(),
            "anomalies": [
                {"page": a.page, "job_id": a.job_id, "detail": a.detail}
                for a in sorted(self.anomalies, key=lambda a: (a.page, str(a.job_id)))
            ],
            "pages_fetched": self.pages_fetched,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
        }

    def generate_json(self, output_path: str | Path | None = None) -> str:
        """Generate JSON report.

        Args:
            output_path: Optional path to save report

        Returns:
            JSON report as string
        """
        json_str = json.dumps({"report_version": "1.0", **self.to_dict()}, indent=2, default=str)

        if output_path:
            Path(output_path).write_text(json_str)
            logger.info("json_report_saved", path=str(output_path))

        return json_str

    def generate_markdown(self, output_path: str | Path | None = None) -> str:
        """Generate Markdown report.

        Args:
            output_path: Optional path to save report

        Returns:
            Markdown report as string
        """
        lines = [
            "# GitLab Cleanup Report",
            "",
            f"**Project ID:** `{self.project_ref}`  ",
            f"**Target:** {self.target}  ",
            f"**Older than:** {self.expiration_in_days} days"
            + (f" (before {self.cutoff:%Y-%m-%d %H:%M:%S UTC})" if self.cutoff else "")
            + "  ",
            f"**Status:** {'cancelled' if self.cancelled else 'completed'}  ",
            "",
            "## Summary",
            "",
            "| Metric | Count |",
            "|--------|------:|",
            f"| Attempted | {self.attempted:,} |",
            f"| Deleted | {self.succeeded:,} |",
            f"| Already gone | {self.already_gone:,} |",
            f"| Failed | {self.failed_count:,} |",
            f"| Listing anomalies | {len(self.anomalies):,} |",
            f"| Pages fetched | {self.pages_fetched:,} |",
            "",
        ]

        if self._failures:
            lines.extend(["## Failures", "", "| Job ID | Reason | Detail |", "|---:|---|---|"])
            for failure in self.failed:
                detail = failure.detail.replace("|", "\\|")
                lines.append(f"| {failure.job_id} | {failure.reason.value} | {detail} |")
            lines.append("")

        if self.anomalies:
            lines.extend(["## Listing Anomalies", ""])
            for anomaly in self.anomalies:
                lines.append(f"- page {anomaly.page}, job `{anomaly.job_id}`: {anomaly.detail}")
            lines.append("")

        markdown = "\n".join(lines)

        if output_path:
            Path(output_path).write_text(markdown)
            logger.info("markdown_report_saved", path=str(output_path))

        return markdown
