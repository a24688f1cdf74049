"""Cleanup engine: listing, concurrent deletion and reporting."""

from gitlab_cleaner.cleanup.models import (
    CleanupTarget,
    DeletionOutcome,
    DeletionRequest,
    FailureReason,
    Job,
    ListingAnomaly,
    OutcomeStatus,
    ResourcePage,
)

__all__ = [
    "CleanupTarget",
    "DeletionOutcome",
    "DeletionRequest",
    "FailureReason",
    "Job",
    "ListingAnomaly",
    "OutcomeStatus",
    "ResourcePage",
]
