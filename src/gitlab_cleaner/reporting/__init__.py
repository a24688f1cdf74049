"""Reporting for cleanup runs."""

from gitlab_cleaner.reporting.report import CleanupReport, FailedDeletion

__all__ = ["CleanupReport", "FailedDeletion"]
