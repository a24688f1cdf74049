"""Command-line interface for gitlab-cleaner."""
