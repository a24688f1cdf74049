"""gitlab-cleaner - Retire stale CI jobs, logs and artifacts from GitLab projects."""

import logging

__version__ = "0.1.0"
__author__ = "gitlab-cleaner contributors"
__license__ = "Apache-2.0"

# Suppress verbose third-party library logging
# Per-request lines from httpx would drown the cleanup progress display
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpcore.connection").setLevel(logging.WARNING)
logging.getLogger("httpcore.http11").setLevel(logging.WARNING)
