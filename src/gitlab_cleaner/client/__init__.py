"""GitLab API client and its exceptions."""
