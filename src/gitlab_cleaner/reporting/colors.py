"""Color definitions for console output.

Centralized palette using Rich color names for the report tables.
"""


class CleanerColors:
    """Color palette for gitlab-cleaner console output.

    Reference: https://rich.readthedocs.io/en/stable/appendix/colors.html
    """

    # Outcome colors
    DELETED = "green"
    ALREADY_GONE = "dim"
    FAILED = "red"

    # UI elements
    BORDER = "blue"
