"""
CLI context for gitlab-cleaner.

This module provides the context object that is passed to all CLI commands,
holding the command-line overrides and the lazily loaded configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path

from gitlab_cleaner.config import CleanerConfig, load_config
from gitlab_cleaner.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@dataclass
class CleanerContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Optional path to configuration file
        log_level: Console log level given on the command line
        log_file: Log file given on the command line
        config: Loaded configuration
    """

    config_path: Path | None = None
    log_level: str | None = None
    log_file: Path | None = None

    # Lazy-loaded attributes
    _config: CleanerConfig | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> CleanerConfig:
        """Get or load configuration.

        Loading also applies the logging section, with command-line options
        taking precedence over the file.
        """
        if self._config is None:
            self._config = load_config(self.config_path)
            self._apply_logging(self._config)
            logger.debug(
                "configuration_loaded",
                config_path=str(self.config_path) if self.config_path else None,
                url=self._config.gitlab.url,
            )

        return self._config

    def _apply_logging(self, config: CleanerConfig) -> None:
        log_file = str(self.log_file) if self.log_file else config.logging.file
        configure_logging(
            level=self.log_level or config.logging.level,
            log_format=config.logging.format,
            log_file=log_file,
            file_level=config.logging.file_level,
        )
