"""Configuration management for gitlab-cleaner using Pydantic.

This module provides type-safe configuration models for the GitLab instance,
performance tuning, retry policies and logging.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitlab_cleaner.client.exceptions import ConfigurationError
from gitlab_cleaner.utils.retry import RateLimitRetryPolicy, TransportRetryPolicy

# Environment variables holding the credentials
URL_ENV_VAR = "GITLAB_URL"
TOKEN_ENV_VAR = "GITLAB_TOKEN"


class GitLabInstanceConfig(BaseModel):
    """Configuration for the GitLab instance."""

    url: str = Field(..., description="GitLab API base URL (e.g. https://gitlab.com/api/v4)")
    token: str = Field(..., description="Personal access token")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    timeout: int = Field(default=30, ge=1, le=600, description="API request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate token is not empty."""
        if not v or v.strip() == "":
            raise ValueError("Token cannot be empty")
        return v.strip()


class PerformanceConfig(BaseModel):
    """Performance tuning configuration."""

    page_size: int = Field(default=50, ge=1, le=100, description="Jobs requested per page")
    max_workers: int = Field(
        default=8, ge=1, le=50, description="Number of concurrent delete workers"
    )
    queue_size: int | None = Field(
        default=None,
        ge=1,
        le=1000,
        description="Bounded work queue size (default: twice the worker count)",
    )
    rate_limit: float = Field(
        default=10.0, ge=0, le=100, description="Requests per second limit (0 disables)"
    )
    http_max_connections: int = Field(
        default=20, ge=1, le=200, description="Maximum connections in the pool"
    )
    http_max_keepalive_connections: int = Field(
        default=10, ge=1, le=100, description="Maximum keep-alive connections"
    )

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or self.max_workers * 2


class RetryConfig(BaseModel):
    """Retry ceilings for the transport and rate-limit policies."""

    transport_max_attempts: int = Field(default=4, ge=1, le=10)
    transport_min_wait: float = Field(default=1.0, ge=0, le=60)
    transport_max_wait: float = Field(default=30.0, ge=0, le=300)
    rate_limit_max_attempts: int = Field(default=5, ge=1, le=20)
    rate_limit_min_wait: float = Field(default=2.0, ge=0, le=60)
    rate_limit_max_wait: float = Field(default=120.0, ge=0, le=600)

    def transport_policy(self) -> TransportRetryPolicy:
        return TransportRetryPolicy(
            max_attempts=self.transport_max_attempts,
            min_wait=self.transport_min_wait,
            max_wait=self.transport_max_wait,
        )

    def rate_limit_policy(self) -> RateLimitRetryPolicy:
        return RateLimitRetryPolicy(
            max_attempts=self.rate_limit_max_attempts,
            min_wait=self.rate_limit_min_wait,
            max_wait=self.rate_limit_max_wait,
        )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(default="DEBUG", description="File log level")
    format: str = Field(default="json", description="Log file format (json or console)")
    file: str | None = Field(default="logs/gitlab-cleaner.log", description="Log file path")

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class CleanerConfig(BaseSettings):
    """Main gitlab-cleaner configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GITLAB_CLEANER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    gitlab: GitLabInstanceConfig = Field(..., description="GitLab instance configuration")
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    retry: RetryConfig = Field(default_factory=RetryConfig, description="Retry configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )


def load_config(config_path: str | Path | None = None) -> CleanerConfig:
    """Load configuration from an optional YAML file and the environment.

    The GitLab URL and token fall back to ``GITLAB_URL`` and ``GITLAB_TOKEN``
    when the file does not set them.

    Args:
        config_path: Optional path to YAML configuration file

    Returns:
        CleanerConfig: Loaded configuration

    Raises:
        ConfigurationError: If the file is missing or invalid, or if the
            GitLab URL or token cannot be resolved
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")
        config_data = _expand_env_vars(loaded or {})

    gitlab = dict(config_data.get("gitlab") or {})
    if not gitlab.get("url"):
        gitlab["url"] = os.environ.get(URL_ENV_VAR, "")
    if not gitlab.get("token"):
        gitlab["token"] = os.environ.get(TOKEN_ENV_VAR, "")

    missing = [
        env_var
        for key, env_var in (("url", URL_ENV_VAR), ("token", TOKEN_ENV_VAR))
        if not gitlab[key]
    ]
    if missing:
        raise ConfigurationError(
            f"Missing GitLab credentials: set {' and '.join(missing)} "
            "in your environment or .env file."
        )
    config_data["gitlab"] = gitlab

    try:
        return CleanerConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config data.

    Supports ${VAR_NAME} syntax for environment variable substitution.

    Args:
        data: Configuration value (dict, list or scalar)

    Returns:
        Value with expanded environment variables
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigurationError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
