"""
Release sync configuration module.

Manages settings for the manifest tools: file locations, GitHub endpoints,
HTTP limits and the git publish protocol. Configuration sources (in
priority order):
1. Explicit overrides passed by the CLI
2. Environment variables
3. YAML configuration file
4. Default values
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml


# ============================================================================
# Constants
# ============================================================================

CONFIG_FILENAME = "hostdb-releases.yaml"

# Environment variable names
ENV_CONFIG_PATH = "HOSTDB_CONFIG_PATH"
ENV_MANIFEST_PATH = "HOSTDB_MANIFEST_PATH"
ENV_DATABASES_PATH = "HOSTDB_DATABASES_PATH"
ENV_API_URL = "HOSTDB_API_URL"
ENV_DOWNLOAD_URL = "HOSTDB_DOWNLOAD_URL"
ENV_GIT_BRANCH = "HOSTDB_GIT_BRANCH"
ENV_LOG_LEVEL = "HOSTDB_LOG_LEVEL"
ENV_GITHUB_TOKEN = "GITHUB_TOKEN"

# Default values
DEFAULT_MANIFEST_PATH = "releases.json"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_DOWNLOAD_URL = "https://github.com"
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_PAGE_SIZE = 100  # GitHub maximum
DEFAULT_GIT_REMOTE = "origin"
DEFAULT_GIT_BRANCH = "main"
DEFAULT_PUSH_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds, doubled per attempt
DEFAULT_COMMIT_USER_NAME = "github-actions[bot]"
DEFAULT_COMMIT_USER_EMAIL = "github-actions[bot]@users.noreply.github.com"
DEFAULT_LOG_LEVEL = "INFO"

MAX_PAGE_SIZE = 100

URL_PATTERN = re.compile(r"^https?://[^\s/]+(?:/\S*)?$", re.IGNORECASE)


# ============================================================================
# Exceptions
# ============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    pass


# ============================================================================
# SyncConfig Class
# ============================================================================


class SyncConfig:
    """
    Settings for the manifest reconciliation and publish tools.

    Attributes:
        manifest_path: Path to releases.json
        databases_path: Optional path to databases.json (known database keys)
        github_token: Optional token attached to every GitHub request
        api_url: GitHub REST API base URL
        download_url: Base URL for release asset downloads
        request_timeout_seconds: Per-request deadline
        page_size: Releases requested per page
        git_remote: Remote pushed to by the publisher
        git_branch: Branch pushed to by the publisher
        push_attempts: Push attempts before giving up
        retry_base_delay_seconds: Base of the exponential retry delay
        commit_user_name: Committer name for manifest commits
        commit_user_email: Committer email for manifest commits
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Explicit path to a YAML config file. Without it,
                HOSTDB_CONFIG_PATH or ./hostdb-releases.yaml is used if present.
        """
        if config_path:
            self._config_path: Optional[Path] = Path(config_path)
            self._required = True
        else:
            env_path = os.environ.get(ENV_CONFIG_PATH)
            self._config_path = Path(env_path) if env_path else Path(CONFIG_FILENAME)
            self._required = bool(env_path)

        self._manifest_path: str = DEFAULT_MANIFEST_PATH
        self._databases_path: Optional[str] = None
        self._api_url: str = DEFAULT_API_URL
        self._download_url: str = DEFAULT_DOWNLOAD_URL
        self.request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT
        self.page_size: int = DEFAULT_PAGE_SIZE
        self.git_remote: str = DEFAULT_GIT_REMOTE
        self._git_branch: str = DEFAULT_GIT_BRANCH
        self.push_attempts: int = DEFAULT_PUSH_ATTEMPTS
        self.retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY
        self.commit_user_name: str = DEFAULT_COMMIT_USER_NAME
        self.commit_user_email: str = DEFAULT_COMMIT_USER_EMAIL
        self._log_level: str = DEFAULT_LOG_LEVEL

        self._overrides: dict[str, Any] = {}

        self._load()

    @property
    def config_path(self) -> Optional[Path]:
        """Get the configuration file path."""
        return self._config_path

    # -------------------------------------------------------------------------
    # Configuration Properties
    # -------------------------------------------------------------------------

    @property
    def manifest_path(self) -> Path:
        """Get the releases.json path."""
        return Path(
            self._overrides.get("manifest_path")
            or os.environ.get(ENV_MANIFEST_PATH, self._manifest_path)
        )

    @property
    def databases_path(self) -> Optional[Path]:
        """Get the databases.json path, if configured."""
        value = self._overrides.get("databases_path") or os.environ.get(
            ENV_DATABASES_PATH, self._databases_path
        )
        return Path(value) if value else None

    @property
    def github_token(self) -> Optional[str]:
        """Get the GitHub token (environment only, never read from file)."""
        return os.environ.get(ENV_GITHUB_TOKEN) or None

    @property
    def api_url(self) -> str:
        """Get the GitHub API base URL."""
        return os.environ.get(ENV_API_URL, self._api_url)

    @property
    def download_url(self) -> str:
        """Get the release download base URL."""
        return os.environ.get(ENV_DOWNLOAD_URL, self._download_url)

    @property
    def git_branch(self) -> str:
        """Get the branch the publisher pushes to."""
        return os.environ.get(ENV_GIT_BRANCH, self._git_branch)

    @property
    def log_level(self) -> str:
        """Get the log level."""
        return self._overrides.get("log_level") or os.environ.get(
            ENV_LOG_LEVEL, self._log_level
        )

    # -------------------------------------------------------------------------
    # Configuration Management
    # -------------------------------------------------------------------------

    def override(self, **values: Any) -> None:
        """Apply CLI overrides; None values are ignored."""
        for key, value in values.items():
            if value is not None:
                self._overrides[key] = value

    def _load(self) -> None:
        """Load configuration from file."""
        if self._config_path is None or not self._config_path.exists():
            if self._required:
                raise ConfigError(f"Config file not found: {self._config_path}")
            return

        try:
            with open(self._config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file: {e}")

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping")

        self._manifest_path = data.get("manifest_path", DEFAULT_MANIFEST_PATH)
        self._databases_path = data.get("databases_path")
        self._api_url = data.get("api_url", DEFAULT_API_URL)
        self._download_url = data.get("download_url", DEFAULT_DOWNLOAD_URL)
        self.request_timeout_seconds = data.get(
            "request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT
        )
        self.page_size = data.get("page_size", DEFAULT_PAGE_SIZE)
        self.git_remote = data.get("git_remote", DEFAULT_GIT_REMOTE)
        self._git_branch = data.get("git_branch", DEFAULT_GIT_BRANCH)
        self.push_attempts = data.get("push_attempts", DEFAULT_PUSH_ATTEMPTS)
        self.retry_base_delay_seconds = data.get(
            "retry_base_delay_seconds", DEFAULT_RETRY_BASE_DELAY
        )
        self.commit_user_name = data.get("commit_user_name", DEFAULT_COMMIT_USER_NAME)
        self.commit_user_email = data.get(
            "commit_user_email", DEFAULT_COMMIT_USER_EMAIL
        )
        self._log_level = data.get("log_level", DEFAULT_LOG_LEVEL)

    def validate(self) -> None:
        """
        Validate the current configuration.

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        for name, url in (("api_url", self.api_url), ("download_url", self.download_url)):
            if not URL_PATTERN.match(url):
                raise ConfigValidationError(f"Invalid {name} format: {url}")

        if self.request_timeout_seconds <= 0:
            raise ConfigValidationError(
                f"request_timeout_seconds must be positive, got: {self.request_timeout_seconds}"
            )

        if not 0 < self.page_size <= MAX_PAGE_SIZE:
            raise ConfigValidationError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got: {self.page_size}"
            )

        if self.push_attempts <= 0:
            raise ConfigValidationError(
                f"push_attempts must be positive, got: {self.push_attempts}"
            )

        if self.retry_base_delay_seconds < 0:
            raise ConfigValidationError(
                f"retry_base_delay_seconds must be non-negative, got: {self.retry_base_delay_seconds}"
            )
