"""Configuration settings for qorecss_deploy.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Provider default used when no CDN base URL is configured
DEFAULT_CDN_BASE_URL = "https://cdn.jsdelivr.net"

SOCKET_LIMIT_DEFAULT = 50
SOCKET_LIMIT_RANGE = (1, 1000)
QUEUE_LIMIT_DEFAULT = 5
QUEUE_LIMIT_RANGE = (1, 100)


def normalize_base_url(url: str) -> str:
    """Strip surrounding whitespace and trailing slashes from a base URL."""
    return url.strip().rstrip("/")


def _clamp_int(value: Any, default: int, bounds: tuple[int, int]) -> int:
    """Parse an integer setting, clamping it into bounds.

    Unparseable values fall back to the default rather than failing.
    """
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    low, high = bounds
    return max(low, min(high, parsed))


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the QORE_ prefix.
    Components receive a Settings instance explicitly instead of reading
    the environment themselves.
    """

    model_config = SettingsConfigDict(
        env_prefix="QORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    work_dir: Path = Field(
        default=Path("."),
        description="Build working directory holding sources and artifacts",
    )
    source_css: str = Field(
        default="qore.css",
        description="Source stylesheet file name",
    )
    html_file: str = Field(
        default="index.html",
        description="HTML document whose references are rewritten",
    )
    entry_point: str = Field(
        default="index.js",
        description="Package entry point embedding the hashed filename",
    )
    hash_file: str = Field(
        default="build.hash",
        description="File holding the current content hash",
    )
    history_file: str = Field(
        default="performance-results.json",
        description="Performance sampler history file",
    )
    stats_file: str = Field(
        default="build-stats.json",
        description="Artifact size history, appended when the size changes",
    )

    # Operational modes
    offline: bool = Field(
        default=False,
        description="Offline mode - simulate network responses",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # CDN
    cdn_base_url: str | None = Field(
        default=None,
        description="CDN base URL substituted into HTML templates",
    )
    purge_base_url: str = Field(
        default="https://purge.jsdelivr.net/gh",
        description="CDN provider purge endpoint base",
    )
    repository: str = Field(
        default="Bijikyu/qoreCSS",
        description="Repository coordinates appended to CDN paths",
    )
    pages_base_url: str = Field(
        default="https://bijikyu.github.io/qoreCSS",
        description="Non-CDN mirror used by the performance sampler",
    )

    # Concurrency
    socket_limit: int = Field(
        default=SOCKET_LIMIT_DEFAULT,
        description="Maximum pooled connections per HTTP client",
    )
    queue_limit: int = Field(
        default=QUEUE_LIMIT_DEFAULT,
        description="Maximum in-flight requests per batch",
    )

    # Retry and timeouts (in seconds)
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Default per-attempt HTTP timeout",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Default number of HTTP attempts",
    )
    backoff_base: float = Field(
        default=0.1,
        ge=0,
        description="Base backoff delay; doubles after each failed attempt",
    )
    processor_timeout: int = Field(
        default=120,
        ge=1,
        description="Timeout for the external CSS processor",
    )

    history_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum number of performance history entries kept",
    )

    @field_validator("socket_limit", mode="before")
    @classmethod
    def _clamp_socket_limit(cls, value: Any) -> int:
        return _clamp_int(value, SOCKET_LIMIT_DEFAULT, SOCKET_LIMIT_RANGE)

    @field_validator("queue_limit", mode="before")
    @classmethod
    def _clamp_queue_limit(cls, value: Any) -> int:
        return _clamp_int(value, QUEUE_LIMIT_DEFAULT, QUEUE_LIMIT_RANGE)

    @field_validator("cdn_base_url", mode="before")
    @classmethod
    def _blank_cdn_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def configured_cdn_base(self) -> str | None:
        """Normalized CDN base URL, or None when not configured."""
        if self.cdn_base_url is None:
            return None
        return normalize_base_url(self.cdn_base_url)

    @property
    def cdn_base(self) -> str:
        """Normalized CDN base URL, falling back to the provider default."""
        return self.configured_cdn_base or DEFAULT_CDN_BASE_URL

    def path_for(self, name: str) -> Path:
        """Resolve a file name against the working directory."""
        return self.work_dir / name


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_CDN_BASE_URL",
    "Settings",
    "get_settings",
    "normalize_base_url",
    "print_settings_json",
]
