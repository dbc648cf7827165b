"""
npmplus Settings

This module handles the configuration model for the package intelligence core.
Values come from ``NPMPLUS_*`` environment variables and fall back to the
public npm, Bundlephobia, GitHub and OSV endpoints.
"""

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigError

ENV_PREFIX = "NPMPLUS_"


class Settings(BaseSettings):
    """Configuration for the orchestrator and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore"
    )

    registry_url: str = Field(default="https://registry.npmjs.org", description="npm registry base URL")
    npm_api_url: str = Field(default="https://api.npmjs.org", description="npm download statistics API")
    bundlephobia_url: str = Field(default="https://bundlephobia.com/api", description="Bundle size API")
    github_advisory_url: str = Field(default="https://api.github.com/advisories", description="GitHub advisory API")
    osv_url: str = Field(default="https://api.osv.dev/v1", description="OSV API base URL")
    github_token: str | None = Field(default=None, description="Optional token for the GitHub advisory API")

    http_timeout: float = Field(default=30.0, description="Network timeout in seconds")
    command_timeout: float = Field(default=60.0, description="Package manager subprocess timeout in seconds")

    cache_default_ttl: int = Field(default=600, description="TTL used when a caller gives none")
    cache_max_keys: int = Field(default=1000, description="Maximum number of cached entries")
    search_cache_ttl: int = Field(default=900, description="TTL for search results")
    package_cache_ttl: int = Field(default=3600, description="TTL for enriched package records")
    security_cache_ttl: int = Field(default=3600, description="TTL for vulnerability reports")

    log_level: str = Field(default="INFO", description="Log level name")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("http_timeout", "command_timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator(
        "cache_default_ttl", "cache_max_keys", "search_cache_ttl",
        "package_cache_ttl", "security_cache_ttl"
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("cache settings must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator(
        "registry_url", "npm_api_url", "bundlephobia_url",
        "github_advisory_url", "osv_url"
    )
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``NPMPLUS_*`` environment variables."""
        try:
            return cls()
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
