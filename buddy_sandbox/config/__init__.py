"""Configuration management for the sandbox client.

Settings are read from ``BUDDY_*`` environment variables (and an optional
``.env`` file) only through :func:`resolve_connection` and
:func:`load_settings`. Everything below that boundary receives explicit
configuration objects.

Usage:
    from buddy_sandbox.config import ConnectionConfig, resolve_connection

    connection = resolve_connection(ConnectionConfig(workspace="acme"))
    connection.api_url
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models.errors import ConfigurationError
from .regions import API_URLS, Region, get_api_url, parse_region


class Settings(BaseSettings):
    """Client settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="BUDDY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Connection
    token: Optional[SecretStr] = Field(default=None)
    workspace: Optional[str] = Field(default=None)
    project: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BUDDY_PROJECT", "BUDDY_PROJECT_NAME"),
    )
    region: Optional[str] = Field(default=None)
    api_url: Optional[str] = Field(default=None)

    # HTTP transport
    http_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_min_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=10.0, ge=0)
    debug_http: bool = Field(
        default=False, description="Log request and response bodies at debug level"
    )

    # Polling
    command_poll_interval_ms: int = Field(default=1000, ge=10, le=60_000)
    sandbox_poll_interval_ms: int = Field(default=1000, ge=10, le=60_000)
    sandbox_wait_timeout_ms: int = Field(default=60_000, ge=1000)

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("BUDDY_LOG_LEVEL", "BUDDY_LOGGER_LEVEL"),
    )
    log_format: str = Field(default="console")

    @field_validator("workspace", "project", "region", "api_url", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty or whitespace-only values as unset."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v


class ConnectionConfig(BaseModel):
    """Explicit connection overrides; unset fields fall back to settings."""

    workspace: Optional[str] = None
    project: Optional[str] = None
    token: Optional[str] = None
    region: Optional[str] = None
    api_url: Optional[str] = None


class ResolvedConnection(BaseModel):
    """Fully resolved connection parameters handed to the API client."""

    workspace: str
    project: str
    token: SecretStr
    api_url: str
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_min_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0
    debug_http: bool = False
    command_poll_interval_ms: int = 1000
    sandbox_poll_interval_ms: int = 1000
    sandbox_wait_timeout_ms: int = 60_000


def load_settings() -> Settings:
    """Read settings from the process environment."""
    return Settings()


def resolve_connection(
    connection: Optional[ConnectionConfig] = None,
    settings: Optional[Settings] = None,
) -> ResolvedConnection:
    """Merge explicit connection overrides with environment settings.

    Base URL precedence: explicit ``api_url``, ``BUDDY_API_URL``, explicit
    region, ``BUDDY_REGION``, then the US endpoint.

    Raises:
        ConfigurationError: workspace, project or token is missing, or a
            region name is invalid.
    """
    connection = connection or ConnectionConfig()
    settings = settings or load_settings()

    workspace = connection.workspace or settings.workspace
    if not workspace:
        raise ConfigurationError(
            "Workspace not found. Set workspace in the connection config "
            "or the BUDDY_WORKSPACE env var."
        )

    project = connection.project or settings.project
    if not project:
        raise ConfigurationError(
            "Project not found. Set project in the connection config "
            "or the BUDDY_PROJECT env var."
        )

    token = connection.token or (
        settings.token.get_secret_value() if settings.token else None
    )
    if not token:
        raise ConfigurationError(
            "API token is required. Set BUDDY_TOKEN environment variable "
            "or pass token in the connection config."
        )

    if connection.api_url:
        api_url = connection.api_url
    elif settings.api_url:
        api_url = settings.api_url
    elif connection.region:
        api_url = get_api_url(connection.region)
    elif settings.region:
        api_url = get_api_url(settings.region)
    else:
        api_url = API_URLS[Region.US]

    return ResolvedConnection(
        workspace=workspace,
        project=project,
        token=SecretStr(token),
        api_url=api_url.rstrip("/"),
        timeout_seconds=settings.http_timeout_seconds,
        max_retries=settings.max_retries,
        retry_min_delay_seconds=settings.retry_min_delay_seconds,
        retry_max_delay_seconds=settings.retry_max_delay_seconds,
        debug_http=settings.debug_http,
        command_poll_interval_ms=settings.command_poll_interval_ms,
        sandbox_poll_interval_ms=settings.sandbox_poll_interval_ms,
        sandbox_wait_timeout_ms=settings.sandbox_wait_timeout_ms,
    )


__all__ = [
    "API_URLS",
    "ConnectionConfig",
    "Region",
    "ResolvedConnection",
    "Settings",
    "get_api_url",
    "load_settings",
    "parse_region",
    "resolve_connection",
]
